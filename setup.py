"""
Expense Classifier - Setup Configuration
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="expense-classifier",
    version="1.0.0",
    description="Classifies receipts and statement lines into accounting categories and learns from corrections",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "psycopg2-binary>=2.9.9",
        "anthropic>=0.39.0",
        "python-dotenv>=1.0.0",
        "Levenshtein>=0.25.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "httpx>=0.27.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "expense-init-db=expense_classifier.cli.init_db:main",
            "expense-classify=expense_classifier.cli.classify:main",
            "expense-correct=expense_classifier.cli.correct:main",
            "expense-learn-stats=expense_classifier.cli.learn_stats:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Office/Business :: Financial :: Accounting",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    include_package_data=True,
    package_data={
        "expense_classifier": [
            "db/*.sql",
        ],
    },
)
