"""
Exception types raised by the classifier

Classification itself never raises: missing evidence is a ``None`` candidate
and the cascade always ends in the fallback. These errors cover construction
(bad categories, bad configuration) and the correction write path.
"""


class ClassifierError(Exception):
    """Base class for all classifier errors"""


class UnknownCategoryError(ClassifierError, ValueError):
    """A category id or name is not in the registry"""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Unknown category: {reference!r}")


class ConfigurationError(ClassifierError):
    """An environment setting could not be parsed"""

    def __init__(self, variable: str, value: str, reason: str):
        self.variable = variable
        self.value = value
        super().__init__(f"Invalid value for {variable}={value!r}: {reason}")


class KnowledgeStoreError(ClassifierError):
    """Reading or writing merchant knowledge failed"""

    def __init__(self, message: str, retriable: bool = False):
        self.retriable = retriable
        super().__init__(message)


class CorrectionPersistenceError(KnowledgeStoreError):
    """A user correction could not be persisted; the caller may retry it"""

    def __init__(self, message: str):
        super().__init__(message, retriable=True)
