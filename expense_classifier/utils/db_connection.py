"""
Database connection utilities

PostgreSQL connection settings come from ``DB_*`` environment variables
(or a ``.env`` file). Stores take a zero-argument connection factory and
close every connection they open.
"""
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import psycopg2
from dotenv import load_dotenv


@dataclass(frozen=True)
class DatabaseSettings:
    host: str = 'localhost'
    port: int = 5432
    database: str = 'expenses_db'
    user: str = 'expenses_user'
    password: str = ''

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'DatabaseSettings':
        """
        Read DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASSWORD

        Args:
            env: Mapping to read instead of os.environ (skips .env loading)
        """
        if env is None:
            load_dotenv()
            env = os.environ
        return cls(
            host=env.get('DB_HOST') or cls.host,
            port=int(env.get('DB_PORT') or cls.port),
            database=env.get('DB_NAME') or cls.database,
            user=env.get('DB_USER') or cls.user,
            password=env.get('DB_PASSWORD') or cls.password,
        )

    def describe(self) -> str:
        """Connection target without the password, for messages"""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


def get_db_connection(settings: Optional[DatabaseSettings] = None):
    """
    Open a psycopg2 connection

    Args:
        settings: Connection settings (default: from environment)

    Returns:
        psycopg2 connection object
    """
    settings = settings or DatabaseSettings.from_env()
    return psycopg2.connect(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
    )


def connection_factory(settings: Optional[DatabaseSettings] = None) -> Callable:
    """Zero-argument factory for TransactionClassifier.from_database and PostgresKnowledgeStore"""
    settings = settings or DatabaseSettings.from_env()

    def connect():
        return get_db_connection(settings)

    return connect
