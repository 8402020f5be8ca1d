"""PostgreSQL connection pool for the conversation store.

PostgresConversationStore runs every query through asyncio.to_thread,
so connections are checked out from worker threads; the pool is a
psycopg2 ThreadedConnectionPool sized for concurrent chat requests.

The manager is constructed once at startup (see chat_service.app) and
handed to the repositories; there is no module-level instance.
"""
import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict

from psycopg2 import pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    """Where the conversation database lives and how many connections to hold."""
    host: str = "localhost"
    port: int = 5432
    database: str = "mindspace"
    username: str = ""
    password: str = ""
    # One connection per in-flight store call; bounded by the worker thread pool
    pool_min: int = 1
    pool_max: int = 10
    connect_timeout: int = 10
    ssl_mode: str = "require"

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Read DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
        DB_POOL_MIN, DB_POOL_MAX and DB_SSL_MODE."""
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "mindspace"),
            username=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            pool_min=int(os.getenv("DB_POOL_MIN", "1")),
            pool_max=int(os.getenv("DB_POOL_MAX", "10")),
            ssl_mode=os.getenv("DB_SSL_MODE", "require"),
        )

    @classmethod
    def from_secrets_manager(cls, secret_arn: str, region: str = "us-east-1") -> "DatabaseConfig":
        """Credentials from an RDS-style secret, everything else from the environment.

        The secret supplies host/port/dbname/username/password; keys it
        omits keep their DB_* environment values.
        """
        import boto3

        client = boto3.client("secretsmanager", region_name=region)
        secret = json.loads(client.get_secret_value(SecretId=secret_arn)["SecretString"])

        base = cls.from_env()
        return replace(
            base,
            host=secret.get("host", base.host),
            port=int(secret.get("port", base.port)),
            database=secret.get("dbname", base.database),
            username=secret.get("username", base.username),
            password=secret.get("password", base.password),
        )

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for psycopg2.connect."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
            "sslmode": self.ssl_mode,
        }


class ConnectionManager:
    """Owns the connection pool shared by the conversation repositories."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    def initialize(self) -> None:
        """Open the pool. Idempotent; called at startup so bad credentials fail fast."""
        if self._pool is not None:
            return

        try:
            self._pool = pool.ThreadedConnectionPool(
                self.config.pool_min,
                self.config.pool_max,
                **self.config.connect_kwargs(),
            )
        except Exception as e:
            logger.error(
                "DATABASE_POOL_UNAVAILABLE",
                extra={
                    "host": self.config.host,
                    "database": self.config.database,
                    "error": str(e),
                }
            )
            raise

        logger.info(
            "DATABASE_POOL_OPENED",
            extra={
                "host": self.config.host,
                "database": self.config.database,
                "pool_max": self.config.pool_max,
            }
        )

    @contextmanager
    def get_connection(self):
        """Check a connection out for one repository call; always returned."""
        self.initialize()
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)
