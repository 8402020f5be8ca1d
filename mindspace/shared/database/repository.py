"""Base repository pattern for database operations.

Provides common insert/query operations over a ConnectionManager.
Driver errors are re-raised as RepositoryError, which is a
PersistenceFailure, so callers handle one storage error type.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

import psycopg2

from mindspace.shared.errors import PersistenceFailure
from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(PersistenceFailure):
    """Base exception for repository errors."""
    pass


class NotFoundError(RepositoryError):
    """Entity not found in database."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository with common operations.

    Subclasses implement entity-specific logic while inheriting:
    - Connection management
    - Error handling
    - Logging patterns
    """

    # Primary key column used by find_by_id and upsert
    id_column = "id"

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        """Initialize repository.

        Args:
            connection_manager: Database connection manager
            table_name: Name of the database table
        """
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert database row to entity."""
        pass

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert entity to a column -> value mapping."""
        pass

    @contextmanager
    def _cursor(self, commit: bool = False):
        """Cursor scope with commit/rollback and error translation."""
        with self.connection_manager.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                if commit:
                    conn.commit()
            except psycopg2.IntegrityError as e:
                conn.rollback()
                raise DuplicateError(f"{self.table_name}: {e}") from e
            except psycopg2.Error as e:
                conn.rollback()
                logger.error(
                    "REPOSITORY_QUERY_FAILED",
                    extra={"table_name": self.table_name, "error": str(e)}
                )
                raise RepositoryError(f"{self.table_name}: {e}") from e

    def find_by_id(self, entity_id: Any) -> Optional[T]:
        """Find entity by primary key.

        Returns:
            Entity if found, None otherwise
        """
        with self._cursor() as cur:
            cur.execute(
                f"SELECT * FROM {self.table_name} WHERE {self.id_column} = %s",
                (entity_id,)
            )
            row = cur.fetchone()

        if row is None:
            return None
        return self._row_to_entity(row)

    def get_by_id(self, entity_id: Any) -> T:
        """Like find_by_id, but raises NotFoundError."""
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise NotFoundError(f"{self.table_name}: {entity_id} not found")
        return entity

    def find_by(
        self,
        column: str,
        value: Any,
        order_by: str = "created_at",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Find all entities where column equals value.

        Args:
            column: Column to filter on
            value: Value to match
            order_by: Sort column
            descending: Sort newest first
            limit: Maximum entities to return
        """
        query = (
            f"SELECT * FROM {self.table_name} WHERE {column} = %s "
            f"ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        )
        params: tuple = (value,)
        if limit is not None:
            query += " LIMIT %s"
            params = (value, limit)

        with self._cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()

        return [self._row_to_entity(row) for row in rows]

    def insert(self, entity: T) -> None:
        """Insert a new row. Raises DuplicateError on key conflicts."""
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ", ".join(["%s"] * len(columns))

        with self._cursor(commit=True) as cur:
            cur.execute(
                f"INSERT INTO {self.table_name} ({', '.join(columns)}) VALUES ({placeholders})",
                list(params.values())
            )

    def insert_many(self, entities: Sequence[T]) -> None:
        """Insert rows in order within a single transaction."""
        if not entities:
            return

        rows = [self._entity_to_params(entity) for entity in entities]
        columns = list(rows[0].keys())
        placeholders = ", ".join(["%s"] * len(columns))
        query = f"INSERT INTO {self.table_name} ({', '.join(columns)}) VALUES ({placeholders})"

        with self._cursor(commit=True) as cur:
            for params in rows:
                cur.execute(query, [params[col] for col in columns])

    def save(self, entity: T) -> None:
        """Insert or update entity by primary key."""
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ", ".join(["%s"] * len(columns))
        update_clause = ", ".join(
            f"{col} = EXCLUDED.{col}" for col in columns if col != self.id_column
        )

        query = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({self.id_column}) DO UPDATE SET {update_clause}"
        )

        with self._cursor(commit=True) as cur:
            cur.execute(query, list(params.values()))

    def count_by(self, column: str, value: Any) -> int:
        """Count entities where column equals value."""
        with self._cursor() as cur:
            cur.execute(
                f"SELECT COUNT(*) FROM {self.table_name} WHERE {column} = %s",
                (value,)
            )
            row = cur.fetchone()

        return row[0] if row else 0
