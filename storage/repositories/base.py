"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Common plumbing for the catalog, inventory, market, sales
and sync-job repositories:
- Session injection
- SQLAlchemy errors re-raised as RepositoryException
- Add / bulk add / query / scalar / count helpers
- Per-repository logger ``repository.<name>``

Repositories flush but never commit; the caller owns the
transaction (database.engine.transaction_scope, or the
request session in the API).

============================================================
USAGE
============================================================
class InventoryRepository(BaseRepository[InventoryItem]):
    def __init__(self, session: Session):
        super().__init__(session, InventoryItem, "inventory")

============================================================
"""

import logging
import re
from abc import ABC
from contextlib import contextmanager
from typing import Any, Generic, Iterable, Iterator, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)


T = TypeVar("T", bound=Base)

# SQLite: "UNIQUE constraint failed: sync_jobs.sku, sync_jobs.provider"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w., ]+)")
# PostgreSQL: 'duplicate key value violates unique constraint "uq_..."'
_PG_UNIQUE = re.compile(r'unique constraint "([^"]+)"')


def translate_db_error(
    repository_name: str,
    operation: str,
    error: SQLAlchemyError,
    context: Optional[dict] = None,
) -> RepositoryException:
    """Map a SQLAlchemy error onto the repository exception hierarchy."""
    context = context or {}
    if isinstance(error, OperationalError):
        return ConnectionError(repository_name, operation, str(error.orig or error))

    if isinstance(error, SQLAlchemyIntegrityError):
        message = str(error.orig or error)
        unique = _SQLITE_UNIQUE.search(message) or _PG_UNIQUE.search(message)
        if unique:
            return DuplicateRecordError(
                repository_name,
                constraint_field=context.get("field", unique.group(1).strip()),
                value=context.get("value", "?"),
            )
        return IntegrityError(repository_name, operation, context.get("constraint", "unknown"), message)

    return QueryError(repository_name, operation, str(error))


class BaseRepository(ABC, Generic[T]):
    """Session-bound repository for one ORM model."""

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def model_class(self) -> Type[T]:
        return self._model_class

    @property
    def repository_name(self) -> str:
        return self._repository_name

    @contextmanager
    def _guard(self, operation: str, context: Optional[dict] = None, rollback: bool = False) -> Iterator[None]:
        """
        Run a database operation, translating failures.

        Writes pass rollback=True so the session stays usable
        after a failed flush.

        Raises:
            RepositoryException: On any SQLAlchemyError
        """
        try:
            yield
        except SQLAlchemyError as e:
            if rollback:
                self._session.rollback()
            self._logger.error(f"{operation} failed: {e}", extra={"context": context or {}})
            raise translate_db_error(self._repository_name, operation, e, context) from e

    # =========================================================
    # WRITE HELPERS
    # =========================================================

    def _add(self, entity: T, context: Optional[dict] = None) -> T:
        """Add and flush one entity."""
        with self._guard("add", context, rollback=True):
            self._session.add(entity)
            self._session.flush()
        return entity

    def _add_all(self, entities: Iterable[T]) -> List[T]:
        """Add several entities with a single flush."""
        entities = list(entities)
        if entities:
            with self._guard("add_all", {"count": len(entities)}, rollback=True):
                self._session.add_all(entities)
                self._session.flush()
            self._logger.debug(f"Added {len(entities)} {self._model_class.__tablename__} rows")
        return entities

    def _execute_write(self, stmt: Any, operation: str) -> int:
        """UPDATE/DELETE; returns the affected row count."""
        with self._guard(operation, rollback=True):
            result = self._session.execute(stmt)
            self._session.flush()
        return result.rowcount or 0

    # =========================================================
    # READ HELPERS
    # =========================================================

    def _get_by_id(self, record_id: UUID) -> Optional[T]:
        with self._guard("get_by_id", {"id": str(record_id)}):
            return self._session.get(self._model_class, record_id)

    def _get_by_id_or_raise(self, record_id: UUID, id_field: str = "id") -> T:
        """
        Raises:
            RecordNotFoundError: If no row has this primary key
        """
        entity = self._get_by_id(record_id)
        if entity is None:
            raise RecordNotFoundError(self._repository_name, record_id, id_field)
        return entity

    def _count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self._model_class)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._guard("count"):
            return self._session.execute(stmt).scalar() or 0

    def _execute_query(self, stmt: Any) -> List[T]:
        """Select returning ORM entities."""
        with self._guard("query"):
            return list(self._session.execute(stmt).scalars().all())

    def _execute_rows(self, stmt: Any) -> List[Any]:
        """Select returning Row tuples (aggregates, joins)."""
        with self._guard("query_rows"):
            return list(self._session.execute(stmt).all())

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        with self._guard("query_scalar"):
            return self._session.execute(stmt).scalar_one_or_none()
