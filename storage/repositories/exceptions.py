"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Every SQLAlchemy error raised inside a repository is caught
and re-raised as one of these, carrying the repository name
and the operation that failed.

Services catch RepositoryException; the API maps it to 500.

============================================================
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base exception for all repository operations."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "repository": self.repository_name,
            "operation": self.operation,
            "message": self.message,
            "details": self.details,
        }


class RecordNotFoundError(RepositoryException):
    """An inventory item or sync job looked up by id is missing."""

    def __init__(self, repository_name: str, record_id: Any, id_field: str = "id") -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            repository_name=repository_name,
            operation="get",
            details={id_field: str(record_id)},
        )
        self.record_id = record_id
        self.id_field = id_field


class DuplicateRecordError(RepositoryException):
    """
    A unique key was violated on insert: catalog SKU, sync job
    (sku, provider), market row key or sales bucket.
    """

    def __init__(self, repository_name: str, constraint_field: str, value: Any) -> None:
        super().__init__(
            message=f"Duplicate record: {constraint_field}={value} already exists",
            repository_name=repository_name,
            operation="create",
            details={"field": constraint_field, "value": str(value)},
        )
        self.constraint_field = constraint_field
        self.value = value


class IntegrityError(RepositoryException):
    """A not-null, foreign key or check constraint was violated."""

    def __init__(self, repository_name: str, operation: str, constraint_name: str, message: str) -> None:
        super().__init__(
            message=f"Integrity constraint violated ({constraint_name}): {message}",
            repository_name=repository_name,
            operation=operation,
            details={"constraint": constraint_name},
        )
        self.constraint_name = constraint_name


class ConnectionError(RepositoryException):
    """The database could not be reached."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )


class QueryError(RepositoryException):
    """A statement failed to execute."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )


class ValidationError(RepositoryException):
    """
    Input rejected before reaching the database.

    Inventory quantity, purchase price and status values, and
    provider names on catalog mappings.
    """

    def __init__(self, repository_name: str, operation: str, field: str, reason: str) -> None:
        super().__init__(
            message=f"Validation failed for {field}: {reason}",
            repository_name=repository_name,
            operation=operation,
            details={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason
