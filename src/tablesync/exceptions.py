"""
Exception classes for tablesync.
"""

from typing import Any, Dict, Optional


class TablesyncError(Exception):
    """Base exception for all tablesync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(TablesyncError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(TablesyncError):
    """Raised when there's a validation error."""

    pass


class ModelInvariantError(ValidationError):
    """Raised when a table model references something it does not declare."""

    def __init__(
        self,
        table_name: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = {"table": table_name}
        merged.update(details or {})
        super().__init__(f"Invalid model for table '{table_name}': {reason}", merged)
        self.table_name = table_name
        self.reason = reason


class DialectNotFoundError(ConfigurationError):
    """Raised when no dialect is registered under the requested name."""

    pass


class DatabaseError(TablesyncError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class DatabaseConfigurationError(DatabaseError):
    """Raised when there's an error in database configuration."""

    pass


class CatalogQueryError(DatabaseError):
    """Raised when a metadata catalog query fails."""

    def __init__(
        self,
        message: str,
        sql: str,
        table_name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details: Dict[str, Any] = {"sql": " ".join(sql.split())}
        if table_name:
            details["table"] = table_name
        super().__init__(message, details, cause)
        self.sql = sql
        self.table_name = table_name


class DDLExecutionError(DatabaseError):
    """Raised when the database rejects a synthesized DDL statement."""

    def __init__(
        self,
        statement: str,
        table_name: str,
        phase: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details: Dict[str, Any] = {"table": table_name, "statement": statement}
        if phase:
            details["phase"] = phase
        super().__init__(f"DDL statement failed on table '{table_name}'", details, cause)
        self.statement = statement
        self.table_name = table_name
        self.phase = phase


class SchemaError(DatabaseError):
    """Raised when there's an error with database schema operations."""

    pass


class UnsupportedTypeError(SchemaError):
    """Raised when a column's logical type cannot be mapped by a dialect."""

    def __init__(
        self,
        column_name: str,
        kind: str,
        dialect: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        message = f"Unsupported type '{kind}' for column '{column_name}'"
        if reason:
            message += f": {reason}"
        details: Dict[str, Any] = {"column": column_name, "kind": kind}
        if dialect:
            details["dialect"] = dialect
        super().__init__(message, details)
        self.column_name = column_name
        self.kind = kind
        self.dialect = dialect
