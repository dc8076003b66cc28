"""
tablesync: declarative MySQL table reconciliation.

tablesync makes a live table match an in-memory table model, creating it
when missing and otherwise altering its columns, constraints, indexes and
auto-increment column to fit.
"""

__version__ = "0.1.0"

from .config import TablesyncConfig
from .exceptions import (
    ConfigurationError,
    DatabaseError,
    SchemaError,
    TablesyncError,
    UnsupportedTypeError,
)

__all__ = [
    "__version__",
    "TablesyncConfig",
    "TablesyncError",
    "ConfigurationError",
    "DatabaseError",
    "SchemaError",
    "UnsupportedTypeError",
]
