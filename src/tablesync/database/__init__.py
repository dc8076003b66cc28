"""
Database integration package for tablesync.

This package provides:
- Async MySQL connection pooling
- The executor capability over a single connection
- Catalog introspection of columns, constraints and indexes
"""

from .connection import ConnectionConfig, ConnectionPool
from .executor import ConnectionExecutor, Executor, TablePrefix
from .introspection import (
    ConstraintInfo,
    ConstraintKind,
    LiveSchemaSnapshot,
    SchemaIntrospector,
)

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
    "ConnectionExecutor",
    "Executor",
    "TablePrefix",
    "ConstraintInfo",
    "ConstraintKind",
    "LiveSchemaSnapshot",
    "SchemaIntrospector",
]
