"""
Schema management package for tablesync.

This package provides:
- The declarative table Model
- Logical type to SQL type mapping
- DDL statement synthesis
- Schema reconciliation core logic
"""

from .model import AutoIncrement, Column, ColumnKind, ForeignKey, Model, apply_prefix
from .types import MYSQL_TYPE_MAP, TypeMapper
from .ddl import DDLSynthesizer
from .operations import ChangeType, OperationMode, ReconcilePhase, SchemaChange, SchemaOperations
from .reconciler import (
    ReconcileAction,
    ReconciliationResult,
    ReconciliationStatus,
    SchemaReconciler,
)

__all__ = [
    "AutoIncrement",
    "Column",
    "ColumnKind",
    "ForeignKey",
    "Model",
    "apply_prefix",
    "MYSQL_TYPE_MAP",
    "TypeMapper",
    "DDLSynthesizer",
    "ChangeType",
    "OperationMode",
    "ReconcilePhase",
    "SchemaChange",
    "SchemaOperations",
    "ReconcileAction",
    "ReconciliationResult",
    "ReconciliationStatus",
    "SchemaReconciler",
]
