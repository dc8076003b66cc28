"""
Database dialects for tablesync.
"""

from .base import Dialect
from .factory import DialectFactory
from .mysql import MySQLDialect

__all__ = [
    "Dialect",
    "DialectFactory",
    "MySQLDialect",
]
