"""
Executor capability consumed by the introspector and the reconciler.

An executor is bound to one connection. Queries hand out a scoped cursor
which is closed when the ``async with`` block exits, on every path, so no
two result sets are ever open on the same connection.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Optional

import aiomysql

from ..exceptions import DatabaseConnectionError


logger = logging.getLogger(__name__)


class TablePrefix:
    """Replaces a table-name placeholder with the configured prefix."""

    def __init__(self, prefix: str = "", placeholder: str = "#"):
        self.prefix = prefix
        self.placeholder = placeholder

    def __call__(self, name: str) -> str:
        if not self.placeholder:
            return name
        return name.replace(self.placeholder, self.prefix)

    def __repr__(self) -> str:
        return f"TablePrefix(prefix={self.prefix!r}, placeholder={self.placeholder!r})"


class Executor(ABC):
    """Query and execute capability over a single connection."""

    @property
    @abstractmethod
    def schema_name(self) -> str:
        """Name of the schema (database) the connection works in."""
        raise NotImplementedError

    @abstractmethod
    def query(self, sql: str, *args: Any) -> AsyncContextManager[Any]:
        """
        Run a query and yield its cursor.

        The cursor offers ``fetchall()`` and ``fetchone()`` coroutines
        returning dict rows, and is closed when the context exits.
        """
        raise NotImplementedError

    @abstractmethod
    async def execute(self, sql: str, *args: Any) -> int:
        """Execute a statement and return the affected row count."""
        raise NotImplementedError

    def apply_table_prefix(self, name: str) -> str:
        return name


class ConnectionExecutor(Executor):
    """Executor over one aiomysql connection."""

    def __init__(
        self,
        connection: aiomysql.Connection,
        schema_name: Optional[str] = None,
        table_prefix: Optional[TablePrefix] = None,
    ):
        self.connection = connection
        self._schema_name = schema_name or getattr(connection, "db", None) or ""
        self.table_prefix = table_prefix or TablePrefix()

    @property
    def schema_name(self) -> str:
        return self._schema_name

    @asynccontextmanager
    async def query(self, sql: str, *args: Any) -> AsyncIterator[aiomysql.DictCursor]:
        if self.connection is None or self.connection.closed:
            raise DatabaseConnectionError("Connection is closed")

        cursor = await self.connection.cursor(aiomysql.DictCursor)
        try:
            await cursor.execute(sql, args or None)
            yield cursor
        finally:
            await cursor.close()

    async def execute(self, sql: str, *args: Any) -> int:
        async with self.query(sql, *args) as cursor:
            return cursor.rowcount

    def apply_table_prefix(self, name: str) -> str:
        return self.table_prefix(name)
