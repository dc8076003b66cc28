"""
Database schema introspection for tablesync.

Reads the live structure of a table from MySQL's INFORMATION_SCHEMA:
its columns, its PRIMARY KEY / FOREIGN KEY / UNIQUE constraints and its
remaining secondary indexes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set

from .executor import Executor
from ..exceptions import CatalogQueryError, DatabaseError


logger = logging.getLogger(__name__)


TABLE_EXISTS_SQL = """
    SELECT `TABLE_NAME`
    FROM `INFORMATION_SCHEMA`.`TABLES`
    WHERE `TABLE_SCHEMA` = %s AND `TABLE_NAME` = %s
"""

COLUMNS_SQL = """
    SELECT `COLUMN_NAME`
    FROM `INFORMATION_SCHEMA`.`COLUMNS`
    WHERE `TABLE_SCHEMA` = %s AND `TABLE_NAME` = %s
    ORDER BY `ORDINAL_POSITION`
"""

CONSTRAINTS_SQL = """
    SELECT `CONSTRAINT_NAME`, `CONSTRAINT_TYPE`
    FROM `INFORMATION_SCHEMA`.`TABLE_CONSTRAINTS`
    WHERE `TABLE_SCHEMA` = %s AND `TABLE_NAME` = %s
    AND `CONSTRAINT_TYPE` IN ('PRIMARY KEY', 'FOREIGN KEY', 'UNIQUE')
"""

INDEXES_SQL = """
    SELECT DISTINCT `INDEX_NAME`
    FROM `INFORMATION_SCHEMA`.`STATISTICS`
    WHERE `TABLE_SCHEMA` = %s AND `TABLE_NAME` = %s
    ORDER BY `INDEX_NAME`
"""

PRIMARY_INDEX_NAME = "PRIMARY"


class ConstraintKind(str, Enum):
    """Constraint kinds the reconciler tears down."""

    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    UNIQUE = "UNIQUE"


@dataclass
class ConstraintInfo:
    """A named constraint found on a live table."""

    name: str
    kind: ConstraintKind

    def __str__(self) -> str:
        return f"{self.kind.value} {self.name}"


@dataclass
class LiveSchemaSnapshot:
    """Structure of a live table at one point in time."""

    table: str
    columns: Set[str] = field(default_factory=set)
    constraints: List[ConstraintInfo] = field(default_factory=list)
    indexes: List[str] = field(default_factory=list)

    def has_column(self, column_name: str) -> bool:
        return column_name in self.columns

    def constraints_of(self, kind: ConstraintKind) -> List[ConstraintInfo]:
        return [c for c in self.constraints if c.kind == kind]

    @property
    def constraint_names(self) -> Set[str]:
        return {c.name for c in self.constraints}


class SchemaIntrospector:
    """Read-only catalog queries for one schema."""

    def __init__(self, executor: Executor, schema: Optional[str] = None):
        self.executor = executor
        self.schema = schema or executor.schema_name

    async def table_exists(self, table: str) -> bool:
        """Check if a table exists."""
        rows = await self._fetch(TABLE_EXISTS_SQL, table, "check table existence")
        return bool(rows)

    async def get_columns(self, table: str) -> Set[str]:
        """Get the names of all columns of a table."""
        rows = await self._fetch(COLUMNS_SQL, table, "get columns")
        return {row["COLUMN_NAME"] for row in rows}

    async def get_constraints(self, table: str) -> List[ConstraintInfo]:
        """Get PRIMARY KEY, FOREIGN KEY and UNIQUE constraints of a table."""
        rows = await self._fetch(CONSTRAINTS_SQL, table, "get constraints")

        constraints = []
        for row in rows:
            try:
                kind = ConstraintKind(row["CONSTRAINT_TYPE"])
            except ValueError:
                logger.debug(
                    f"Ignoring {row['CONSTRAINT_TYPE']} constraint "
                    f"{row['CONSTRAINT_NAME']} on {self.schema}.{table}"
                )
                continue
            constraints.append(ConstraintInfo(name=row["CONSTRAINT_NAME"], kind=kind))

        return constraints

    async def get_secondary_indexes(
        self,
        table: str,
        constraints: Optional[List[ConstraintInfo]] = None,
    ) -> List[str]:
        """
        Get index names that do not back a PRIMARY KEY or UNIQUE constraint.

        An index named after a foreign key is returned: MySQL creates one
        when the key has no usable index and keeps it after the key is
        dropped.

        Args:
            table: Table name
            constraints: Constraints already read for the table; the indexes
                of its PRIMARY KEY and UNIQUE constraints are left out.
        """
        rows = await self._fetch(INDEXES_SQL, table, "get indexes")

        covered = {
            c.name for c in constraints or []
            if c.kind != ConstraintKind.FOREIGN_KEY
        }
        covered.add(PRIMARY_INDEX_NAME)

        indexes = []
        for row in rows:
            name = row["INDEX_NAME"]
            if name not in covered and name not in indexes:
                indexes.append(name)
        return indexes

    async def snapshot(self, table: str) -> LiveSchemaSnapshot:
        """Read columns, constraints and secondary indexes of a table."""
        columns = await self.get_columns(table)
        constraints = await self.get_constraints(table)
        indexes = await self.get_secondary_indexes(table, constraints)

        return LiveSchemaSnapshot(
            table=table,
            columns=columns,
            constraints=constraints,
            indexes=indexes,
        )

    async def _fetch(self, sql: str, table: str, action: str) -> List[Any]:
        try:
            async with self.executor.query(sql, self.schema, table) as cursor:
                return list(await cursor.fetchall())
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Failed to {action} for {self.schema}.{table}: {e}")
            raise CatalogQueryError(
                f"Failed to {action}", sql, f"{self.schema}.{table}", cause=e
            ) from e
