"""
Pytest configuration and shared fixtures for tablesync tests.

The centrepiece is FakeMySQLExecutor: an in-memory stand-in for one MySQL
schema. It answers the catalog queries the introspector sends and applies
the DDL the synthesizer builds, enforcing the MySQL rules the reconciler has
to respect: one primary key, auto-increment columns must be keys, drops
must name existing objects. Foreign keys behave as in InnoDB. A key without
a usable index gets one named after it, that index outlives the key, and an
index a live foreign key depends on cannot be dropped.
"""

import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
import yaml

from tablesync.database.executor import Executor, TablePrefix
from tablesync.database.introspection import (
    COLUMNS_SQL,
    CONSTRAINTS_SQL,
    INDEXES_SQL,
    PRIMARY_INDEX_NAME,
    TABLE_EXISTS_SQL,
)
from tablesync.dialects.mysql import MySQLDialect
from tablesync.schema.model import AutoIncrement, Column, ColumnKind, ForeignKey, Model


# ============================================================================
# Fake MySQL catalog
# ============================================================================

IDENT = r"`((?:[^`]|``)+)`"


class FakeMySQLError(Exception):
    """Error raised by the fake server, like a pymysql OperationalError."""


def _ident(text: str) -> str:
    return text.replace("``", "`")


def _names(text: str) -> List[str]:
    return [_ident(m) for m in re.findall(IDENT, text)]


def split_top_level(body: str) -> List[str]:
    """Split on commas that are outside parentheses and backticks."""
    items, current = [], []
    depth, quoted = 0, False
    for ch in body:
        if ch == "`":
            quoted = not quoted
        elif not quoted:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif ch == "," and depth == 0:
                items.append("".join(current).strip())
                current = []
                continue
        current.append(ch)
    if current:
        items.append("".join(current).strip())
    return items


@dataclass
class FakeTable:
    """Live state of one table in the fake catalog."""

    name: str
    columns: Dict[str, str] = field(default_factory=dict)  # name -> definition
    constraints: Dict[str, Tuple[str, Tuple[str, ...]]] = field(default_factory=dict)
    indexes: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    checks: Dict[str, str] = field(default_factory=dict)
    fk_indexes: Set[str] = field(default_factory=set)  # created for a foreign key
    auto_increment: Optional[str] = None
    auto_increment_start: int = 1

    def state(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns.items()),
            "constraints": dict(self.constraints),
            "indexes": dict(self.indexes),
            "checks": dict(self.checks),
            "auto_increment": self.auto_increment,
            "auto_increment_start": self.auto_increment_start,
        }

    def keys(self) -> List[Tuple[str, ...]]:
        return [cols for _, cols in self.constraints.values()] + list(self.indexes.values())


class FakeCursor:
    """Cursor over a fixed list of dict rows."""

    def __init__(self, rows: List[Dict[str, Any]], rowcount: int = 0):
        self._rows = list(rows)
        self.rowcount = rowcount
        self.closed = False

    async def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    async def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    async def close(self) -> None:
        self.closed = True


class FakeMySQLExecutor(Executor):
    """Executor backed by an in-memory MySQL catalog."""

    def __init__(
        self,
        schema_name: str = "shop",
        table_prefix: Optional[TablePrefix] = None,
        fail_on: Optional[str] = None,
    ):
        self._schema_name = schema_name
        self.table_prefix = table_prefix or TablePrefix()
        self.fail_on = fail_on
        self.tables: Dict[str, FakeTable] = {}
        self.statements: List[str] = []
        self.queries: List[Tuple[str, Tuple[Any, ...]]] = []
        self.cursors: List[FakeCursor] = []

    @property
    def schema_name(self) -> str:
        return self._schema_name

    def apply_table_prefix(self, name: str) -> str:
        return self.table_prefix(name)

    def state(self, table: str) -> Dict[str, Any]:
        return self.tables[table].state()

    def seed(self, *statements: str) -> None:
        """Apply DDL directly, without recording it."""
        for sql in statements:
            self._apply(sql)

    def reset_log(self) -> None:
        self.statements.clear()
        self.queries.clear()

    @asynccontextmanager
    async def query(self, sql: str, *args: Any):
        self.queries.append((sql, args))
        cursor = FakeCursor(self._answer(sql, args))
        self.cursors.append(cursor)
        try:
            yield cursor
        finally:
            await cursor.close()

    async def execute(self, sql: str, *args: Any) -> int:
        self.statements.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise FakeMySQLError(f"simulated failure: {sql}")
        self._apply(sql)
        return 0

    # catalog queries

    def _answer(self, sql: str, args: Tuple[Any, ...]) -> List[Dict[str, Any]]:
        schema, table_name = args
        table = self.tables.get(table_name) if schema == self._schema_name else None

        if sql == TABLE_EXISTS_SQL:
            return [{"TABLE_NAME": table_name}] if table else []
        if table is None:
            return []
        if sql == COLUMNS_SQL:
            return [{"COLUMN_NAME": name} for name in table.columns]
        if sql == CONSTRAINTS_SQL:
            return [
                {"CONSTRAINT_NAME": name, "CONSTRAINT_TYPE": kind}
                for name, (kind, _) in table.constraints.items()
            ]
        if sql == INDEXES_SQL:
            names = [
                name for name, (kind, _) in table.constraints.items()
                if kind in ("PRIMARY KEY", "UNIQUE")
            ]
            return [{"INDEX_NAME": name} for name in sorted(names + list(table.indexes))]
        raise FakeMySQLError(f"unexpected query: {sql}")

    # DDL

    def _apply(self, sql: str) -> None:
        m = re.match(
            rf"^CREATE TABLE IF NOT EXISTS {IDENT} \((.*)\)( AUTO_INCREMENT=(\d+))?$", sql, re.S
        )
        if m:
            name = _ident(m.group(1))
            if name in self.tables:
                return
            table = FakeTable(name=name)
            foreign_keys = []
            for item in split_top_level(m.group(2)):
                if " FOREIGN KEY " in item:
                    foreign_keys.append(item)
                elif item.startswith("CONSTRAINT "):
                    self._add_constraint(table, item)
                elif item.startswith("INDEX "):
                    index = re.match(rf"^INDEX {IDENT} (\(.*\))$", item)
                    self._add_index(table, _ident(index.group(1)), _names(index.group(2)))
                else:
                    self._set_column(table, item, adding=True)
            # every other key exists before a foreign key looks for an index
            for item in foreign_keys:
                self._add_constraint(table, item)
            if m.group(4):
                table.auto_increment_start = int(m.group(4))
            self._check_auto_increment(table)
            self.tables[name] = table
            return

        m = re.match(rf"^ALTER TABLE {IDENT} (.*)$", sql, re.S)
        if not m:
            raise FakeMySQLError(f"You have an error in your SQL syntax: {sql}")
        table = self.tables.get(_ident(m.group(1)))
        if table is None:
            raise FakeMySQLError(f"Table '{m.group(1)}' doesn't exist")
        self._alter(table, m.group(2))
        self._check_auto_increment(table)

    def _alter(self, table: FakeTable, action: str) -> None:
        if action.startswith("ADD COLUMN "):
            self._set_column(table, action[len("ADD COLUMN "):], adding=True)
        elif action.startswith("MODIFY COLUMN "):
            self._set_column(table, action[len("MODIFY COLUMN "):], adding=False)
        elif action.startswith("DROP COLUMN "):
            self._drop_column(table, _names(action)[0])
        elif action == "DROP PRIMARY KEY":
            if PRIMARY_INDEX_NAME not in table.constraints:
                raise FakeMySQLError("Can't DROP 'PRIMARY'; check that column/key exists")
            self._check_foreign_key_indexes(table, PRIMARY_INDEX_NAME)
            del table.constraints[PRIMARY_INDEX_NAME]
        elif action.startswith("DROP FOREIGN KEY "):
            name = _names(action)[0]
            if table.constraints.get(name, ("",))[0] != "FOREIGN KEY":
                raise FakeMySQLError(f"Can't DROP '{name}'; check that column/key exists")
            # the index created for the key stays behind as a plain index
            del table.constraints[name]
            table.fk_indexes.discard(name)
        elif action.startswith("DROP INDEX "):
            name = _names(action)[0]
            if name in table.indexes:
                self._check_foreign_key_indexes(table, name)
                del table.indexes[name]
                table.fk_indexes.discard(name)
            elif table.constraints.get(name, ("",))[0] == "UNIQUE":
                self._check_foreign_key_indexes(table, name)
                del table.constraints[name]
            else:
                raise FakeMySQLError(f"Can't DROP '{name}'; check that column/key exists")
        elif action.startswith("ADD INDEX "):
            m = re.match(rf"^ADD INDEX {IDENT} (\(.*\))$", action)
            self._add_index(table, _ident(m.group(1)), _names(m.group(2)))
        elif action.startswith("ADD CONSTRAINT "):
            self._add_constraint(table, action[len("ADD "):])
        elif action.startswith("AUTO_INCREMENT="):
            table.auto_increment_start = int(action[len("AUTO_INCREMENT="):])
        else:
            raise FakeMySQLError(f"You have an error in your SQL syntax: {action}")

    def _set_column(self, table: FakeTable, definition: str, adding: bool) -> None:
        m = re.match(rf"^{IDENT} (.*)$", definition, re.S)
        name, rest = _ident(m.group(1)), m.group(2)
        if adding and name in table.columns:
            raise FakeMySQLError(f"Duplicate column name '{name}'")
        if not adding and name not in table.columns:
            raise FakeMySQLError(f"Unknown column '{name}' in '{table.name}'")

        auto_increment = rest.endswith(" AUTO_INCREMENT")
        if auto_increment:
            rest = rest[: -len(" AUTO_INCREMENT")]
        primary = rest.endswith(" PRIMARY KEY")
        if primary:
            rest = rest[: -len(" PRIMARY KEY")]

        table.columns[name] = rest
        if auto_increment:
            table.auto_increment = name
        elif table.auto_increment == name:
            table.auto_increment = None
        if primary:
            self._add_primary_key(table, [name])

    def _drop_column(self, table: FakeTable, name: str) -> None:
        if name not in table.columns:
            raise FakeMySQLError(f"Can't DROP '{name}'; check that column/key exists")
        del table.columns[name]
        if table.auto_increment == name:
            table.auto_increment = None

        # MySQL shrinks every key using the column and drops emptied ones
        for index_name, cols in list(table.indexes.items()):
            remaining = tuple(c for c in cols if c != name)
            if remaining:
                table.indexes[index_name] = remaining
            else:
                del table.indexes[index_name]
        for constraint_name, (kind, cols) in list(table.constraints.items()):
            remaining = tuple(c for c in cols if c != name)
            if remaining:
                table.constraints[constraint_name] = (kind, remaining)
            else:
                del table.constraints[constraint_name]
        table.fk_indexes &= set(table.indexes)

    def _add_constraint(self, table: FakeTable, clause: str) -> None:
        m = re.match(rf"^CONSTRAINT {IDENT} (PRIMARY KEY|UNIQUE|FOREIGN KEY|CHECK) (.*)$", clause, re.S)
        if not m:
            raise FakeMySQLError(f"You have an error in your SQL syntax: {clause}")
        name, kind, rest = _ident(m.group(1)), m.group(2), m.group(3)

        if kind == "CHECK":
            table.checks[name] = rest[1:-1]
            return

        cols = _names(rest.split(" REFERENCES ")[0])
        self._check_columns(table, cols)
        if kind == "PRIMARY KEY":
            self._add_primary_key(table, cols)
            return
        if kind == "FOREIGN KEY":
            self._add_foreign_key(table, name, cols)
            return
        if name in table.constraints or name in table.indexes:
            raise FakeMySQLError(f"Duplicate key name '{name}'")
        table.constraints[name] = (kind, tuple(cols))
        self._drop_redundant_fk_indexes(table)

    def _add_primary_key(self, table: FakeTable, cols: List[str]) -> None:
        if PRIMARY_INDEX_NAME in table.constraints:
            raise FakeMySQLError("Multiple primary key defined")
        table.constraints[PRIMARY_INDEX_NAME] = ("PRIMARY KEY", tuple(cols))
        self._drop_redundant_fk_indexes(table)

    def _add_foreign_key(self, table: FakeTable, name: str, cols: List[str]) -> None:
        if name in table.constraints:
            raise FakeMySQLError(f"Duplicate foreign key constraint name '{name}'")
        table.constraints[name] = ("FOREIGN KEY", tuple(cols))
        if self._has_usable_index(table, cols):
            return
        if name in table.indexes:
            raise FakeMySQLError(f"Duplicate key name '{name}'")
        table.indexes[name] = tuple(cols)
        table.fk_indexes.add(name)

    def _add_index(self, table: FakeTable, name: str, cols: List[str]) -> None:
        self._check_columns(table, cols)
        if name in table.indexes or name in table.constraints:
            raise FakeMySQLError(f"Duplicate key name '{name}'")
        table.indexes[name] = tuple(cols)
        self._drop_redundant_fk_indexes(table)

    @staticmethod
    def _has_usable_index(table: FakeTable, cols, skip: Optional[str] = None) -> bool:
        """True when some index other than ``skip`` starts with ``cols``."""
        cols = tuple(cols)
        keys = [
            key for name, (kind, key) in table.constraints.items()
            if kind != "FOREIGN KEY" and name != skip
        ]
        keys += [key for name, key in table.indexes.items() if name != skip]
        return any(key[:len(cols)] == cols for key in keys)

    def _foreign_keys(self, table: FakeTable) -> List[Tuple[str, Tuple[str, ...]]]:
        return [
            (name, cols) for name, (kind, cols) in table.constraints.items()
            if kind == "FOREIGN KEY"
        ]

    def _check_foreign_key_indexes(self, table: FakeTable, dropping: str) -> None:
        for name, cols in self._foreign_keys(table):
            if not self._has_usable_index(table, cols, skip=dropping):
                raise FakeMySQLError(
                    f"Cannot drop index '{dropping}': needed in a foreign key constraint"
                )

    def _drop_redundant_fk_indexes(self, table: FakeTable) -> None:
        # InnoDB silently drops the index it made once another one can serve the key
        for name, cols in self._foreign_keys(table):
            if name in table.fk_indexes and self._has_usable_index(table, cols, skip=name):
                del table.indexes[name]
                table.fk_indexes.discard(name)

    @staticmethod
    def _check_columns(table: FakeTable, cols: List[str]) -> None:
        for col in cols:
            if col not in table.columns:
                raise FakeMySQLError(f"Key column '{col}' doesn't exist in table")

    @staticmethod
    def _check_auto_increment(table: FakeTable) -> None:
        if table.auto_increment is None:
            return
        if not any(cols and cols[0] == table.auto_increment for cols in table.keys()):
            raise FakeMySQLError(
                "Incorrect table definition; there can be only one auto column "
                "and it must be defined as a key"
            )


# ============================================================================
# Model fixtures
# ============================================================================

@pytest.fixture
def dialect() -> MySQLDialect:
    return MySQLDialect()


@pytest.fixture
def fake_executor() -> FakeMySQLExecutor:
    return FakeMySQLExecutor()


def build_users_model(name: str = "users", start: int = 1) -> Model:
    """Users table with every kind of key, index and constraint."""
    id_col = Column("id", ColumnKind.UINT64, auto_increment=True)
    email = Column("email", ColumnKind.STRING, length1=255)
    full_name = Column("name", ColumnKind.STRING, length1=100, nullable=True)
    org_id = Column("org_id", ColumnKind.UINT64, nullable=True)
    age = Column("age", ColumnKind.INT32, default="0")

    return Model.of(
        name,
        id_col,
        email,
        full_name,
        org_id,
        age,
        primary_key=[id_col],
        unique_indexes={"uq_users_email": [email]},
        key_indexes={"idx_users_name": [full_name]},
        foreign_keys={
            "fk_users_org": ForeignKey([org_id], "orgs", ["id"], on_delete="cascade"),
        },
        checks={"chk_users_age": "`age` >= 0"},
        auto_increment=AutoIncrement(id_col, start=start),
    )


@pytest.fixture
def users_model() -> Model:
    return build_users_model()


@pytest.fixture
def simple_model() -> Model:
    """Model with plain columns only."""
    return Model.of(
        "simple",
        Column("b", ColumnKind.INT32),
        Column("c", ColumnKind.STRING, length1=50),
        Column("d", ColumnKind.BOOL),
    )


# ============================================================================
# Configuration fixtures
# ============================================================================

@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    return {
        "dialect": "mysql",
        "database": {
            "host": "localhost",
            "port": 3306,
            "database": "shop",
            "user": "app",
            "password": "secret",
        },
        "table_prefix": "app_",
        "tables": [
            {
                "name": "#orgs",
                "columns": [
                    {"name": "id", "type": "uint64", "auto_increment": True},
                    {"name": "title", "type": "string", "length": 200},
                ],
                "primary_key": ["id"],
            },
            {
                "name": "#users",
                "columns": [
                    {"name": "id", "type": "uint64"},
                    {"name": "email", "type": "string", "length": 255},
                    {"name": "org_id", "type": "uint64", "nullable": True},
                ],
                "primary_key": ["id"],
                "unique_indexes": {"uq_users_email": ["email"]},
                "key_indexes": {"idx_users_org": ["org_id"]},
                "foreign_keys": {
                    "fk_users_org": {
                        "columns": ["org_id"],
                        "ref_table": "#orgs",
                        "ref_columns": ["id"],
                        "on_delete": "cascade",
                    },
                },
                "auto_increment": {"column": "id", "start": 1000},
            },
        ],
    }


@pytest.fixture
def config_file(tmp_path, sample_config_dict) -> str:
    path = tmp_path / "tablesync.yaml"
    path.write_text(yaml.safe_dump(sample_config_dict, sort_keys=False))
    return str(path)
