"""
DDL statement synthesis for tablesync.

Builds complete CREATE TABLE and ALTER TABLE statements from a Model.
Nothing in this module talks to the database.
"""

from typing import Iterable, List

from .model import Column, ForeignKey, Model
from ..database.introspection import ConstraintInfo, ConstraintKind
from ..dialects.base import Dialect


PRIMARY_KEY_NAME = "pk"


class DDLSynthesizer:
    """String builder for one dialect's DDL."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    def quote(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    def column_list(self, columns: Iterable[Column]) -> str:
        return "(" + ", ".join(self.quote(col.name) for col in columns) + ")"

    def column_definition(self, col: Column, auto_increment: bool = True) -> str:
        """
        Build ``<name> <type> NULL|NOT NULL [DEFAULT ..] [AUTO_INCREMENT]``.

        Args:
            col: Column to describe
            auto_increment: Emit AUTO_INCREMENT for flagged columns. The
                upgrade path leaves it out and assigns it in its last phase.
        """
        parts = [self.quote(col.name), self.dialect.map_type(col)]
        parts.append("NULL" if col.nullable else "NOT NULL")
        if col.default is not None:
            parts.append(f"DEFAULT {col.default}")
        if auto_increment and col.auto_increment:
            parts.append("AUTO_INCREMENT")
        return " ".join(parts)

    # Table-level clauses shared by CREATE TABLE and ALTER TABLE ... ADD

    def primary_key_clause(self, columns: List[Column]) -> str:
        return f"CONSTRAINT {self.quote(PRIMARY_KEY_NAME)} PRIMARY KEY {self.column_list(columns)}"

    def unique_clause(self, name: str, columns: List[Column]) -> str:
        return f"CONSTRAINT {self.quote(name)} UNIQUE {self.column_list(columns)}"

    def foreign_key_clause(self, name: str, fk: ForeignKey) -> str:
        refs = "(" + ", ".join(self.quote(c) for c in fk.ref_columns) + ")"
        clause = (
            f"CONSTRAINT {self.quote(name)} FOREIGN KEY {self.column_list(fk.columns)} "
            f"REFERENCES {self.quote(fk.ref_table)} {refs}"
        )
        if fk.on_delete:
            clause += f" ON DELETE {fk.on_delete.upper()}"
        if fk.on_update:
            clause += f" ON UPDATE {fk.on_update.upper()}"
        return clause

    def check_clause(self, name: str, expression: str) -> str:
        return f"CONSTRAINT {self.quote(name)} CHECK ({expression})"

    def index_clause(self, name: str, columns: List[Column]) -> str:
        return f"INDEX {self.quote(name)} {self.column_list(columns)}"

    # CREATE path

    def create_table(self, model: Model) -> str:
        """Build the CREATE TABLE IF NOT EXISTS statement for a model."""
        items = [self.column_definition(col) for col in model.columns.values()]

        if model.primary_key:
            items.append(self.primary_key_clause(model.primary_key))
        elif model.auto_increment is not None:
            # an auto-increment column must be a key
            items.append(self.primary_key_clause([model.auto_increment.column]))
        for name, columns in model.unique_indexes.items():
            items.append(self.unique_clause(name, columns))
        for name, fk in model.foreign_keys.items():
            items.append(self.foreign_key_clause(name, fk))
        for name, expression in model.checks.items():
            items.append(self.check_clause(name, expression))
        if self.dialect.supports_inline_index:
            for name, columns in model.key_indexes.items():
                items.append(self.index_clause(name, columns))

        sql = f"CREATE TABLE IF NOT EXISTS {self.quote(model.name)} ({', '.join(items)})"
        if model.auto_increment is not None and model.auto_increment.start > 1:
            sql += f" AUTO_INCREMENT={model.auto_increment.start}"
        return sql

    # ALTER path

    def alter_table(self, table: str) -> str:
        return f"ALTER TABLE {self.quote(table)}"

    def add_column(self, table: str, col: Column) -> str:
        return f"{self.alter_table(table)} ADD COLUMN {self.column_definition(col, auto_increment=False)}"

    def modify_column(self, table: str, col: Column) -> str:
        return f"{self.alter_table(table)} MODIFY COLUMN {self.column_definition(col, auto_increment=False)}"

    def drop_column(self, table: str, column_name: str) -> str:
        return f"{self.alter_table(table)} DROP COLUMN {self.quote(column_name)}"

    def add_index(self, table: str, name: str, columns: List[Column]) -> str:
        return f"{self.alter_table(table)} ADD INDEX {self.quote(name)} {self.column_list(columns)}"

    def drop_index(self, table: str, name: str) -> str:
        return f"{self.alter_table(table)} DROP INDEX {self.quote(name)}"

    def drop_constraint(self, table: str, constraint: ConstraintInfo) -> str:
        if constraint.kind == ConstraintKind.PRIMARY_KEY:
            return f"{self.alter_table(table)} DROP PRIMARY KEY"
        if constraint.kind == ConstraintKind.FOREIGN_KEY:
            return f"{self.alter_table(table)} DROP FOREIGN KEY {self.quote(constraint.name)}"
        return self.drop_index(table, constraint.name)

    def add_primary_key(self, table: str, columns: List[Column]) -> str:
        return f"{self.alter_table(table)} ADD {self.primary_key_clause(columns)}"

    def add_unique(self, table: str, name: str, columns: List[Column]) -> str:
        return f"{self.alter_table(table)} ADD {self.unique_clause(name, columns)}"

    def add_foreign_key(self, table: str, name: str, fk: ForeignKey) -> str:
        return f"{self.alter_table(table)} ADD {self.foreign_key_clause(name, fk)}"

    def set_auto_increment(
        self, table: str, col: Column, promote_primary_key: bool = True
    ) -> str:
        """
        Make ``col`` the auto-increment column.

        MySQL only accepts AUTO_INCREMENT on a key column, so by default the
        column is promoted to PRIMARY KEY in the same statement.
        """
        sql = f"{self.alter_table(table)} MODIFY COLUMN {self.column_definition(col, auto_increment=False)}"
        if promote_primary_key:
            sql += " PRIMARY KEY"
        return sql + " AUTO_INCREMENT"

    def auto_increment_start(self, table: str, start: int) -> str:
        return f"{self.alter_table(table)} AUTO_INCREMENT={start}"
