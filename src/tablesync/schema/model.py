"""
Declarative table model for tablesync.

A Model describes the table a caller wants: its columns in declaration
order, keys, indexes, constraints and auto-increment setting. Models are
plain values; nothing here touches the database.
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..exceptions import ModelInvariantError, UnsupportedTypeError


class ColumnKind(str, Enum):
    """Logical column kinds a dialect knows how to map."""

    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    INT = "int"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    UINT = "uint"
    UINTPTR = "uintptr"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    BYTES = "bytes"
    RUNES = "runes"
    STRUCT = "struct"

    @property
    def is_unsigned(self) -> bool:
        return self in _UNSIGNED_KINDS

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_KINDS

    @classmethod
    def parse(cls, text: str) -> "ColumnKind":
        """Parse a kind name as written in configuration files."""
        key = text.strip().lower()
        key = _KIND_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedTypeError("<config>", text, reason="unknown column kind") from None


_UNSIGNED_KINDS = frozenset({
    ColumnKind.UINT8,
    ColumnKind.UINT16,
    ColumnKind.UINT32,
    ColumnKind.UINT64,
    ColumnKind.UINT,
    ColumnKind.UINTPTR,
})

_INTEGER_KINDS = _UNSIGNED_KINDS | frozenset({
    ColumnKind.INT8,
    ColumnKind.INT16,
    ColumnKind.INT32,
    ColumnKind.INT64,
    ColumnKind.INT,
})

_KIND_ALIASES = {
    "boolean": "bool",
    "tinyint": "int8",
    "smallint": "int16",
    "integer": "int32",
    "bigint": "int64",
    "float": "float64",
    "double": "float64",
    "str": "string",
    "text": "string",
    "bytea": "bytes",
    "blob": "bytes",
}

_SEQUENCE_KINDS = {8: ColumnKind.BYTES, 32: ColumnKind.RUNES}

FK_ACTIONS = frozenset({"RESTRICT", "CASCADE", "SET NULL", "NO ACTION", "SET DEFAULT"})


@dataclass
class Column:
    """A single column of a table model."""

    name: str
    kind: ColumnKind
    length1: int = 0
    length2: int = 0
    nullable: bool = False
    auto_increment: bool = False
    default: Optional[str] = None
    type_name: Optional[str] = None  # struct kinds only, e.g. "time.Time"

    @classmethod
    def sequence(cls, name: str, element_bits: int, **kwargs) -> "Column":
        """Build a byte or rune sequence column from its element width."""
        kind = _SEQUENCE_KINDS.get(element_bits)
        if kind is None:
            raise UnsupportedTypeError(
                name,
                f"sequence[{element_bits}-bit]",
                reason="only 8-bit and 32-bit element sequences are supported",
            )
        return cls(name=name, kind=kind, **kwargs)


@dataclass
class ForeignKey:
    """Referential constraint from columns of this table to another table."""

    columns: List[Column]
    ref_table: str
    ref_columns: List[str]
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class AutoIncrement:
    """Auto-increment column and its starting value."""

    column: Column
    start: int = 1


@dataclass
class Model:
    """Declarative description of one table."""

    name: str
    columns: Dict[str, Column] = field(default_factory=dict)
    primary_key: List[Column] = field(default_factory=list)
    unique_indexes: Dict[str, List[Column]] = field(default_factory=dict)
    key_indexes: Dict[str, List[Column]] = field(default_factory=dict)
    foreign_keys: Dict[str, ForeignKey] = field(default_factory=dict)
    checks: Dict[str, str] = field(default_factory=dict)
    auto_increment: Optional[AutoIncrement] = None

    @classmethod
    def of(cls, name: str, *columns: Column, **kwargs) -> "Model":
        """Build a model whose column mapping follows the given order."""
        return cls(name=name, columns={col.name: col for col in columns}, **kwargs)

    def column(self, name: str) -> Column:
        """Get a declared column by name."""
        try:
            return self.columns[name]
        except KeyError:
            raise ModelInvariantError(self.name, f"unknown column '{name}'") from None

    @property
    def auto_increment_column(self) -> Optional[Column]:
        return self.auto_increment.column if self.auto_increment else None

    def validate(self) -> None:
        """
        Check the structural invariants of the model.

        Raises:
            ModelInvariantError: If the model references a column it does not
                declare, or the auto-increment settings disagree.
        """
        if not self.name or not self.name.strip():
            raise ModelInvariantError(self.name or "<unnamed>", "table name is empty")

        for key, col in self.columns.items():
            if key != col.name:
                raise ModelInvariantError(
                    self.name,
                    "column mapping key differs from column name",
                    {"key": key, "column": col.name},
                )

        self._check_refs("primary key", self.primary_key, allow_empty=True)
        for index_name, cols in self.unique_indexes.items():
            self._check_refs(f"unique index '{index_name}'", cols)
        for index_name, cols in self.key_indexes.items():
            self._check_refs(f"key index '{index_name}'", cols)

        for fk_name, fk in self.foreign_keys.items():
            self._check_refs(f"foreign key '{fk_name}'", fk.columns)
            if len(fk.columns) != len(fk.ref_columns):
                raise ModelInvariantError(
                    self.name,
                    f"foreign key '{fk_name}' has {len(fk.columns)} columns "
                    f"but references {len(fk.ref_columns)}",
                )
            if not fk.ref_table:
                raise ModelInvariantError(self.name, f"foreign key '{fk_name}' has no target table")
            for action in (fk.on_delete, fk.on_update):
                if action is not None and action.upper() not in FK_ACTIONS:
                    raise ModelInvariantError(
                        self.name,
                        f"foreign key '{fk_name}' has unknown action '{action}'",
                    )

        flagged = [col.name for col in self.columns.values() if col.auto_increment]
        if len(flagged) > 1:
            raise ModelInvariantError(
                self.name, "more than one auto-increment column", {"columns": flagged}
            )
        if self.auto_increment is None:
            if flagged:
                raise ModelInvariantError(
                    self.name,
                    f"column '{flagged[0]}' is auto-increment but the model declares no auto-increment",
                )
            return

        self._check_refs("auto-increment", [self.auto_increment.column])
        if flagged != [self.auto_increment.column.name]:
            raise ModelInvariantError(
                self.name,
                f"auto-increment column '{self.auto_increment.column.name}' is not flagged auto_increment",
            )
        if self.auto_increment.start < 1:
            raise ModelInvariantError(
                self.name, "auto-increment start must be >= 1",
                {"start": self.auto_increment.start},
            )

    def _check_refs(self, owner: str, cols: List[Column], allow_empty: bool = False) -> None:
        if not cols and not allow_empty:
            raise ModelInvariantError(self.name, f"{owner} has no columns")
        for col in cols:
            declared = self.columns.get(col.name)
            if declared is None:
                raise ModelInvariantError(
                    self.name,
                    f"{owner} references undeclared column '{col.name}'",
                )
            if declared != col:
                raise ModelInvariantError(
                    self.name,
                    f"{owner} references a column '{col.name}' that differs from the declared one",
                )


def apply_prefix(model: Model, transform: Callable[[str], str]) -> Model:
    """
    Return a copy of ``model`` with table names passed through ``transform``.

    The table name and every foreign key target are rewritten. The input
    model is left untouched.
    """
    foreign_keys = {
        name: replace(fk, ref_table=transform(fk.ref_table), columns=list(fk.columns))
        for name, fk in model.foreign_keys.items()
    }
    return replace(
        model,
        name=transform(model.name),
        columns=dict(model.columns),
        primary_key=list(model.primary_key),
        unique_indexes={k: list(v) for k, v in model.unique_indexes.items()},
        key_indexes={k: list(v) for k, v in model.key_indexes.items()},
        foreign_keys=foreign_keys,
        checks=dict(model.checks),
        auto_increment=copy.copy(model.auto_increment),
    )
