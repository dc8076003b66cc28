"""
Logical column kind to SQL type mapping.

Each dialect owns a TypeMapper built from a type table. A table entry is
either the base SQL type token for a kind, or None when the kind is known
but deliberately not mapped yet.
"""

from typing import Dict, Mapping, Optional

from .model import Column, ColumnKind
from ..exceptions import UnsupportedTypeError


MYSQL_TYPE_MAP: Dict[ColumnKind, Optional[str]] = {
    ColumnKind.BOOL: "BOOLEAN",
    ColumnKind.INT8: "TINYINT",
    ColumnKind.INT16: "SMALLINT",
    ColumnKind.INT32: "INT",
    # platform-width integers are treated as 64-bit
    ColumnKind.INT64: "BIGINT",
    ColumnKind.INT: "BIGINT",
    ColumnKind.UINT8: "TINYINT",
    ColumnKind.UINT16: "SMALLINT",
    ColumnKind.UINT32: "INT",
    ColumnKind.UINT64: "BIGINT",
    ColumnKind.UINT: "BIGINT",
    ColumnKind.UINTPTR: "BIGINT",
    ColumnKind.FLOAT32: "DOUBLE",
    ColumnKind.FLOAT64: "DOUBLE",
    ColumnKind.STRING: "VARCHAR",
    ColumnKind.BYTES: "VARCHAR",
    ColumnKind.RUNES: "VARCHAR",
    # TODO: map time.Time and nullable wrappers once their storage format is settled
    ColumnKind.STRUCT: None,
}

_TEXT_KINDS = frozenset({ColumnKind.STRING, ColumnKind.BYTES, ColumnKind.RUNES})
_FLOAT_KINDS = frozenset({ColumnKind.FLOAT32, ColumnKind.FLOAT64})


class TypeMapper:
    """Pure mapping from a Column to its SQL type token."""

    def __init__(
        self,
        type_map: Mapping[ColumnKind, Optional[str]],
        dialect_name: str,
        varchar_max_length: int,
        long_text_type: str,
        unsigned_suffix: Optional[str] = " UNSIGNED",
    ):
        self.type_map = dict(type_map)
        self.dialect_name = dialect_name
        self.varchar_max_length = varchar_max_length
        self.long_text_type = long_text_type
        self.unsigned_suffix = unsigned_suffix

    def map_type(self, col: Column) -> str:
        """
        Map a column to the dialect's SQL type.

        Raises:
            UnsupportedTypeError: If the kind has no mapping in this dialect.
        """
        if col.kind not in self.type_map:
            raise UnsupportedTypeError(col.name, str(col.kind.value), self.dialect_name)

        base = self.type_map[col.kind]
        if base is None:
            kind = col.type_name or col.kind.value
            raise UnsupportedTypeError(
                col.name, kind, self.dialect_name, reason="struct columns are not mapped yet"
            )

        if col.kind in _TEXT_KINDS:
            if col.length1 < self.varchar_max_length:
                return f"{base}({col.length1})"
            return self.long_text_type

        if col.kind in _FLOAT_KINDS:
            return f"{base}({col.length1},{col.length2})"

        if col.kind.is_integer:
            sql_type = base
            if col.length1 > 0:
                sql_type += f"({col.length1})"
            if col.kind.is_unsigned:
                if self.unsigned_suffix is None:
                    raise UnsupportedTypeError(
                        col.name, col.kind.value, self.dialect_name,
                        reason="unsigned integers are not supported",
                    )
                sql_type += self.unsigned_suffix
            return sql_type

        return base
