"""
MySQL dialect.
"""

from typing import Any, List, Tuple

from .base import Dialect
from ..schema.types import MYSQL_TYPE_MAP, TypeMapper


class MySQLDialect(Dialect):
    """MySQL and MariaDB family rules."""

    name = "mysql"
    supports_last_insert_id = True
    supports_inline_index = True

    # VARCHAR above this length is stored as LONGTEXT
    VARCHAR_MAX_LENGTH = 65533
    LONG_TEXT_TYPE = "LONGTEXT"

    def __init__(self):
        self._type_mapper = TypeMapper(
            MYSQL_TYPE_MAP,
            dialect_name=self.name,
            varchar_max_length=self.VARCHAR_MAX_LENGTH,
            long_text_type=self.LONG_TEXT_TYPE,
        )

    @property
    def type_mapper(self) -> TypeMapper:
        return self._type_mapper

    def quote_pair(self) -> Tuple[str, str]:
        return "`", "`"

    def limit_sql(self, limit: int, offset: int = 0) -> Tuple[str, List[Any]]:
        if offset:
            return " LIMIT %s OFFSET %s", [limit, offset]
        return " LIMIT %s", [limit]

    def get_db_name(self, data_source: str) -> str:
        """
        Extract the database name from a DSN.

        The name is whatever follows the last ``/``, cut at a later ``?``:
        ``user:pass@tcp(host:3306)/shop?charset=utf8`` gives ``shop``.
        """
        start = data_source.rfind("/") + 1
        end = data_source.rfind("?")
        if end < start:
            return data_source[start:]
        return data_source[start:end]
