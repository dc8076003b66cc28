"""
Abstract base class for database dialects.

A dialect carries every database-family specific rule tablesync needs:
identifier quoting, type mapping, LIMIT/OFFSET synthesis, feature flags and
connection-string parsing.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Tuple

from ..schema.model import Column
from ..schema.types import TypeMapper


class Dialect(ABC):
    """Capability surface every dialect implements."""

    name: str = ""
    supports_last_insert_id: bool = False
    supports_inline_index: bool = False

    @property
    @abstractmethod
    def type_mapper(self) -> TypeMapper:
        """Type mapper for this dialect."""
        raise NotImplementedError

    @abstractmethod
    def quote_pair(self) -> Tuple[str, str]:
        """Opening and closing identifier quote characters."""
        raise NotImplementedError

    @abstractmethod
    def limit_sql(self, limit: int, offset: int = 0) -> Tuple[str, List[Any]]:
        """Build a LIMIT/OFFSET clause and its bound arguments."""
        raise NotImplementedError

    @abstractmethod
    def get_db_name(self, data_source: str) -> str:
        """Extract the database name from a connection string."""
        raise NotImplementedError

    def quote(self, identifier: str) -> str:
        """Quote an identifier, doubling any embedded closing quote."""
        left, right = self.quote_pair()
        return f"{left}{identifier.replace(right, right * 2)}{right}"

    def map_type(self, col: Column) -> str:
        return self.type_mapper.map_type(col)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
