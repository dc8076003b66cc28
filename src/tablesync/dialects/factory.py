"""
Dialect factory for selecting a dialect implementation by name.
"""

import logging
from typing import Dict, List, Type

from .base import Dialect
from .mysql import MySQLDialect
from ..exceptions import DialectNotFoundError, ValidationError


logger = logging.getLogger(__name__)


class DialectFactory:
    """
    Lookup table from dialect name to implementation.

    The built-in table only knows MySQL. Composition roots can add more
    with ``register_dialect`` before creating reconcilers.
    """

    _DIALECT_REGISTRY: Dict[str, Type[Dialect]] = {
        "mysql": MySQLDialect,
        "mariadb": MySQLDialect,
    }

    @classmethod
    def create(cls, name: str) -> Dialect:
        """
        Create a dialect instance by name.

        Raises:
            DialectNotFoundError: If no dialect is registered under ``name``
        """
        key = name.strip().lower()
        if key not in cls._DIALECT_REGISTRY:
            raise DialectNotFoundError(
                f"Unsupported dialect: {name}. "
                f"Available dialects: {cls.get_supported_dialects()}"
            )

        dialect = cls._DIALECT_REGISTRY[key]()
        logger.debug(f"Created {dialect}")
        return dialect

    @classmethod
    def get_supported_dialects(cls) -> List[str]:
        return list(cls._DIALECT_REGISTRY.keys())

    @classmethod
    def register_dialect(cls, name: str, dialect_class: Type[Dialect]) -> None:
        """
        Register a dialect implementation under a name.

        Raises:
            ValidationError: If the class doesn't inherit from Dialect
        """
        if not isinstance(dialect_class, type) or not issubclass(dialect_class, Dialect):
            raise ValidationError(
                f"Dialect class {dialect_class} must inherit from Dialect"
            )

        cls._DIALECT_REGISTRY[name.strip().lower()] = dialect_class
        logger.info(f"Registered dialect: {name}")

    @classmethod
    def unregister_dialect(cls, name: str) -> None:
        cls._DIALECT_REGISTRY.pop(name.strip().lower(), None)
