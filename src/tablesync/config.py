"""
Configuration system for tablesync using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .database.executor import TablePrefix
from .exceptions import ConfigurationError, TablesyncError, UnsupportedTypeError
from .schema.model import AutoIncrement, Column, ColumnKind, ForeignKey, Model


class DatabaseConnection(BaseModel):
    """Database connection configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(3306, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field("", description="Database password")
    charset: str = Field("utf8mb4", description="Connection character set")
    connect_timeout: float = Field(10.0, description="Connect timeout in seconds")

    def to_dsn(self) -> str:
        """Convert to a MySQL URL."""
        return (
            f"mysql://{self.user}:{self.password}@{self.host}:{self.port}/"
            f"{self.database}?charset={self.charset}"
        )

    def to_connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            charset=self.charset,
            connect_timeout=self.connect_timeout,
        )


class ColumnDefinition(BaseModel):
    """One column of a table definition."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Logical column kind, e.g. int64, string, bool")
    length: int = Field(0, description="Display width, max length or precision")
    scale: int = Field(0, description="Scale for float columns")
    nullable: bool = Field(False, description="Allow NULL values")
    auto_increment: bool = Field(False, description="Auto-increment column")
    default: Optional[str] = Field(None, description="Raw SQL default expression")
    type_name: Optional[str] = Field(None, description="Struct type name")

    def to_column(self) -> Column:
        try:
            kind = ColumnKind.parse(self.type)
        except UnsupportedTypeError:
            raise UnsupportedTypeError(self.name, self.type, reason="unknown column kind") from None

        return Column(
            name=self.name,
            kind=kind,
            length1=self.length,
            length2=self.scale,
            nullable=self.nullable,
            auto_increment=self.auto_increment,
            default=self.default,
            type_name=self.type_name,
        )


class ForeignKeyDefinition(BaseModel):
    """Foreign key of a table definition."""

    columns: List[str] = Field(..., description="Referencing columns")
    ref_table: str = Field(..., description="Referenced table")
    ref_columns: List[str] = Field(..., description="Referenced columns")
    on_delete: Optional[str] = Field(None, description="ON DELETE action")
    on_update: Optional[str] = Field(None, description="ON UPDATE action")


class AutoIncrementDefinition(BaseModel):
    """Auto-increment column of a table definition."""

    column: str = Field(..., description="Auto-increment column")
    start: int = Field(1, description="First value")


class TableDefinition(BaseModel):
    """Declarative table definition as written in configuration files."""

    name: str = Field(..., description="Table name, may contain the prefix placeholder")
    columns: List[ColumnDefinition] = Field(..., description="Columns in order")
    primary_key: List[str] = Field(default_factory=list, description="Primary key columns")
    unique_indexes: Dict[str, List[str]] = Field(
        default_factory=dict, description="Unique constraints by name"
    )
    key_indexes: Dict[str, List[str]] = Field(
        default_factory=dict, description="Plain indexes by name"
    )
    foreign_keys: Dict[str, ForeignKeyDefinition] = Field(
        default_factory=dict, description="Foreign keys by name"
    )
    checks: Dict[str, str] = Field(default_factory=dict, description="CHECK constraints by name")
    auto_increment: Optional[AutoIncrementDefinition] = Field(
        None, description="Auto-increment column"
    )

    @field_validator("columns")
    @classmethod
    def validate_unique_column_names(cls, v: List[ColumnDefinition]) -> List[ColumnDefinition]:
        seen = set()
        for col in v:
            if col.name in seen:
                raise ValueError(f"Duplicate column '{col.name}'")
            seen.add(col.name)
        return v

    def to_model(self) -> Model:
        """
        Build a Model, resolving column names to the declared columns.

        Raises:
            ModelInvariantError: If a key or index names an unknown column.
            UnsupportedTypeError: If a column kind is unknown.
        """
        model = Model.of(self.name, *(col.to_column() for col in self.columns))

        def refs(names: List[str]) -> List[Column]:
            return [model.column(name) for name in names]

        model.primary_key = refs(self.primary_key)
        model.unique_indexes = {name: refs(cols) for name, cols in self.unique_indexes.items()}
        model.key_indexes = {name: refs(cols) for name, cols in self.key_indexes.items()}
        model.foreign_keys = {
            name: ForeignKey(
                columns=refs(fk.columns),
                ref_table=fk.ref_table,
                ref_columns=list(fk.ref_columns),
                on_delete=fk.on_delete,
                on_update=fk.on_update,
            )
            for name, fk in self.foreign_keys.items()
        }
        model.checks = dict(self.checks)

        if self.auto_increment is not None:
            col = model.column(self.auto_increment.column)
            col.auto_increment = True
            model.auto_increment = AutoIncrement(column=col, start=self.auto_increment.start)
        else:
            flagged = [col for col in model.columns.values() if col.auto_increment]
            if len(flagged) == 1:
                model.auto_increment = AutoIncrement(column=flagged[0])

        return model


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log file format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")
    rich: bool = Field(True, description="Use rich console output")


class TablesyncConfig(BaseSettings):
    """Main tablesync configuration."""

    dialect: str = Field("mysql", description="Database dialect name")
    database: Optional[DatabaseConnection] = Field(
        None, description="Database connection"
    )
    table_prefix: str = Field("", description="Prefix substituted for the placeholder")
    prefix_placeholder: str = Field("#", description="Placeholder in table names")
    mode: Literal["apply", "dry_run"] = Field("apply", description="Reconciliation mode")

    tables: List[TableDefinition] = Field(
        default_factory=list, description="Tables to reconcile"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TABLESYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TablesyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_table(self, name: str) -> TableDefinition:
        """Get a table definition by name."""
        for table in self.tables:
            if table.name == name:
                return table
        raise ConfigurationError(f"Table definition '{name}' not found")

    def get_connection_config(self) -> ConnectionConfig:
        if self.database is None:
            raise ConfigurationError("No database connection configured")
        return self.database.to_connection_config()

    def get_table_prefix(self) -> TablePrefix:
        return TablePrefix(self.table_prefix, self.prefix_placeholder)

    def to_models(self) -> List[Model]:
        """
        Build Models for every table definition.

        Raises:
            ConfigurationError: If a table definition cannot be turned into a Model.
        """
        models = []
        for table in self.tables:
            try:
                models.append(table.to_model())
            except TablesyncError as e:
                raise ConfigurationError(f"Invalid table '{table.name}': {e}") from e
        return models

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        from .dialects.factory import DialectFactory

        DialectFactory.create(self.dialect)

        for model in self.to_models():
            try:
                model.validate()
            except TablesyncError as e:
                raise ConfigurationError(f"Invalid table '{model.name}': {e}") from e

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
