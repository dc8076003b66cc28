"""
Command-line interface for tablesync.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import (
    AutoIncrementDefinition,
    ColumnDefinition,
    DatabaseConnection,
    TableDefinition,
    TablesyncConfig,
)
from .database.connection import ConnectionPool
from .dialects.factory import DialectFactory
from .exceptions import ConfigurationError, TablesyncError
from .logging_setup import configure_logging
from .schema.ddl import DDLSynthesizer
from .schema.model import Model, apply_prefix
from .schema.operations import OperationMode
from .schema.reconciler import ReconciliationResult, SchemaReconciler


console = Console()

T = TypeVar("T")


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TablesyncError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if "--debug" in sys.argv:
                console.print_exception()
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """tablesync: declarative MySQL table reconciliation."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="tablesync.yaml",
    help="Output configuration file path",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite an existing file without asking",
)
@handle_errors
def init(output: str, force: bool):
    """Initialize a new tablesync configuration file."""
    if Path(output).exists() and not force:
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the database section and the table definitions")
    console.print(f"2. Run: tablesync validate-config -c {output}")
    console.print(f"3. Run: tablesync ensure --dry-run -c {output}")


@main.command()
@config_option
@click.pass_context
@handle_errors
def validate_config(ctx, config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        tablesync_config = _load_config(ctx, config)
        tablesync_config.validate_config()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {escape(str(e))}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(tablesync_config)


@main.command()
@config_option
@click.option("--table", "table_name", help="Only plan this table")
@click.pass_context
@handle_errors
def plan(ctx, config: str, table_name: Optional[str]):
    """Print CREATE TABLE statements without connecting to the database."""
    tablesync_config = _load_config(ctx, config)
    dialect = DialectFactory.create(tablesync_config.dialect)
    ddl = DDLSynthesizer(dialect)
    prefix = tablesync_config.get_table_prefix()

    for model in _select_models(tablesync_config, table_name):
        prepared = apply_prefix(model, prefix)
        prepared.validate()
        console.print(f"\n[bold cyan]{prepared.name}[/bold cyan]")
        console.print(ddl.create_table(prepared) + ";", markup=False, highlight=False)
        if not dialect.supports_inline_index:
            for name, columns in prepared.key_indexes.items():
                console.print(
                    ddl.add_index(prepared.name, name, columns) + ";",
                    markup=False,
                    highlight=False,
                )


@main.command()
@config_option
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without making changes",
)
@click.option("--table", "table_name", help="Only reconcile this table")
@click.pass_context
@handle_errors
def ensure(ctx, config: str, dry_run: bool, table_name: Optional[str]):
    """Create or upgrade the configured tables."""
    tablesync_config = _load_config(ctx, config)
    mode = OperationMode(tablesync_config.mode)
    if dry_run:
        mode = OperationMode.DRY_RUN

    models = _select_models(tablesync_config, table_name)
    if mode == OperationMode.DRY_RUN:
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]")

    async def run(reconciler: SchemaReconciler) -> Tuple[List[ReconciliationResult], Dict[str, Any]]:
        results = await reconciler.ensure_tables(models)
        changes = [change for result in results for change in result.changes]
        return results, reconciler.operations.get_execution_summary(changes)

    results, summary = _run_with_reconciler(tablesync_config, mode, run)

    for result in results:
        _display_result(result)

    verb = "planned" if mode == OperationMode.DRY_RUN else "executed"
    console.print(
        f"\n[green]✓[/green] {len(results)} table(s), "
        f"{summary['total_operations']} statement(s) {verb}"
    )
    if summary["by_type"]:
        by_type = ", ".join(f"{name}: {count}" for name, count in sorted(summary["by_type"].items()))
        console.print(f"  By type: {by_type}")
    if mode == OperationMode.APPLY:
        console.print(f"  Execution time: {summary['total_execution_time_ms']:.1f}ms")


@main.command()
@config_option
@click.option("--table", "table_name", required=True, help="Table to inspect")
@click.pass_context
@handle_errors
def inspect(ctx, config: str, table_name: str):
    """Show the live columns, constraints and indexes of a table."""
    tablesync_config = _load_config(ctx, config)

    async def run(reconciler: SchemaReconciler):
        return await reconciler.inspect_table(table_name)

    snapshot = _run_with_reconciler(tablesync_config, OperationMode.APPLY, run)

    if snapshot is None:
        console.print(f"[yellow]Table {table_name} does not exist[/yellow]")
        sys.exit(1)

    table = Table(title=f"Table {snapshot.table}")
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="green")

    for column in sorted(snapshot.columns):
        table.add_row("column", column)
    for constraint in snapshot.constraints:
        table.add_row(constraint.kind.value.lower(), constraint.name)
    for index in snapshot.indexes:
        table.add_row("index", index)

    console.print(table)


@main.command()
@config_option
@click.pass_context
@handle_errors
def test_connection(ctx, config: str):
    """Test the database connection."""
    console.print("[blue]Testing connection...[/blue]")
    tablesync_config = _load_config(ctx, config)

    async def run_connection_test():
        pool = ConnectionPool(tablesync_config.get_connection_config())
        async with pool:
            return await pool.test_connection()

    result = asyncio.run(run_connection_test())

    if result["status"] != "connected":
        console.print(f"  [red]✗ Connection failed: {escape(str(result['error']))}[/red]")
        sys.exit(1)

    console.print("  [green]✓ Connected successfully[/green]")
    console.print(f"     Server version: {result['version']}")
    console.print(f"     Database: {result['database']}")
    console.print(f"     User: {result['user']}")


def _load_config(ctx: click.Context, path: str) -> TablesyncConfig:
    tablesync_config = TablesyncConfig.from_yaml(path)
    debug = bool(ctx.obj and ctx.obj.get("debug"))
    configure_logging(tablesync_config.logging, console=console, debug=debug)
    return tablesync_config


def _select_models(config: TablesyncConfig, table_name: Optional[str]) -> List[Model]:
    if table_name is None:
        if not config.tables:
            raise ConfigurationError("No tables configured")
        return config.to_models()

    definition = config.get_table(table_name)
    try:
        return [definition.to_model()]
    except TablesyncError as e:
        raise ConfigurationError(f"Invalid table '{definition.name}': {e}") from e


def _run_with_reconciler(
    config: TablesyncConfig,
    mode: OperationMode,
    func: Callable[[SchemaReconciler], Awaitable[T]],
) -> T:
    """Open a pool, bind a reconciler to one connection and run ``func``."""
    dialect = DialectFactory.create(config.dialect)
    pool = ConnectionPool(config.get_connection_config(), config.get_table_prefix())

    async def run() -> T:
        async with pool:
            async with pool.acquire() as executor:
                return await func(SchemaReconciler(executor, dialect, mode))

    return asyncio.run(run())


def _create_default_config() -> TablesyncConfig:
    """Create a default configuration with an example table."""
    users = TableDefinition(
        name="#users",
        columns=[
            ColumnDefinition(name="id", type="uint64"),
            ColumnDefinition(name="email", type="string", length=255),
            ColumnDefinition(name="name", type="string", length=100, nullable=True),
            ColumnDefinition(name="active", type="bool", default="1"),
        ],
        primary_key=["id"],
        unique_indexes={"uq_users_email": ["email"]},
        key_indexes={"idx_users_name": ["name"]},
        auto_increment=AutoIncrementDefinition(column="id"),
    )

    return TablesyncConfig(
        database=DatabaseConnection(
            host="${MYSQL_HOST}",
            port=3306,
            database="${MYSQL_DATABASE}",
            user="${MYSQL_USER}",
            password="${MYSQL_PASSWORD}",
        ),
        table_prefix="app_",
        tables=[users],
    )


def _display_config_summary(config: TablesyncConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")
    console.print(f"  Dialect: {config.dialect}")
    console.print(f"  Mode: {config.mode}")
    if config.database is not None:
        console.print(
            f"  Database: {config.database.host}:{config.database.port}/{config.database.database}"
        )

    tables = Table(title="Tables")
    tables.add_column("Name", style="cyan")
    tables.add_column("Columns", style="magenta")
    tables.add_column("Primary Key", style="green")
    tables.add_column("Indexes", style="yellow")
    tables.add_column("Auto Increment", style="blue")

    prefix = config.get_table_prefix()
    for definition in config.tables:
        index_count = (
            len(definition.unique_indexes)
            + len(definition.key_indexes)
            + len(definition.foreign_keys)
        )
        tables.add_row(
            prefix(definition.name),
            str(len(definition.columns)),
            ", ".join(definition.primary_key) or "-",
            str(index_count),
            definition.auto_increment.column if definition.auto_increment else "-",
        )

    console.print(tables)


def _display_result(result: ReconciliationResult):
    table = Table(title=f"{result.table} ({result.action.value}, {result.status.value})")
    table.add_column("Phase", style="cyan")
    table.add_column("Change", style="magenta")
    table.add_column("Target", style="green")
    table.add_column("SQL", style="white")

    for change in result.changes:
        table.add_row(
            change.phase.value,
            change.change_type.value,
            change.target_object or "-",
            change.sql,
        )

    console.print(table)


if __name__ == "__main__":
    main()
