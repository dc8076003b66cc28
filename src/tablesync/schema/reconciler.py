"""
Schema reconciliation core logic for tablesync.

Makes a live table match a Model, either by creating it or by upgrading it
in four fixed phases:

1. columns: ADD missing, MODIFY present, DROP undeclared
2. teardown: drop every FOREIGN KEY, PRIMARY KEY, UNIQUE and secondary index
3. indexes: restore declared constraints and add declared key indexes
4. auto-increment: assign AUTO_INCREMENT to the declared column

Constraints and indexes are always dropped and re-created rather than
diffed. Statements run one at a time with no transaction, so a failure
leaves the table partly upgraded.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set, Union

from .ddl import DDLSynthesizer
from .model import Model, apply_prefix
from .operations import (
    ChangeType,
    OperationMode,
    ReconcilePhase,
    SchemaChange,
    SchemaOperations,
)
from ..database.executor import Executor
from ..database.introspection import (
    ConstraintInfo,
    ConstraintKind,
    LiveSchemaSnapshot,
    SchemaIntrospector,
)
from ..dialects.base import Dialect
from ..exceptions import TablesyncError


logger = logging.getLogger(__name__)

# foreign keys go first so the indexes they rely on can be dropped
TEARDOWN_ORDER = (
    ConstraintKind.FOREIGN_KEY,
    ConstraintKind.PRIMARY_KEY,
    ConstraintKind.UNIQUE,
)


class ReconciliationStatus(str, Enum):
    """Status of reconciliation operations."""

    SUCCESS = "success"
    PLANNED = "planned"


class ReconcileAction(str, Enum):
    """Which path a reconciliation took."""

    CREATE = "create"
    UPGRADE = "upgrade"


@dataclass
class ReconciliationResult:
    """Result of a schema reconciliation operation."""

    status: ReconciliationStatus
    table: str
    action: ReconcileAction
    changes: List[SchemaChange]
    execution_time_ms: float = 0.0

    @property
    def statements(self) -> List[str]:
        return [c.sql for c in self.changes]

    @property
    def successful_changes(self) -> int:
        return sum(1 for c in self.changes if c.executed)

    def changes_of(self, change_type: ChangeType) -> List[SchemaChange]:
        return [c for c in self.changes if c.change_type == change_type]


class SchemaReconciler:
    """
    Core schema reconciliation engine for tablesync.

    One reconciler works over one executor, i.e. one connection. Calls for
    the same table must not run concurrently.
    """

    def __init__(
        self,
        executor: Executor,
        dialect: Dialect,
        operation_mode: OperationMode = OperationMode.APPLY,
    ):
        self.executor = executor
        self.dialect = dialect
        self.operation_mode = operation_mode

        self.introspector = SchemaIntrospector(executor)
        self.ddl = DDLSynthesizer(dialect)
        self.operations = SchemaOperations(executor, operation_mode)

    def prepare_model(self, model: Model) -> Model:
        """
        Apply the table prefix and validate a model without touching the database.

        Raises:
            ModelInvariantError: If the model references undeclared columns.
            UnsupportedTypeError: If a column type has no mapping.
        """
        prepared = apply_prefix(model, self.executor.apply_table_prefix)
        prepared.validate()
        for col in prepared.columns.values():
            self.dialect.map_type(col)
        return prepared

    async def ensure_table(self, model: Model) -> ReconciliationResult:
        """
        Make the live table match ``model``.

        In DRY_RUN mode the statements are planned but not executed.

        Raises:
            TablesyncError: On the first invalid model, failed catalog query
                or rejected statement.
        """
        if self.operation_mode == OperationMode.DRY_RUN:
            return await self.plan_table(model)

        loop = asyncio.get_running_loop()
        start_time = loop.time()

        prepared = self.prepare_model(model)
        table = prepared.name
        logger.info(f"Starting reconciliation for {self.introspector.schema}.{table}")

        try:
            if await self.introspector.table_exists(table):
                action = ReconcileAction.UPGRADE
                changes = await self._upgrade_table(prepared)
            else:
                action = ReconcileAction.CREATE
                changes = await self.operations.execute_batch(self.plan_create(prepared))
        except TablesyncError as e:
            logger.error(f"Reconciliation failed for {table}: {e}")
            raise

        result = ReconciliationResult(
            status=ReconciliationStatus.SUCCESS,
            table=table,
            action=action,
            changes=changes,
            execution_time_ms=(loop.time() - start_time) * 1000,
        )

        logger.info(
            f"Reconciliation completed for {table}: {action.value}, "
            f"{len(changes)} statements ({result.execution_time_ms:.1f}ms)"
        )
        return result

    async def ensure_tables(self, models: List[Model]) -> List[ReconciliationResult]:
        """Reconcile models in order, stopping at the first failure."""
        results = []
        for model in models:
            results.append(await self.ensure_table(model))
        return results

    async def plan_table(self, model: Model) -> ReconciliationResult:
        """
        Plan the statements ``ensure_table`` would run, without running them.

        The plan is built from one snapshot taken up front, whereas a real
        upgrade re-reads constraints after the column phase and indexes
        after the constraint drops.
        """
        prepared = self.prepare_model(model)
        table = prepared.name

        if not await self.introspector.table_exists(table):
            return ReconciliationResult(
                status=ReconciliationStatus.PLANNED,
                table=table,
                action=ReconcileAction.CREATE,
                changes=self.plan_create(prepared),
            )

        snapshot = await self.introspector.snapshot(table)
        changes = self.plan_columns(prepared, snapshot.columns)
        changes += self.plan_teardown(prepared, snapshot.constraints, snapshot.indexes)
        changes += self.plan_indexes(prepared)
        changes += self.plan_auto_increment(prepared)

        return ReconciliationResult(
            status=ReconciliationStatus.PLANNED,
            table=table,
            action=ReconcileAction.UPGRADE,
            changes=changes,
        )

    async def inspect_table(self, model_or_name: Union[Model, str]) -> Optional[LiveSchemaSnapshot]:
        """Snapshot a live table, or None if it does not exist."""
        if isinstance(model_or_name, Model):
            table = self.prepare_model(model_or_name).name
        else:
            table = self.executor.apply_table_prefix(model_or_name)

        if not await self.introspector.table_exists(table):
            return None
        return await self.introspector.snapshot(table)

    async def _upgrade_table(self, model: Model) -> List[SchemaChange]:
        table = model.name
        applied: List[SchemaChange] = []

        live_columns = await self.introspector.get_columns(table)
        applied += await self.operations.execute_batch(self.plan_columns(model, live_columns))

        # read after the column phase: dropping a column can drop its indexes
        constraints = await self.introspector.get_constraints(table)
        applied += await self.operations.execute_batch(
            self.plan_teardown(model, constraints, [])
        )

        # read after the constraint drops: a dropped foreign key leaves its index
        indexes = await self.introspector.get_secondary_indexes(table)
        applied += await self.operations.execute_batch(
            self.plan_teardown(model, [], indexes)
        )

        applied += await self.operations.execute_batch(self.plan_indexes(model))
        applied += await self.operations.execute_batch(self.plan_auto_increment(model))
        return applied

    def plan_create(self, model: Model) -> List[SchemaChange]:
        changes = [SchemaChange(
            change_type=ChangeType.CREATE_TABLE,
            table=model.name,
            phase=ReconcilePhase.CREATE,
            description=f"Create table {model.name}",
            sql=self.ddl.create_table(model),
        )]

        if not self.dialect.supports_inline_index:
            for name, columns in model.key_indexes.items():
                changes.append(SchemaChange(
                    change_type=ChangeType.ADD_INDEX,
                    table=model.name,
                    phase=ReconcilePhase.CREATE,
                    description=f"Add index {name}",
                    sql=self.ddl.add_index(model.name, name, columns),
                    target_object=name,
                ))

        return changes

    def plan_columns(self, model: Model, live_columns: Set[str]) -> List[SchemaChange]:
        """ADD absent columns, MODIFY present ones, DROP undeclared ones."""
        table = model.name
        changes = []

        for col in model.columns.values():
            if col.name in live_columns:
                changes.append(SchemaChange(
                    change_type=ChangeType.MODIFY_COLUMN,
                    table=table,
                    phase=ReconcilePhase.COLUMNS,
                    description=f"Modify column {col.name}",
                    sql=self.ddl.modify_column(table, col),
                    target_object=col.name,
                ))
            else:
                changes.append(SchemaChange(
                    change_type=ChangeType.ADD_COLUMN,
                    table=table,
                    phase=ReconcilePhase.COLUMNS,
                    description=f"Add column {col.name}",
                    sql=self.ddl.add_column(table, col),
                    target_object=col.name,
                ))

        for name in sorted(live_columns - set(model.columns)):
            changes.append(SchemaChange(
                change_type=ChangeType.DROP_COLUMN,
                table=table,
                phase=ReconcilePhase.COLUMNS,
                description=f"Drop column {name}",
                sql=self.ddl.drop_column(table, name),
                target_object=name,
                is_destructive=True,
            ))

        return changes

    def plan_teardown(
        self,
        model: Model,
        constraints: List[ConstraintInfo],
        indexes: List[str],
    ) -> List[SchemaChange]:
        """Drop every existing constraint and secondary index."""
        table = model.name
        changes = []

        for kind in TEARDOWN_ORDER:
            for constraint in constraints:
                if constraint.kind != kind:
                    continue
                changes.append(SchemaChange(
                    change_type=ChangeType.DROP_CONSTRAINT,
                    table=table,
                    phase=ReconcilePhase.TEARDOWN,
                    description=f"Drop {constraint}",
                    sql=self.ddl.drop_constraint(table, constraint),
                    target_object=constraint.name,
                    is_destructive=True,
                ))

        for name in indexes:
            changes.append(SchemaChange(
                change_type=ChangeType.DROP_INDEX,
                table=table,
                phase=ReconcilePhase.TEARDOWN,
                description=f"Drop index {name}",
                sql=self.ddl.drop_index(table, name),
                target_object=name,
                is_destructive=True,
            ))

        return changes

    def plan_indexes(self, model: Model) -> List[SchemaChange]:
        """Restore declared constraints, then add declared key indexes."""
        table = model.name
        changes = []

        if model.primary_key and not self._promotes_primary_key(model):
            changes.append(SchemaChange(
                change_type=ChangeType.ADD_CONSTRAINT,
                table=table,
                phase=ReconcilePhase.INDEXES,
                description="Add primary key",
                sql=self.ddl.add_primary_key(table, model.primary_key),
                target_object="PRIMARY",
            ))

        for name, columns in model.unique_indexes.items():
            changes.append(SchemaChange(
                change_type=ChangeType.ADD_CONSTRAINT,
                table=table,
                phase=ReconcilePhase.INDEXES,
                description=f"Add unique constraint {name}",
                sql=self.ddl.add_unique(table, name, columns),
                target_object=name,
            ))

        for name, fk in model.foreign_keys.items():
            changes.append(SchemaChange(
                change_type=ChangeType.ADD_CONSTRAINT,
                table=table,
                phase=ReconcilePhase.INDEXES,
                description=f"Add foreign key {name}",
                sql=self.ddl.add_foreign_key(table, name, fk),
                target_object=name,
            ))

        for name, columns in model.key_indexes.items():
            changes.append(SchemaChange(
                change_type=ChangeType.ADD_INDEX,
                table=table,
                phase=ReconcilePhase.INDEXES,
                description=f"Add index {name}",
                sql=self.ddl.add_index(table, name, columns),
                target_object=name,
            ))

        return changes

    def plan_auto_increment(self, model: Model) -> List[SchemaChange]:
        if model.auto_increment is None:
            return []

        table = model.name
        col = model.auto_increment.column
        changes = [SchemaChange(
            change_type=ChangeType.SET_AUTO_INCREMENT,
            table=table,
            phase=ReconcilePhase.AUTO_INCREMENT,
            description=f"Set auto-increment on {col.name}",
            sql=self.ddl.set_auto_increment(
                table, col, promote_primary_key=self._promotes_primary_key(model)
            ),
            target_object=col.name,
        )]

        if model.auto_increment.start > 1:
            changes.append(SchemaChange(
                change_type=ChangeType.SET_AUTO_INCREMENT,
                table=table,
                phase=ReconcilePhase.AUTO_INCREMENT,
                description=f"Start auto-increment at {model.auto_increment.start}",
                sql=self.ddl.auto_increment_start(table, model.auto_increment.start),
                target_object=col.name,
            ))

        return changes

    @staticmethod
    def _promotes_primary_key(model: Model) -> bool:
        """True when the auto-increment phase also creates the primary key."""
        if model.auto_increment is None:
            return False
        pk_names = [col.name for col in model.primary_key]
        return not pk_names or pk_names == [model.auto_increment.column.name]
