"""
Schema change records and their execution.

Every synthesized statement is wrapped in a SchemaChange and run on its own,
in order, outside of any transaction. The first failure stops the batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..database.executor import Executor
from ..exceptions import DDLExecutionError


logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Types of schema changes."""

    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    MODIFY_COLUMN = "modify_column"
    DROP_COLUMN = "drop_column"
    DROP_CONSTRAINT = "drop_constraint"
    DROP_INDEX = "drop_index"
    ADD_CONSTRAINT = "add_constraint"
    ADD_INDEX = "add_index"
    SET_AUTO_INCREMENT = "set_auto_increment"


class ReconcilePhase(str, Enum):
    """Phase of a reconciliation a change belongs to."""

    CREATE = "create"
    COLUMNS = "columns"
    TEARDOWN = "teardown"
    INDEXES = "indexes"
    AUTO_INCREMENT = "auto_increment"


class OperationMode(str, Enum):
    """Schema operation modes."""

    APPLY = "apply"        # Execute every statement
    DRY_RUN = "dry_run"    # Generate SQL but don't execute


@dataclass
class SchemaChange:
    """Represents a schema change operation."""

    change_type: ChangeType
    table: str
    phase: ReconcilePhase
    description: str
    sql: str
    target_object: Optional[str] = None  # Column name, index name, etc.
    is_destructive: bool = False

    # Execution results
    executed: bool = False
    execution_time_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_executed(self) -> bool:
        return self.executed

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def change_id(self) -> str:
        """Get identifier for this change."""
        target = self.target_object or self.table
        return f"{self.change_type.value}_{self.table}_{target}"


class SchemaOperations:
    """Sequential executor for schema changes."""

    def __init__(self, executor: Executor, operation_mode: OperationMode = OperationMode.APPLY):
        self.executor = executor
        self.operation_mode = operation_mode

    async def execute_change(self, change: SchemaChange) -> SchemaChange:
        """
        Execute one schema change.

        Raises:
            DDLExecutionError: If the database rejects the statement.
        """
        if self.operation_mode == OperationMode.DRY_RUN:
            logger.info(f"DRY RUN: Would execute {change.change_id}")
            logger.info(f"SQL: {change.sql}")
            return change

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        logger.debug(f"Executing {change.change_id}: {change.sql}")

        try:
            await self.executor.execute(change.sql)
        except Exception as e:
            change.error = str(e)
            logger.error(f"Failed to execute {change.change_id}: {e}")
            raise DDLExecutionError(
                change.sql, change.table, change.phase.value, cause=e
            ) from e
        finally:
            change.execution_time_ms = (loop.time() - start_time) * 1000

        change.executed = True
        return change

    async def execute_batch(self, changes: List[SchemaChange]) -> List[SchemaChange]:
        """Execute changes in order, stopping at the first failure."""
        results = []
        for change in changes:
            results.append(await self.execute_change(change))
        return results

    def get_execution_summary(self, changes: List[SchemaChange]) -> Dict[str, Any]:
        """Get summary of execution results."""
        total = len(changes)
        successful = sum(1 for c in changes if c.executed)
        total_time = sum(c.execution_time_ms or 0 for c in changes)

        by_type: Dict[str, int] = {}
        for c in changes:
            by_type[c.change_type.value] = by_type.get(c.change_type.value, 0) + 1

        return {
            "total_operations": total,
            "successful": successful,
            "failed": sum(1 for c in changes if c.error),
            "total_execution_time_ms": total_time,
            "by_type": by_type,
        }
