"""
SweepExecutor -- per-item isolated execution of finalization tasks.

Contract:
    ``execute()`` runs one registered task over all of its prepared items.
    ``run_sweep()`` runs every registered task in registration order and
    returns the aggregate.

Invariants enforced:
    - Item isolation: an exception from one item is recorded as FAILED and
      the run continues with the next item.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import time
from datetime import datetime
from uuid import uuid4

from earnings_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    SweepResult,
)
from earnings_batch.tasks.base import TaskRegistry
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.executor")


def _run_status(succeeded: int, failed: int, skipped: int) -> BatchRunStatus:
    if failed == 0 and skipped == 0:
        return BatchRunStatus.COMPLETED
    if succeeded == 0 and skipped == 0:
        return BatchRunStatus.FAILED
    return BatchRunStatus.PARTIALLY_COMPLETED


class SweepExecutor:
    """Runs registered batch tasks item by item.

    Non-goals:
        - Does NOT schedule -- callers decide when to sweep.
        - Does NOT retry failed items; the next sweep picks them up again.
    """

    def __init__(self, task_registry: TaskRegistry, clock: Clock | None = None):
        self._task_registry = task_registry
        self._clock = clock or SystemClock()

    def execute(
        self,
        task_type: str,
        as_of: datetime,
        correlation_id: str | None = None,
    ) -> BatchRunResult:
        """Run one task.

        Raises:
            KeyError: If task_type is not registered.
        """
        task = self._task_registry.get(task_type)
        correlation_id = correlation_id or str(uuid4())
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(correlation_id=correlation_id):
            items = task.prepare_items(as_of)
            logger.info(
                "batch_run_started",
                extra={"task_type": task_type, "item_count": len(items)},
            )

            succeeded = failed = skipped = 0
            item_results: list[BatchItemResult] = []

            for batch_item in items:
                item_start = time.monotonic()
                item_started_at = self._clock.now()
                try:
                    result = task.execute_item(batch_item, as_of)
                    status = result.status
                    error_code = result.error_code
                    error_message = result.error_message
                    result_data = result.result_data
                except Exception as exc:
                    logger.exception(
                        "batch_item_unhandled_exception",
                        extra={"task_type": task_type, "item_key": batch_item.item_key},
                    )
                    status = BatchItemStatus.FAILED
                    error_code = "UNHANDLED_EXCEPTION"
                    error_message = str(exc)
                    result_data = None

                if status == BatchItemStatus.SUCCEEDED:
                    succeeded += 1
                elif status == BatchItemStatus.SKIPPED:
                    skipped += 1
                else:
                    failed += 1
                    logger.warning(
                        "batch_item_failed",
                        extra={
                            "task_type": task_type,
                            "item_key": batch_item.item_key,
                            "error_code": error_code,
                        },
                    )

                item_results.append(
                    BatchItemResult(
                        item_index=batch_item.item_index,
                        item_key=batch_item.item_key,
                        status=status,
                        error_code=error_code,
                        error_message=error_message,
                        result_data=result_data,
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                        started_at=item_started_at,
                        completed_at=self._clock.now(),
                    )
                )

            run = BatchRunResult(
                task_type=task_type,
                status=_run_status(succeeded, failed, skipped),
                as_of=as_of,
                total_items=len(items),
                succeeded=succeeded,
                failed=failed,
                skipped=skipped,
                item_results=tuple(item_results),
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start_time) * 1000),
                correlation_id=correlation_id,
            )
            logger.info(
                "batch_run_completed",
                extra={
                    "task_type": task_type,
                    "status": run.status.value,
                    "succeeded": succeeded,
                    "failed": failed,
                    "skipped": skipped,
                },
            )
            return run

    def run_sweep(self, as_of: datetime | None = None) -> SweepResult:
        """Run every registered task, in registration order."""
        as_of = as_of or self._clock.now()
        correlation_id = str(uuid4())
        runs = tuple(
            self.execute(task_type, as_of, correlation_id)
            for task_type in self._task_registry.list_tasks()
        )
        return SweepResult(as_of=as_of, runs=runs)
