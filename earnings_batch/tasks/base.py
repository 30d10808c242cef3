"""
Sweep task contract and the registry the sweep runs from.

A task splits its work into ``BatchItemInput`` items (one ledger record
each) and settles them one at a time. Tasks hold their own aggregators;
``SweepExecutor`` owns timing, per-item isolation and the run summary.
Registration order is execution order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from earnings_batch.domain.types import BatchItemStatus


@dataclass(frozen=True)
class BatchItemInput:
    """One record to settle, as produced by ``prepare_items()``."""

    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


@runtime_checkable
class BatchTask(Protocol):
    """A finalization step over one kind of ledger record.

    ``prepare_items`` selects the unfinalized records whose campaign ended
    before ``as_of``; ``execute_item`` finalizes exactly one of them.
    There is no retry: finalization is idempotent, so a failed item is
    picked up again by the next sweep.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(self, as_of: datetime) -> tuple[BatchItemInput, ...]: ...

    def execute_item(self, item: BatchItemInput, as_of: datetime) -> BatchTaskResult: ...


class TaskRegistry:
    """Tasks keyed by ``task_type``, in registration order."""

    def __init__(self) -> None:
        self._tasks: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        task = self._tasks.get(task_type)
        if task is None:
            raise KeyError(
                f"No task registered for type '{task_type}'; "
                f"known types: {', '.join(self._tasks) or 'none'}"
            )
        return task

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._tasks
