"""
earnings_batch.domain.types -- Pure frozen dataclasses for the sweep.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every item succeeded or there were none
    FAILED = "failed"  # No item succeeded and at least one failed
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed or skipped


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # e.g., finalized concurrently, record vanished


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single item.

    A failing item never aborts the run.
    """

    item_index: int
    item_key: str  # Business identifier (order id, hub:campaign)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of running one task over all of its items."""

    task_type: str
    status: BatchRunStatus
    as_of: datetime
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    correlation_id: str | None = None


@dataclass(frozen=True)
class SweepResult:
    """Aggregate of every task run in one finalization sweep."""

    as_of: datetime
    runs: tuple[BatchRunResult, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(run.succeeded for run in self.runs)

    @property
    def failed(self) -> int:
        return sum(run.failed for run in self.runs)

    @property
    def skipped(self) -> int:
        return sum(run.skipped for run in self.runs)

    def run_for(self, task_type: str) -> BatchRunResult | None:
        for run in self.runs:
            if run.task_type == task_type:
                return run
        return None
