"""
earnings_batch -- Finalization sweep over ended campaigns.

Finds unfinalized publication earnings and hub billing records whose
campaign ended before the sweep's ``as_of`` instant and finalizes each one.
Results are reported per item (succeeded / skipped / failed) and per run.

Architecture:
    earnings_batch/ is a top-level package.  Nothing in kernel/,
    engines/, or services/ imports from earnings_batch.

Usage:
    result = run_finalization_sweep(store, get_active_config(), as_of=clock.now())
    result.failed  # items to look at
"""

from __future__ import annotations

from datetime import datetime

from earnings_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    SweepResult,
)
from earnings_batch.services.executor import SweepExecutor
from earnings_batch.tasks.base import BatchItemInput, BatchTask, BatchTaskResult, TaskRegistry
from earnings_batch.tasks.finalize_tasks import FinalizeEarningsTask, FinalizeHubBillingTask
from earnings_config.schema import EarningsConfig
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.repositories import StoreBundle


def finalization_registry(
    store: StoreBundle,
    config: EarningsConfig,
    clock: Clock | None = None,
) -> TaskRegistry:
    """Registry with the earnings task ahead of the billing task."""
    clock = clock or SystemClock()
    registry = TaskRegistry()
    registry.register(
        FinalizeEarningsTask(
            store.earnings,
            EarningsAggregator(store.orders, store.evidence, store.earnings, config, clock),
        )
    )
    registry.register(
        FinalizeHubBillingTask(
            store.billing,
            HubBillingAggregator(store.orders, store.earnings, store.billing, config, clock),
        )
    )
    return registry


def run_finalization_sweep(
    store: StoreBundle,
    config: EarningsConfig,
    as_of: datetime | None = None,
    clock: Clock | None = None,
) -> SweepResult:
    clock = clock or SystemClock()
    executor = SweepExecutor(finalization_registry(store, config, clock), clock)
    return executor.run_sweep(as_of)


__all__ = [
    "BatchItemInput",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "BatchTask",
    "BatchTaskResult",
    "FinalizeEarningsTask",
    "FinalizeHubBillingTask",
    "SweepExecutor",
    "SweepResult",
    "TaskRegistry",
    "finalization_registry",
    "run_finalization_sweep",
]
