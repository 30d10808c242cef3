"""
Batch tasks: ledger finalization (publication earnings, hub billing).

Earnings must be finalized before billing within one sweep so that hub
fees are computed from settled publisher payouts.
"""

from __future__ import annotations

from datetime import datetime

from earnings_batch.domain.types import BatchItemStatus
from earnings_batch.tasks.base import BatchItemInput, BatchTaskResult
from earnings_kernel.exceptions import EarningsError
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.repositories import BillingRepository, EarningsRepository


class FinalizeEarningsTask:
    """Finalize publication earnings whose campaign has ended."""

    def __init__(self, records: EarningsRepository, aggregator: EarningsAggregator):
        self._records = records
        self._aggregator = aggregator

    @property
    def task_type(self) -> str:
        return "earnings.finalize"

    @property
    def description(self) -> str:
        return "Finalize publication earnings for ended campaigns"

    def prepare_items(self, as_of: datetime) -> tuple[BatchItemInput, ...]:
        records = sorted(
            self._records.list_unfinalized_ended(as_of.date()),
            key=lambda r: r.order_id,
        )
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=record.order_id,
                payload={"order_id": record.order_id, "earnings_id": str(record.id)},
            )
            for i, record in enumerate(records)
        )

    def execute_item(self, item: BatchItemInput, as_of: datetime) -> BatchTaskResult:
        try:
            record = self._aggregator.finalize(item.payload["order_id"])
        except EarningsError as exc:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code=exc.code,
                error_message=str(exc),
            )
        if record is None:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code="RECORD_NOT_FOUND",
            )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "earnings_id": str(record.id),
                "actual_total": str(record.actual.total),
            },
        )


class FinalizeHubBillingTask:
    """Finalize hub billing whose campaign has ended."""

    def __init__(self, records: BillingRepository, aggregator: HubBillingAggregator):
        self._records = records
        self._aggregator = aggregator

    @property
    def task_type(self) -> str:
        return "hub_billing.finalize"

    @property
    def description(self) -> str:
        return "Finalize hub billing for ended campaigns"

    def prepare_items(self, as_of: datetime) -> tuple[BatchItemInput, ...]:
        records = sorted(
            self._records.list_unfinalized_ended(as_of.date()),
            key=lambda r: (r.hub_id, r.campaign_id),
        )
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=f"{record.hub_id}:{record.campaign_id}",
                payload={
                    "hub_id": record.hub_id,
                    "campaign_id": record.campaign_id,
                    "billing_id": str(record.id),
                },
            )
            for i, record in enumerate(records)
        )

    def execute_item(self, item: BatchItemInput, as_of: datetime) -> BatchTaskResult:
        try:
            record = self._aggregator.finalize(
                item.payload["campaign_id"], item.payload["hub_id"]
            )
        except EarningsError as exc:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code=exc.code,
                error_message=str(exc),
            )
        if record is None:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code="RECORD_NOT_FOUND",
            )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "billing_id": str(record.id),
                "total_fees_actual": str(record.total_fees.actual),
            },
        )
