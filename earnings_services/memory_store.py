"""
In-memory repository implementations.

Thread-safe: every read-modify-write happens under the repository's lock,
which gives the same per-record atomicity the SQL store gets from
conditional UPDATEs.  Records are immutable dataclasses, so readers never
observe a half-applied change.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import replace
from datetime import date, datetime
from uuid import UUID

from earnings_engines.hub_billing import HubFees
from earnings_engines.payment_ledger import append_payment
from earnings_kernel.domain.evidence import PerformanceEntry, ProofOfPerformance
from earnings_kernel.domain.inventory import Campaign, DeliveryGoal, Hub, Order
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    BillingRecord,
    EarningsRecord,
    Payment,
    TrackedImpressions,
    Variance,
)
from earnings_kernel.exceptions import GoalsAlreadyRecordedError
from earnings_services.repositories import (
    BillingRepository,
    EarningsRepository,
    EvidenceRepository,
    OrderRepository,
    StoreBundle,
)


class InMemoryOrderRepository(OrderRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: dict[str, Order] = {}
        self._campaigns: dict[str, Campaign] = {}
        self._hubs: dict[str, Hub] = {}

    def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        return self._campaigns.get(campaign_id)

    def get_hub(self, hub_id: str) -> Hub | None:
        return self._hubs.get(hub_id)

    def list_orders_for_campaign(self, campaign_id: str) -> list[Order]:
        return [o for o in list(self._orders.values()) if o.campaign_id == campaign_id]

    def list_orders_for_publication(self, publication_id: str) -> list[Order]:
        return [o for o in list(self._orders.values()) if o.publication_id == publication_id]

    def record_delivery_goals(
        self, order_id: str, goals: Mapping[str, DeliveryGoal]
    ) -> bool:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return False
            if order.delivery_goals is not None:
                raise GoalsAlreadyRecordedError(order_id)
            self._orders[order_id] = replace(order, delivery_goals=dict(goals))
            return True

    def save_order(self, order: Order) -> None:
        with self._lock:
            self._orders[order.order_id] = order

    def save_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            self._campaigns[campaign.campaign_id] = campaign

    def save_hub(self, hub: Hub) -> None:
        with self._lock:
            self._hubs[hub.hub_id] = hub


class InMemoryEvidenceRepository(EvidenceRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, PerformanceEntry] = {}
        self._proofs: list[ProofOfPerformance] = []

    def performance_entries(self, order_id: str) -> list[PerformanceEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.order_id == order_id]

    def proofs(self, order_id: str) -> list[ProofOfPerformance]:
        with self._lock:
            return [p for p in self._proofs if p.order_id == order_id]

    def add_performance_entry(self, entry: PerformanceEntry) -> None:
        with self._lock:
            self._entries[entry.entry_id] = entry

    def soft_delete_entry(self, entry_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return False
            self._entries[entry_id] = replace(entry, deleted=True)
            return True

    def add_proof(self, proof: ProofOfPerformance) -> None:
        with self._lock:
            self._proofs.append(proof)


def _ended_before(campaign_end: date | None, as_of: date) -> bool:
    return campaign_end is not None and campaign_end < as_of


class InMemoryEarningsRepository(EarningsRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[UUID, EarningsRecord] = {}
        self._by_order: dict[str, UUID] = {}

    def insert_if_absent(self, record: EarningsRecord) -> tuple[EarningsRecord, bool]:
        with self._lock:
            existing_id = self._by_order.get(record.order_id)
            if existing_id is not None:
                return self._records[existing_id], False
            self._records[record.id] = record
            self._by_order[record.order_id] = record.id
            return record, True

    def get(self, record_id: UUID) -> EarningsRecord | None:
        return self._records.get(record_id)

    def get_by_order(self, order_id: str) -> EarningsRecord | None:
        with self._lock:
            record_id = self._by_order.get(order_id)
            return self._records.get(record_id) if record_id else None

    def list_by_campaign(self, campaign_id: str) -> list[EarningsRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.campaign_id == campaign_id]

    def list_by_publication(self, publication_id: str) -> list[EarningsRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.publication_id == publication_id]

    def update_actual(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        updated_at: datetime,
    ) -> EarningsRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.finalized:
                return record
            updated = replace(
                record,
                actual=actual,
                tracked_impressions=TrackedImpressions(
                    estimated=record.tracked_impressions.estimated,
                    actual=tracked_actual,
                ),
                variance=variance,
                updated_at=updated_at,
            )
            self._records[record_id] = updated
            return updated

    def mark_finalized(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        finalized_at: datetime,
    ) -> EarningsRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.finalized:
                return record
            updated = replace(
                record,
                actual=actual,
                tracked_impressions=TrackedImpressions(
                    estimated=record.tracked_impressions.estimated,
                    actual=tracked_actual,
                ),
                variance=variance,
                finalized=True,
                finalized_at=finalized_at,
                updated_at=finalized_at,
            )
            self._records[record_id] = updated
            return updated

    def append_payment(self, record_id: UUID, payment: Payment) -> EarningsRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            updated = replace(
                record,
                ledger=append_payment(record.ledger, payment),
                updated_at=payment.recorded_at,
            )
            self._records[record_id] = updated
            return updated

    def list_unfinalized_ended(self, as_of: date) -> list[EarningsRecord]:
        with self._lock:
            return [
                r
                for r in self._records.values()
                if not r.finalized and _ended_before(r.campaign_end, as_of)
            ]


class InMemoryBillingRepository(BillingRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[UUID, BillingRecord] = {}
        self._by_key: dict[tuple[str, str], UUID] = {}

    def insert_if_absent(self, record: BillingRecord) -> tuple[BillingRecord, bool]:
        key = (record.hub_id, record.campaign_id)
        with self._lock:
            existing_id = self._by_key.get(key)
            if existing_id is not None:
                return self._records[existing_id], False
            self._records[record.id] = record
            self._by_key[key] = record.id
            return record, True

    def get(self, record_id: UUID) -> BillingRecord | None:
        return self._records.get(record_id)

    def get_by_hub_campaign(self, hub_id: str, campaign_id: str) -> BillingRecord | None:
        with self._lock:
            record_id = self._by_key.get((hub_id, campaign_id))
            return self._records.get(record_id) if record_id else None

    def list_by_hub(self, hub_id: str) -> list[BillingRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.hub_id == hub_id]

    def list_all(self) -> list[BillingRecord]:
        with self._lock:
            return list(self._records.values())

    def _apply_fees(self, record: BillingRecord, fees: HubFees, **changes) -> BillingRecord:
        return replace(
            record,
            publisher_payouts=fees.publisher_payouts,
            revenue_share_fee=fees.revenue_share_fee,
            platform_cpm_fee=fees.platform_cpm_fee,
            total_fees=fees.total_fees,
            **changes,
        )

    def update_fees(
        self, record_id: UUID, fees: HubFees, updated_at: datetime
    ) -> BillingRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.finalized:
                return record
            updated = self._apply_fees(record, fees, updated_at=updated_at)
            self._records[record_id] = updated
            return updated

    def mark_finalized(
        self, record_id: UUID, fees: HubFees, finalized_at: datetime
    ) -> BillingRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.finalized:
                return record
            updated = self._apply_fees(
                record,
                fees,
                finalized=True,
                finalized_at=finalized_at,
                updated_at=finalized_at,
            )
            self._records[record_id] = updated
            return updated

    def append_payment(self, record_id: UUID, payment: Payment) -> BillingRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            updated = replace(
                record,
                ledger=append_payment(record.ledger, payment),
                updated_at=payment.recorded_at,
            )
            self._records[record_id] = updated
            return updated

    def list_unfinalized_ended(self, as_of: date) -> list[BillingRecord]:
        with self._lock:
            return [
                r
                for r in self._records.values()
                if not r.finalized and _ended_before(r.campaign_end, as_of)
            ]


def memory_bundle() -> StoreBundle:
    """Fresh in-memory repositories."""
    return StoreBundle(
        orders=InMemoryOrderRepository(),
        evidence=InMemoryEvidenceRepository(),
        earnings=InMemoryEarningsRepository(),
        billing=InMemoryBillingRepository(),
    )
