"""
Repository interfaces for the reconciliation engine.

The aggregators depend only on these abstractions.  Two implementations
ship: ``memory_store`` (lock-guarded dicts, used by the test suite) and
``sql_store`` (SQLAlchemy, PostgreSQL in production).

Contract shared by every implementation:
    - Lookups of absent records return ``None`` or an empty list.
    - ``insert_if_absent`` is a logical upsert: exactly one record per key
      survives concurrent callers, and every caller gets that record back.
    - ``append_payment`` advances ``amount_paid`` atomically with the
      history append; concurrent payments never overwrite each other.
    - ``update_*`` and ``mark_finalized`` are no-ops on finalized records.
    - Store unavailability surfaces as ``StoreUnavailableError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from earnings_engines.hub_billing import HubFees
from earnings_kernel.domain.evidence import PerformanceEntry, ProofOfPerformance
from earnings_kernel.domain.inventory import Campaign, DeliveryGoal, Hub, Order
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    BillingRecord,
    EarningsRecord,
    Payment,
    Variance,
)


class OrderRepository(ABC):
    """Orders, campaigns and hubs (owned upstream) plus set-once delivery goals."""

    @abstractmethod
    def get_order(self, order_id: str) -> Order | None:
        pass

    @abstractmethod
    def get_campaign(self, campaign_id: str) -> Campaign | None:
        pass

    @abstractmethod
    def get_hub(self, hub_id: str) -> Hub | None:
        pass

    @abstractmethod
    def list_orders_for_campaign(self, campaign_id: str) -> list[Order]:
        pass

    @abstractmethod
    def list_orders_for_publication(self, publication_id: str) -> list[Order]:
        pass

    @abstractmethod
    def record_delivery_goals(
        self, order_id: str, goals: Mapping[str, DeliveryGoal]
    ) -> bool:
        """Persist goals once.

        Returns False if the order does not exist.

        Raises:
            GoalsAlreadyRecordedError: the order already carries goals.
        """
        pass

    @abstractmethod
    def save_order(self, order: Order) -> None:
        """Insert or replace an order (upstream sync and fixtures)."""
        pass

    @abstractmethod
    def save_campaign(self, campaign: Campaign) -> None:
        pass

    @abstractmethod
    def save_hub(self, hub: Hub) -> None:
        pass


class EvidenceRepository(ABC):
    """Append-only delivery evidence keyed by order id."""

    @abstractmethod
    def performance_entries(self, order_id: str) -> list[PerformanceEntry]:
        """All entries for the order, soft-deleted ones included."""
        pass

    @abstractmethod
    def proofs(self, order_id: str) -> list[ProofOfPerformance]:
        pass

    @abstractmethod
    def add_performance_entry(self, entry: PerformanceEntry) -> None:
        pass

    @abstractmethod
    def soft_delete_entry(self, entry_id: str) -> bool:
        pass

    @abstractmethod
    def add_proof(self, proof: ProofOfPerformance) -> None:
        pass


class EarningsRepository(ABC):
    """One earnings record per order."""

    @abstractmethod
    def insert_if_absent(self, record: EarningsRecord) -> tuple[EarningsRecord, bool]:
        """Store ``record`` unless the order already has one.

        Returns (stored record, created).
        """
        pass

    @abstractmethod
    def get(self, record_id: UUID) -> EarningsRecord | None:
        pass

    @abstractmethod
    def get_by_order(self, order_id: str) -> EarningsRecord | None:
        pass

    @abstractmethod
    def list_by_campaign(self, campaign_id: str) -> list[EarningsRecord]:
        pass

    @abstractmethod
    def list_by_publication(self, publication_id: str) -> list[EarningsRecord]:
        pass

    @abstractmethod
    def update_actual(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        updated_at: datetime,
    ) -> EarningsRecord | None:
        """Replace the actual side unless finalized; returns the current record."""
        pass

    @abstractmethod
    def mark_finalized(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        finalized_at: datetime,
    ) -> EarningsRecord | None:
        """Write the last actual values and flip ``finalized`` in one step."""
        pass

    @abstractmethod
    def append_payment(self, record_id: UUID, payment: Payment) -> EarningsRecord | None:
        pass

    @abstractmethod
    def list_unfinalized_ended(self, as_of: date) -> list[EarningsRecord]:
        """Unfinalized records whose campaign ended before ``as_of``."""
        pass


class BillingRepository(ABC):
    """One billing record per (hub, campaign)."""

    @abstractmethod
    def insert_if_absent(self, record: BillingRecord) -> tuple[BillingRecord, bool]:
        pass

    @abstractmethod
    def get(self, record_id: UUID) -> BillingRecord | None:
        pass

    @abstractmethod
    def get_by_hub_campaign(self, hub_id: str, campaign_id: str) -> BillingRecord | None:
        pass

    @abstractmethod
    def list_by_hub(self, hub_id: str) -> list[BillingRecord]:
        pass

    @abstractmethod
    def list_all(self) -> list[BillingRecord]:
        pass

    @abstractmethod
    def update_fees(
        self, record_id: UUID, fees: HubFees, updated_at: datetime
    ) -> BillingRecord | None:
        pass

    @abstractmethod
    def mark_finalized(
        self, record_id: UUID, fees: HubFees, finalized_at: datetime
    ) -> BillingRecord | None:
        pass

    @abstractmethod
    def append_payment(self, record_id: UUID, payment: Payment) -> BillingRecord | None:
        pass

    @abstractmethod
    def list_unfinalized_ended(self, as_of: date) -> list[BillingRecord]:
        pass


@dataclass(frozen=True)
class StoreBundle:
    """The four repositories a deployment wires together."""

    orders: OrderRepository
    evidence: EvidenceRepository
    earnings: EarningsRepository
    billing: BillingRepository
