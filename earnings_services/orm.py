"""
Earnings ORM Models (``earnings_services.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the reconciliation engine.  Maps the
frozen domain dataclasses in ``earnings_kernel.domain`` to tables.

Orders, campaigns, hubs and evidence are mirrors of upstream data and
inherit plain ``Base``.  The two ledgers inherit ``TrackedBase``; their
monetary totals, running ``amount_paid`` and ``finalized`` flag are real
columns so that atomic increments and conditional UPDATEs can target
them.  Per-placement breakdowns are JSON with Decimals as strings.

Architecture position
---------------------
**Services layer** -- persistence.  Imports from ``earnings_kernel.db.base``.
MUST NOT be imported by ``earnings_kernel`` or ``earnings_engines``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import Base, TrackedBase
from earnings_kernel.domain.evidence import (
    PerformanceEntry,
    ProofOfPerformance,
    VerificationStatus,
)
from earnings_kernel.domain.inventory import (
    Campaign,
    Hub,
    HubBillingTerms,
    Order,
    Placement,
    goals_from_dict,
    goals_to_dict,
)
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    BillingRecord,
    EarningsRecord,
    EstimatedEarnings,
    FeeTotals,
    Payment,
    PaymentLedger,
    PaymentMethod,
    PlatformCpmFee,
    PublisherPayouts,
    RevenueShareFee,
    TrackedImpressions,
    Variance,
)

# JSON with Python None stored as SQL NULL, so "IS NULL" predicates work.
_NullableJSON = JSON(none_as_null=True)


# ---------------------------------------------------------------------------
# 1. Upstream mirrors
# ---------------------------------------------------------------------------


class OrderModel(Base):
    """
    ORM model for insertion orders.

    Guarantees:
        - order_id is unique (uq_earnings_orders_order_id).
        - delivery_goals is NULL until recorded, then written exactly once.
    """

    __tablename__ = "earnings_orders"

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_earnings_orders_order_id"),
        Index("idx_earnings_orders_campaign_id", "campaign_id"),
        Index("idx_earnings_orders_publication_id", "publication_id"),
    )

    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_id: Mapped[str] = mapped_column(String(100), nullable=False)
    publication_id: Mapped[str] = mapped_column(String(100), nullable=False)
    publication_name: Mapped[str] = mapped_column(String(255), default="")
    hub_id: Mapped[str] = mapped_column(String(100), default="")
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    placements: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    delivery_goals: Mapped[dict[str, Any] | None] = mapped_column(
        _NullableJSON, nullable=True
    )
    order_created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> Order:
        return Order(
            order_id=self.order_id,
            campaign_id=self.campaign_id,
            publication_id=self.publication_id,
            publication_name=self.publication_name,
            hub_id=self.hub_id,
            status=self.status,
            placements=tuple(Placement.from_dict(p) for p in self.placements or ()),
            delivery_goals=goals_from_dict(self.delivery_goals),
            created_at=self.order_created_at,
        )

    def apply_dto(self, dto: Order) -> None:
        """Copy every upstream field from ``dto`` onto this row."""
        self.order_id = dto.order_id
        self.campaign_id = dto.campaign_id
        self.publication_id = dto.publication_id
        self.publication_name = dto.publication_name
        self.hub_id = dto.hub_id
        self.status = dto.status
        self.placements = [p.to_dict() for p in dto.placements]
        self.delivery_goals = (
            goals_to_dict(dto.delivery_goals) if dto.delivery_goals is not None else None
        )
        self.order_created_at = dto.created_at

    @classmethod
    def from_dto(cls, dto: Order) -> OrderModel:
        model = cls()
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<OrderModel {self.order_id}: {self.status}>"


class CampaignModel(Base):
    __tablename__ = "earnings_campaigns"

    __table_args__ = (
        UniqueConstraint("campaign_id", name="uq_earnings_campaigns_campaign_id"),
    )

    campaign_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    hub_id: Mapped[str] = mapped_column(String(100), default="")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self) -> Campaign:
        return Campaign(
            campaign_id=self.campaign_id,
            name=self.name,
            hub_id=self.hub_id,
            start_date=self.start_date,
            end_date=self.end_date,
        )

    def apply_dto(self, dto: Campaign) -> None:
        self.campaign_id = dto.campaign_id
        self.name = dto.name
        self.hub_id = dto.hub_id
        self.start_date = dto.start_date
        self.end_date = dto.end_date


class HubModel(Base):
    """ORM model for hubs; ``billing`` is NULL for hubs that are not billed."""

    __tablename__ = "earnings_hubs"

    __table_args__ = (UniqueConstraint("hub_id", name="uq_earnings_hubs_hub_id"),)

    hub_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    billing: Mapped[dict[str, Any] | None] = mapped_column(_NullableJSON, nullable=True)

    def to_dto(self) -> Hub:
        return Hub(
            hub_id=self.hub_id,
            name=self.name,
            billing=HubBillingTerms.from_dict(self.billing) if self.billing else None,
        )

    def apply_dto(self, dto: Hub) -> None:
        self.hub_id = dto.hub_id
        self.name = dto.name
        self.billing = dto.billing.to_dict() if dto.billing else None


class PerformanceEntryModel(Base):
    __tablename__ = "earnings_performance_entries"

    __table_args__ = (
        UniqueConstraint("entry_id", name="uq_earnings_performance_entries_entry_id"),
        Index("idx_earnings_performance_entries_order_id", "order_id"),
    )

    entry_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    item_path: Mapped[str] = mapped_column(String(500), default="")
    channel: Mapped[str] = mapped_column(String(50), default="")
    metrics: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self) -> PerformanceEntry:
        return PerformanceEntry(
            entry_id=self.entry_id,
            order_id=self.order_id,
            item_path=self.item_path,
            channel=self.channel,
            metrics=dict(self.metrics or {}),
            period_start=self.period_start,
            period_end=self.period_end,
            deleted=self.deleted,
        )

    @classmethod
    def from_dto(cls, dto: PerformanceEntry) -> PerformanceEntryModel:
        return cls(
            entry_id=dto.entry_id,
            order_id=dto.order_id,
            item_path=dto.item_path,
            channel=dto.channel,
            metrics={k: str(v) if isinstance(v, Decimal) else v for k, v in dto.metrics.items()},
            period_start=dto.period_start,
            period_end=dto.period_end,
            deleted=dto.deleted,
        )


class ProofModel(Base):
    __tablename__ = "earnings_proofs"

    __table_args__ = (
        UniqueConstraint("proof_id", name="uq_earnings_proofs_proof_id"),
        Index("idx_earnings_proofs_order_id", "order_id"),
    )

    proof_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    item_path: Mapped[str] = mapped_column(String(500), default="")
    verification_status: Mapped[str] = mapped_column(String(20), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> ProofOfPerformance:
        try:
            status = VerificationStatus(self.verification_status)
        except ValueError:
            status = VerificationStatus.PENDING
        return ProofOfPerformance(
            proof_id=self.proof_id,
            order_id=self.order_id,
            item_path=self.item_path,
            verification_status=status,
            submitted_at=self.submitted_at,
        )

    @classmethod
    def from_dto(cls, dto: ProofOfPerformance) -> ProofModel:
        return cls(
            proof_id=dto.proof_id,
            order_id=dto.order_id,
            item_path=dto.item_path,
            verification_status=dto.verification_status.value,
            submitted_at=dto.submitted_at,
        )


# ---------------------------------------------------------------------------
# 2. Ledgers
# ---------------------------------------------------------------------------


class LedgerPaymentModel(Base):
    """
    One payment row for either ledger.

    ``ledger_kind`` is ``earnings`` or ``billing``; ``record_id`` points at
    the owning ledger row.  ``sequence`` numbers a record's payments from 1
    in the order they were appended.
    """

    __tablename__ = "earnings_ledger_payments"

    __table_args__ = (
        UniqueConstraint(
            "ledger_kind", "record_id", "sequence", name="uq_earnings_ledger_payment_seq"
        ),
    )

    ledger_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    record_id: Mapped[UUID] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_on: Mapped[date] = mapped_column(Date, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)
    method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    recorded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> Payment:
        return Payment(
            amount=self.amount,
            paid_on=self.paid_on,
            recorded_at=self.recorded_at,
            method=PaymentMethod(self.method) if self.method else None,
            reference=self.reference,
            invoice_number=self.invoice_number,
            notes=self.notes,
            recorded_by=self.recorded_by,
        )

    @classmethod
    def from_dto(
        cls, dto: Payment, ledger_kind: str, record_id: UUID, sequence: int
    ) -> LedgerPaymentModel:
        return cls(
            ledger_kind=ledger_kind,
            record_id=record_id,
            sequence=sequence,
            amount=dto.amount,
            paid_on=dto.paid_on,
            recorded_at=dto.recorded_at,
            method=dto.method.value if dto.method else None,
            reference=dto.reference,
            invoice_number=dto.invoice_number,
            notes=dto.notes,
            recorded_by=dto.recorded_by,
        )


class EarningsRecordModel(TrackedBase):
    """
    ORM model for publication earnings, one row per order.

    Guarantees:
        - order_id is unique (uq_publication_earnings_order_id).
        - amount_paid only changes through an atomic increment.
        - finalized flips false -> true once.
    """

    __tablename__ = "publication_earnings"

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_publication_earnings_order_id"),
        Index("idx_publication_earnings_campaign_id", "campaign_id"),
        Index("idx_publication_earnings_publication_id", "publication_id"),
        Index("idx_publication_earnings_finalized", "finalized"),
    )

    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_id: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_name: Mapped[str] = mapped_column(String(255), default="")
    publication_id: Mapped[str] = mapped_column(String(100), nullable=False)
    publication_name: Mapped[str] = mapped_column(String(255), default="")
    hub_id: Mapped[str] = mapped_column(String(100), default="")

    estimated: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    actual: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    estimated_total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tracked_impressions_estimated: Mapped[int] = mapped_column(default=0)
    tracked_impressions_actual: Mapped[int] = mapped_column(default=0)
    variance_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    variance_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    amount_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    campaign_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    campaign_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    finalized: Mapped[bool] = mapped_column(Boolean, default=False)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self, payments: tuple[Payment, ...] = ()) -> EarningsRecord:
        actual = ActualEarnings.from_dict(self.actual)
        return EarningsRecord(
            id=self.id,
            order_id=self.order_id,
            campaign_id=self.campaign_id,
            campaign_name=self.campaign_name,
            publication_id=self.publication_id,
            publication_name=self.publication_name,
            hub_id=self.hub_id,
            estimated=EstimatedEarnings.from_dict(self.estimated),
            actual=actual,
            tracked_impressions=TrackedImpressions(
                estimated=self.tracked_impressions_estimated,
                actual=self.tracked_impressions_actual,
            ),
            variance=Variance(
                amount=self.variance_amount, percentage=self.variance_percentage
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
            ledger=PaymentLedger(amount_paid=self.amount_paid, payments=payments),
            campaign_start=self.campaign_start,
            campaign_end=self.campaign_end,
            finalized=self.finalized,
            finalized_at=self.finalized_at,
        )

    @classmethod
    def from_dto(cls, dto: EarningsRecord) -> EarningsRecordModel:
        return cls(
            id=dto.id,
            order_id=dto.order_id,
            campaign_id=dto.campaign_id,
            campaign_name=dto.campaign_name,
            publication_id=dto.publication_id,
            publication_name=dto.publication_name,
            hub_id=dto.hub_id,
            estimated=dto.estimated.to_dict(),
            actual=dto.actual.to_dict(),
            estimated_total=dto.estimated.total,
            actual_total=dto.actual.total,
            tracked_impressions_estimated=dto.tracked_impressions.estimated,
            tracked_impressions_actual=dto.tracked_impressions.actual,
            variance_amount=dto.variance.amount,
            variance_percentage=dto.variance.percentage,
            amount_paid=dto.ledger.amount_paid,
            campaign_start=dto.campaign_start,
            campaign_end=dto.campaign_end,
            finalized=dto.finalized,
            finalized_at=dto.finalized_at,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
        )

    def __repr__(self) -> str:
        return f"<EarningsRecordModel {self.order_id}: {self.actual_total}>"


class BillingRecordModel(TrackedBase):
    """
    ORM model for hub billing, one row per (hub, campaign).

    Guarantees:
        - (hub_id, campaign_id) is unique (uq_hub_billing_hub_campaign).
        - amount_paid only changes through an atomic increment.
    """

    __tablename__ = "hub_billing"

    __table_args__ = (
        UniqueConstraint("hub_id", "campaign_id", name="uq_hub_billing_hub_campaign"),
        Index("idx_hub_billing_hub_id", "hub_id"),
        Index("idx_hub_billing_finalized", "finalized"),
    )

    hub_id: Mapped[str] = mapped_column(String(100), nullable=False)
    hub_name: Mapped[str] = mapped_column(String(255), default="")
    campaign_id: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_name: Mapped[str] = mapped_column(String(255), default="")

    payouts_estimated: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    payouts_actual: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    publication_count: Mapped[int] = mapped_column(default=0)
    revenue_share_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    revenue_share_estimated: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    revenue_share_actual: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    platform_cpm_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cpm_impressions_estimated: Mapped[int] = mapped_column(default=0)
    cpm_impressions_actual: Mapped[int] = mapped_column(default=0)
    platform_cpm_estimated: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    platform_cpm_actual: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_fees_estimated: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_fees_actual: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    amount_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    campaign_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    campaign_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    finalized: Mapped[bool] = mapped_column(Boolean, default=False)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @staticmethod
    def fee_columns(
        payouts: PublisherPayouts,
        revenue_share: RevenueShareFee,
        platform_cpm: PlatformCpmFee,
        totals: FeeTotals,
    ) -> dict[str, Any]:
        """Column values for the fee sections, for inserts and UPDATEs alike."""
        return {
            "payouts_estimated": payouts.estimated,
            "payouts_actual": payouts.actual,
            "publication_count": payouts.publication_count,
            "revenue_share_rate": revenue_share.rate,
            "revenue_share_estimated": revenue_share.estimated,
            "revenue_share_actual": revenue_share.actual,
            "platform_cpm_rate": platform_cpm.rate,
            "cpm_impressions_estimated": platform_cpm.estimated_impressions,
            "cpm_impressions_actual": platform_cpm.actual_impressions,
            "platform_cpm_estimated": platform_cpm.estimated,
            "platform_cpm_actual": platform_cpm.actual,
            "total_fees_estimated": totals.estimated,
            "total_fees_actual": totals.actual,
        }

    def to_dto(self, payments: tuple[Payment, ...] = ()) -> BillingRecord:
        return BillingRecord(
            id=self.id,
            hub_id=self.hub_id,
            hub_name=self.hub_name,
            campaign_id=self.campaign_id,
            campaign_name=self.campaign_name,
            publisher_payouts=PublisherPayouts(
                estimated=self.payouts_estimated,
                actual=self.payouts_actual,
                publication_count=self.publication_count,
            ),
            revenue_share_fee=RevenueShareFee(
                rate=self.revenue_share_rate,
                estimated=self.revenue_share_estimated,
                actual=self.revenue_share_actual,
            ),
            platform_cpm_fee=PlatformCpmFee(
                rate=self.platform_cpm_rate,
                estimated_impressions=self.cpm_impressions_estimated,
                actual_impressions=self.cpm_impressions_actual,
                estimated=self.platform_cpm_estimated,
                actual=self.platform_cpm_actual,
            ),
            total_fees=FeeTotals(
                estimated=self.total_fees_estimated, actual=self.total_fees_actual
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
            ledger=PaymentLedger(amount_paid=self.amount_paid, payments=payments),
            campaign_start=self.campaign_start,
            campaign_end=self.campaign_end,
            finalized=self.finalized,
            finalized_at=self.finalized_at,
        )

    @classmethod
    def from_dto(cls, dto: BillingRecord) -> BillingRecordModel:
        return cls(
            id=dto.id,
            hub_id=dto.hub_id,
            hub_name=dto.hub_name,
            campaign_id=dto.campaign_id,
            campaign_name=dto.campaign_name,
            amount_paid=dto.ledger.amount_paid,
            campaign_start=dto.campaign_start,
            campaign_end=dto.campaign_end,
            finalized=dto.finalized,
            finalized_at=dto.finalized_at,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            **cls.fee_columns(
                dto.publisher_payouts,
                dto.revenue_share_fee,
                dto.platform_cpm_fee,
                dto.total_fees,
            ),
        )

    def __repr__(self) -> str:
        return f"<BillingRecordModel {self.hub_id}/{self.campaign_id}: {self.total_fees_actual}>"
