"""
Ledger -- Earnings and billing records with their payment sub-ledgers.

Responsibility:
    Immutable shapes for the two ledgers the engine maintains:

    - ``EarningsRecord``: one per order, what a publication is owed.
    - ``BillingRecord``: one per (hub, campaign), what a hub owes the platform.

    Both embed a ``PaymentLedger``.  Payment status is derived from
    (amount paid, target) on every read and is never stored.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A ``Payment`` amount is strictly positive (``InvalidPaymentAmountError``).
    - ``amount_owed`` is never negative; overpayment clamps it to zero.
    - Status is ``pending`` iff nothing was paid, ``paid`` iff the target is
      positive and fully covered, otherwise ``partially_paid``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from earnings_kernel.domain.inventory import Channel, GoalType
from earnings_kernel.domain.values import ZERO, to_decimal, to_int
from earnings_kernel.exceptions import InvalidPaymentAmountError


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentMethod(str, Enum):
    CHECK = "check"
    ACH = "ach"
    WIRE = "wire"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


def derive_payment_status(amount_paid: Decimal, target: Decimal) -> PaymentStatus:
    """Status as a pure function of (amount paid, target total)."""
    if amount_paid <= ZERO:
        return PaymentStatus.PENDING
    if target > ZERO and amount_paid >= target:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIALLY_PAID


def amount_owed(amount_paid: Decimal, target: Decimal) -> Decimal:
    """Outstanding balance, clamped at zero."""
    return max(ZERO, target - amount_paid)


# ============================================================================
# Payments
# ============================================================================


@dataclass(frozen=True)
class Payment:
    """
    One recorded payment against a ledger record.

    ``invoice_number`` is only meaningful on the billing ledger.
    """

    amount: Decimal
    paid_on: date
    recorded_at: datetime
    method: PaymentMethod | None = None
    reference: str | None = None
    invoice_number: str | None = None
    notes: str | None = None
    recorded_by: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal) or not self.amount.is_finite():
            raise InvalidPaymentAmountError(str(self.amount))
        if self.amount <= ZERO:
            raise InvalidPaymentAmountError(self.amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": str(self.amount),
            "paid_on": self.paid_on.isoformat(),
            "recorded_at": self.recorded_at.isoformat(),
            "method": self.method.value if self.method else None,
            "reference": self.reference,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
        }


@dataclass(frozen=True)
class PaymentLedger:
    """Ordered, append-only payment history with its running total."""

    amount_paid: Decimal = ZERO
    payments: tuple[Payment, ...] = ()


# ============================================================================
# Earnings breakdowns
# ============================================================================


@dataclass(frozen=True)
class EstimatedPlacement:
    """
    Contracted value of one placement.

    ``planned_quantity`` is the billable quantity the estimate was priced
    at: the goal value, or 100 (percent complete) for time-based pricing.
    """

    item_path: str
    item_name: str
    channel: Channel
    pricing_model: str
    rate: Decimal
    goal_type: GoalType
    goal_value: int
    planned_quantity: Decimal
    estimated_earnings: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_path": self.item_path,
            "item_name": self.item_name,
            "channel": self.channel.value,
            "pricing_model": self.pricing_model,
            "rate": str(self.rate),
            "goal_type": self.goal_type.value,
            "goal_value": self.goal_value,
            "planned_quantity": str(self.planned_quantity),
            "estimated_earnings": str(self.estimated_earnings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EstimatedPlacement:
        return cls(
            item_path=str(data["item_path"]),
            item_name=str(data.get("item_name") or ""),
            channel=Channel.coerce(data.get("channel")),
            pricing_model=str(data.get("pricing_model") or ""),
            rate=to_decimal(data.get("rate")),
            goal_type=GoalType(data.get("goal_type", GoalType.UNITS.value)),
            goal_value=to_int(data.get("goal_value")),
            planned_quantity=to_decimal(data.get("planned_quantity")),
            estimated_earnings=to_decimal(data.get("estimated_earnings")),
        )


@dataclass(frozen=True)
class ActualPlacement:
    """
    Recognized value of one placement from delivery evidence.

    ``delivered`` is in billable units (percent complete for time-based
    pricing).  ``raw_earnings`` is before the per-placement cap.
    """

    item_path: str
    item_name: str
    channel: Channel
    pricing_model: str
    delivered: Decimal
    impressions: int
    raw_earnings: Decimal
    actual_earnings: Decimal
    capped: bool = False
    source: str = "none"

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_path": self.item_path,
            "item_name": self.item_name,
            "channel": self.channel.value,
            "pricing_model": self.pricing_model,
            "delivered": str(self.delivered),
            "impressions": self.impressions,
            "raw_earnings": str(self.raw_earnings),
            "actual_earnings": str(self.actual_earnings),
            "capped": self.capped,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ActualPlacement:
        return cls(
            item_path=str(data["item_path"]),
            item_name=str(data.get("item_name") or ""),
            channel=Channel.coerce(data.get("channel")),
            pricing_model=str(data.get("pricing_model") or ""),
            delivered=to_decimal(data.get("delivered")),
            impressions=to_int(data.get("impressions")),
            raw_earnings=to_decimal(data.get("raw_earnings")),
            actual_earnings=to_decimal(data.get("actual_earnings")),
            capped=bool(data.get("capped", False)),
            source=str(data.get("source") or "none"),
        )


def _by_channel_to_dict(by_channel: Mapping[str, Decimal]) -> dict[str, str]:
    return {k: str(v) for k, v in by_channel.items()}


def _by_channel_from_dict(data: Mapping[str, Any] | None) -> dict[str, Decimal]:
    return {k: to_decimal(v) for k, v in (data or {}).items()}


@dataclass(frozen=True)
class EstimatedEarnings:
    total: Decimal = ZERO
    by_channel: dict[str, Decimal] = field(default_factory=dict)
    placements: tuple[EstimatedPlacement, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": str(self.total),
            "by_channel": _by_channel_to_dict(self.by_channel),
            "placements": [p.to_dict() for p in self.placements],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> EstimatedEarnings:
        data = data or {}
        return cls(
            total=to_decimal(data.get("total")),
            by_channel=_by_channel_from_dict(data.get("by_channel")),
            placements=tuple(
                EstimatedPlacement.from_dict(p) for p in data.get("placements", ())
            ),
        )


@dataclass(frozen=True)
class ActualEarnings:
    total: Decimal = ZERO
    by_channel: dict[str, Decimal] = field(default_factory=dict)
    placements: tuple[ActualPlacement, ...] = ()
    computed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": str(self.total),
            "by_channel": _by_channel_to_dict(self.by_channel),
            "placements": [p.to_dict() for p in self.placements],
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ActualEarnings:
        data = data or {}
        computed_at = data.get("computed_at")
        return cls(
            total=to_decimal(data.get("total")),
            by_channel=_by_channel_from_dict(data.get("by_channel")),
            placements=tuple(
                ActualPlacement.from_dict(p) for p in data.get("placements", ())
            ),
            computed_at=datetime.fromisoformat(computed_at) if computed_at else None,
        )


@dataclass(frozen=True)
class TrackedImpressions:
    """Digital impressions used only as the hub platform-CPM fee base."""

    estimated: int = 0
    actual: int = 0


@dataclass(frozen=True)
class Variance:
    """actual - estimated, and as a percentage of estimated (0 when estimated is 0)."""

    amount: Decimal = ZERO
    percentage: Decimal = ZERO


# ============================================================================
# Ledger records
# ============================================================================


@dataclass(frozen=True)
class EarningsRecord:
    """
    What a publication is owed for one order.

    The payment target is ``actual.total``.
    """

    id: UUID
    order_id: str
    campaign_id: str
    campaign_name: str
    publication_id: str
    publication_name: str
    hub_id: str
    estimated: EstimatedEarnings
    actual: ActualEarnings
    tracked_impressions: TrackedImpressions
    variance: Variance
    created_at: datetime
    updated_at: datetime
    ledger: PaymentLedger = field(default_factory=PaymentLedger)
    campaign_start: date | None = None
    campaign_end: date | None = None
    finalized: bool = False
    finalized_at: datetime | None = None

    @property
    def payment_target(self) -> Decimal:
        return self.actual.total

    @property
    def amount_paid(self) -> Decimal:
        return self.ledger.amount_paid

    @property
    def amount_owed(self) -> Decimal:
        return amount_owed(self.ledger.amount_paid, self.payment_target)

    @property
    def payment_status(self) -> PaymentStatus:
        return derive_payment_status(self.ledger.amount_paid, self.payment_target)

    @property
    def payments(self) -> tuple[Payment, ...]:
        return self.ledger.payments


@dataclass(frozen=True)
class PublisherPayouts:
    """Sum of the constituent earnings records of one campaign within a hub."""

    estimated: Decimal = ZERO
    actual: Decimal = ZERO
    publication_count: int = 0


@dataclass(frozen=True)
class RevenueShareFee:
    rate: Decimal = ZERO
    estimated: Decimal = ZERO
    actual: Decimal = ZERO


@dataclass(frozen=True)
class PlatformCpmFee:
    rate: Decimal = ZERO
    estimated_impressions: int = 0
    actual_impressions: int = 0
    estimated: Decimal = ZERO
    actual: Decimal = ZERO


@dataclass(frozen=True)
class FeeTotals:
    estimated: Decimal = ZERO
    actual: Decimal = ZERO


@dataclass(frozen=True)
class BillingRecord:
    """
    What a hub owes the platform for one campaign.

    The payment target is ``total_fees.actual``.
    """

    id: UUID
    hub_id: str
    hub_name: str
    campaign_id: str
    campaign_name: str
    publisher_payouts: PublisherPayouts
    revenue_share_fee: RevenueShareFee
    platform_cpm_fee: PlatformCpmFee
    total_fees: FeeTotals
    created_at: datetime
    updated_at: datetime
    ledger: PaymentLedger = field(default_factory=PaymentLedger)
    campaign_start: date | None = None
    campaign_end: date | None = None
    finalized: bool = False
    finalized_at: datetime | None = None

    @property
    def payment_target(self) -> Decimal:
        return self.total_fees.actual

    @property
    def amount_paid(self) -> Decimal:
        return self.ledger.amount_paid

    @property
    def amount_owed(self) -> Decimal:
        return amount_owed(self.ledger.amount_paid, self.payment_target)

    @property
    def payment_status(self) -> PaymentStatus:
        return derive_payment_status(self.ledger.amount_paid, self.payment_target)

    @property
    def payments(self) -> tuple[Payment, ...]:
        return self.ledger.payments
