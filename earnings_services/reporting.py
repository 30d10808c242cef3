"""
Earnings and billing reporting.

Read-only queries behind the reporting and admin billing views:

- per-order summary, from the persisted record or derived on read
- publication listing and aggregate summary
- campaign view across publications
- hub billing listing and summary, platform listing and summary

Derived summaries never write.  Goals that have not been recorded yet are
computed in memory for the read and discarded.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from earnings_config.schema import EarningsConfig
from earnings_engines.earnings import compute_variance, estimate_earnings
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.inventory import Order
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    BillingRecord,
    EarningsRecord,
    EstimatedEarnings,
    PaymentStatus,
    TrackedImpressions,
    Variance,
    amount_owed,
    derive_payment_status,
)
from earnings_kernel.domain.values import ZERO
from earnings_kernel.logging_config import get_logger
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.goal_recorder import DeliveryGoalRecorder
from earnings_services.repositories import StoreBundle

logger = get_logger("services.reporting")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

T = TypeVar("T")


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class OrderEarningsSummary:
    """Estimated / actual / variance / payment position of one order."""
    order_id: str
    campaign_id: str
    campaign_name: str
    publication_id: str
    publication_name: str
    hub_id: str
    estimated: EstimatedEarnings
    actual: ActualEarnings
    variance: Variance
    tracked_impressions: TrackedImpressions
    amount_paid: Decimal
    amount_owed: Decimal
    payment_status: PaymentStatus
    finalized: bool
    persisted: bool
    earnings_id: UUID | None = None

    @property
    def earned(self) -> Decimal:
        """Actual when anything has been delivered, otherwise the estimate."""
        return self.actual.total if self.actual.total > ZERO else self.estimated.total

    @classmethod
    def from_record(cls, record: EarningsRecord) -> OrderEarningsSummary:
        return cls(
            order_id=record.order_id,
            campaign_id=record.campaign_id,
            campaign_name=record.campaign_name,
            publication_id=record.publication_id,
            publication_name=record.publication_name,
            hub_id=record.hub_id,
            estimated=record.estimated,
            actual=record.actual,
            variance=record.variance,
            tracked_impressions=record.tracked_impressions,
            amount_paid=record.amount_paid,
            amount_owed=record.amount_owed,
            payment_status=record.payment_status,
            finalized=record.finalized,
            persisted=True,
            earnings_id=record.id,
        )


@dataclass(frozen=True)
class PublicationEarningsSummary:
    publication_id: str
    total_earned: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_pending: Decimal = ZERO
    order_count: int = 0
    by_payment_status: dict[PaymentStatus, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CampaignEarnings:
    campaign_id: str
    records: tuple[EarningsRecord, ...] = ()
    total_estimated: Decimal = ZERO
    total_actual: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_owed: Decimal = ZERO
    publication_count: int = 0


@dataclass(frozen=True)
class HubBillingSummary:
    hub_id: str
    total_fees: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    campaign_count: int = 0
    revenue_share_total: Decimal = ZERO
    platform_cpm_total: Decimal = ZERO


@dataclass(frozen=True)
class HubBreakdown:
    hub_id: str
    hub_name: str
    total_fees: Decimal
    paid: Decimal
    outstanding: Decimal


@dataclass(frozen=True)
class PlatformSummary:
    total_revenue: Decimal = ZERO
    total_collected: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    hub_count: int = 0
    campaign_count: int = 0
    by_hub: tuple[HubBreakdown, ...] = ()


# ============================================================================
# Helpers
# ============================================================================


def _effective(actual: Decimal, estimated: Decimal) -> Decimal:
    return actual if actual != ZERO else estimated


def _status_matcher(status: PaymentStatus | str | None) -> Callable[[PaymentStatus], bool]:
    """Predicate for a payment-status filter. An unknown status matches nothing."""
    if status is None:
        return lambda _: True
    if not isinstance(status, PaymentStatus):
        try:
            status = PaymentStatus(str(status).strip().lower())
        except ValueError:
            logger.info("unknown_payment_status_filter", extra={"payment_status": str(status)})
            return lambda _: False
    wanted = status
    return lambda actual: actual is wanted


def _newest_first(items: list[T], key) -> list[T]:
    return sorted(
        items,
        key=lambda item: (key(item) is not None, key(item) or _EPOCH),
        reverse=True,
    )


class EarningsReporting:
    """Read-side queries over both ledgers."""

    def __init__(
        self,
        store: StoreBundle,
        config: EarningsConfig,
        clock: Clock | None = None,
    ):
        self._store = store
        self._config = config
        self._clock = clock or SystemClock()
        self._channels = config.channel_catalog()
        self._goals = DeliveryGoalRecorder(store.orders, config, self._channels)
        self._aggregator = EarningsAggregator(
            store.orders, store.evidence, store.earnings, config, self._clock
        )

    def _page(self, items: list[T], skip: int | None, limit: int | None) -> list[T]:
        skip, limit = self._config.clamp_page(skip, limit)
        return items[skip : skip + limit]

    # =========================================================================
    # Orders
    # =========================================================================

    def order_summary(self, order_id: str) -> OrderEarningsSummary | None:
        """Persisted summary when a record exists, otherwise derived on read.

        Orders that are not confirmed or completed have no earnings.
        """
        record = self._store.earnings.get_by_order(order_id)
        if record is not None:
            return OrderEarningsSummary.from_record(record)
        order = self._store.orders.get_order(order_id)
        if order is None or not self._aggregator.is_eligible(order):
            return None
        return self.derive_order_summary(order, existing=None)

    def derive_order_summary(
        self, order: Order, existing: EarningsRecord | None = None
    ) -> OrderEarningsSummary:
        """
        Compute an order's summary from its current evidence without writing.

        ``finalized`` reflects whether the campaign has ended; the amount
        paid comes from ``existing`` when one is supplied.
        """
        campaign = self._store.orders.get_campaign(order.campaign_id)
        goals = (
            order.delivery_goals
            if order.delivery_goals is not None
            else self._goals.compute(order, campaign)
        )
        estimate = estimate_earnings(
            order.placements,
            goals,
            channels=self._channels,
            places=self._config.money_places,
        )
        result = self._aggregator.compute_actual_for(order.order_id, estimate.estimated)
        paid = existing.amount_paid if existing is not None else ZERO
        campaign_end = campaign.end_date if campaign else None

        return OrderEarningsSummary(
            order_id=order.order_id,
            campaign_id=order.campaign_id,
            campaign_name=campaign.name if campaign else "",
            publication_id=order.publication_id,
            publication_name=order.publication_name,
            hub_id=order.hub_id,
            estimated=estimate.estimated,
            actual=result.actual,
            variance=compute_variance(result.actual.total, estimate.estimated.total),
            tracked_impressions=TrackedImpressions(
                estimated=estimate.tracked_impressions,
                actual=result.tracked_impressions,
            ),
            amount_paid=paid,
            amount_owed=amount_owed(paid, result.actual.total),
            payment_status=derive_payment_status(paid, result.actual.total),
            finalized=campaign_end is not None and campaign_end < self._clock.today(),
            persisted=False,
            earnings_id=existing.id if existing is not None else None,
        )

    # =========================================================================
    # Publications
    # =========================================================================

    def _publication_summaries(self, publication_id: str) -> list[OrderEarningsSummary]:
        orders = [
            o
            for o in self._store.orders.list_orders_for_publication(publication_id)
            if self._aggregator.is_eligible(o)
        ]
        summaries = []
        for order in _newest_first(orders, lambda o: o.created_at):
            record = self._store.earnings.get_by_order(order.order_id)
            if record is not None:
                summaries.append(OrderEarningsSummary.from_record(record))
            else:
                summaries.append(self.derive_order_summary(order))
        return summaries

    def publication_earnings(
        self,
        publication_id: str,
        *,
        payment_status: PaymentStatus | str | None = None,
        finalized: bool | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[OrderEarningsSummary]:
        """A publication's eligible orders, newest first, filtered then paged."""
        matches = _status_matcher(payment_status)
        summaries = [
            s
            for s in self._publication_summaries(publication_id)
            if matches(s.payment_status)
            and (finalized is None or s.finalized is finalized)
        ]
        return self._page(summaries, skip, limit)

    def publication_summary(self, publication_id: str) -> PublicationEarningsSummary:
        summaries = self._publication_summaries(publication_id)
        counts = Counter(s.payment_status for s in summaries)
        return PublicationEarningsSummary(
            publication_id=publication_id,
            total_earned=sum((s.earned for s in summaries), ZERO),
            total_paid=sum((s.amount_paid for s in summaries), ZERO),
            total_pending=sum((s.amount_owed for s in summaries), ZERO),
            order_count=len(summaries),
            by_payment_status={status: counts.get(status, 0) for status in PaymentStatus},
        )

    # =========================================================================
    # Campaigns
    # =========================================================================

    def campaign_earnings(self, campaign_id: str) -> CampaignEarnings:
        records = tuple(self._store.earnings.list_by_campaign(campaign_id))
        return CampaignEarnings(
            campaign_id=campaign_id,
            records=records,
            total_estimated=sum((r.estimated.total for r in records), ZERO),
            total_actual=sum((r.actual.total for r in records), ZERO),
            total_paid=sum((r.amount_paid for r in records), ZERO),
            total_owed=sum((r.amount_owed for r in records), ZERO),
            publication_count=len({r.publication_id for r in records}),
        )

    # =========================================================================
    # Hub billing
    # =========================================================================

    def _filter_billing(
        self,
        records: list[BillingRecord],
        payment_status: PaymentStatus | str | None,
        finalized: bool | None,
    ) -> list[BillingRecord]:
        matches = _status_matcher(payment_status)
        return [
            r
            for r in _newest_first(records, lambda r: r.created_at)
            if matches(r.payment_status)
            and (finalized is None or r.finalized is finalized)
        ]

    def hub_billing(
        self,
        hub_id: str,
        *,
        payment_status: PaymentStatus | str | None = None,
        finalized: bool | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[BillingRecord]:
        records = self._filter_billing(
            self._store.billing.list_by_hub(hub_id), payment_status, finalized
        )
        return self._page(records, skip, limit)

    def all_hub_billing(
        self,
        *,
        payment_status: PaymentStatus | str | None = None,
        finalized: bool | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[BillingRecord]:
        records = self._filter_billing(
            self._store.billing.list_all(), payment_status, finalized
        )
        return self._page(records, skip, limit)

    def hub_billing_summary(self, hub_id: str) -> HubBillingSummary:
        records = self._store.billing.list_by_hub(hub_id)
        return HubBillingSummary(
            hub_id=hub_id,
            total_fees=sum(
                (_effective(r.total_fees.actual, r.total_fees.estimated) for r in records),
                ZERO,
            ),
            total_paid=sum((r.amount_paid for r in records), ZERO),
            total_outstanding=sum((r.amount_owed for r in records), ZERO),
            campaign_count=len({r.campaign_id for r in records}),
            revenue_share_total=sum(
                (
                    _effective(r.revenue_share_fee.actual, r.revenue_share_fee.estimated)
                    for r in records
                ),
                ZERO,
            ),
            platform_cpm_total=sum(
                (
                    _effective(r.platform_cpm_fee.actual, r.platform_cpm_fee.estimated)
                    for r in records
                ),
                ZERO,
            ),
        )

    def platform_summary(self) -> PlatformSummary:
        """Totals across every hub, with a per-hub breakdown by total fees."""
        records = self._store.billing.list_all()
        hubs: dict[str, dict] = {}
        for r in records:
            fees = _effective(r.total_fees.actual, r.total_fees.estimated)
            entry = hubs.setdefault(
                r.hub_id,
                {"hub_name": r.hub_name, "fees": ZERO, "paid": ZERO, "outstanding": ZERO},
            )
            entry["fees"] += fees
            entry["paid"] += r.amount_paid
            entry["outstanding"] += r.amount_owed

        by_hub = sorted(
            (
                HubBreakdown(
                    hub_id=hub_id,
                    hub_name=entry["hub_name"],
                    total_fees=entry["fees"],
                    paid=entry["paid"],
                    outstanding=entry["outstanding"],
                )
                for hub_id, entry in hubs.items()
            ),
            key=lambda h: h.total_fees,
            reverse=True,
        )
        summary = PlatformSummary(
            total_revenue=sum((h.total_fees for h in by_hub), ZERO),
            total_collected=sum((h.paid for h in by_hub), ZERO),
            total_outstanding=sum((h.outstanding for h in by_hub), ZERO),
            hub_count=len(by_hub),
            campaign_count=len({r.campaign_id for r in records}),
            by_hub=tuple(by_hub),
        )
        logger.debug(
            "platform_summary_computed",
            extra={"hub_count": summary.hub_count, "total_revenue": str(summary.total_revenue)},
        )
        return summary
