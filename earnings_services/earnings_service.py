"""
Earnings Aggregator - Maintains one publication earnings record per order.

Thin glue layer that:
1. Reads the order, campaign and stored delivery goals through OrderRepository
2. Calls the earnings engine for the estimated side (goals x rate)
3. Calls the attribution and earnings engines for the actual side
4. Writes through EarningsRepository, whose conditional writes make every
   operation safe under concurrent invocation for the same order

Absent orders, ineligible orders and unknown record ids are ordinary
outcomes: the methods return ``None`` and log.  Only store unavailability
propagates.

Usage:
    aggregator = EarningsAggregator(
        orders=store.orders, evidence=store.evidence,
        earnings=store.earnings, config=get_active_config(),
    )
    record = aggregator.create_estimate("order-1")
    record = aggregator.recompute_actual("order-1")
    record = aggregator.record_payment(record.id, Decimal("250.00"))
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

from earnings_config.schema import EarningsConfig
from earnings_engines.attribution import attribute_delivery
from earnings_engines.earnings import (
    EarningsActual,
    compute_actual,
    compute_variance,
    delivery_targets,
    estimate_earnings,
)
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.inventory import Order
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    EarningsRecord,
    EstimatedEarnings,
    PaymentMethod,
    TrackedImpressions,
    Variance,
)
from earnings_kernel.domain.values import parse_record_id
from earnings_kernel.logging_config import LogContext, get_logger
from earnings_services.goal_recorder import DeliveryGoalRecorder
from earnings_services.payments import build_payment
from earnings_services.repositories import (
    EarningsRepository,
    EvidenceRepository,
    OrderRepository,
)

logger = get_logger("services.earnings")


class EarningsAggregator:
    """
    Creates, recomputes, finalizes and records payments against
    publication earnings records.

    Engine composition:
    - delivery_goals: goals recorded once per order (via DeliveryGoalRecorder)
    - earnings: estimate, per-item and order-level caps, variance
    - attribution: evidence -> billable delivery per placement
    - payment_ledger: append-only history, derived status
    """

    def __init__(
        self,
        orders: OrderRepository,
        evidence: EvidenceRepository,
        earnings: EarningsRepository,
        config: EarningsConfig,
        clock: Clock | None = None,
    ):
        self._orders = orders
        self._evidence = evidence
        self._earnings = earnings
        self._config = config
        self._clock = clock or SystemClock()
        self._channels = config.channel_catalog()
        self._goals = DeliveryGoalRecorder(orders, config, self._channels)

    def is_eligible(self, order: Order) -> bool:
        return order.status.lower() in self._config.eligible_order_statuses

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_estimate(self, order_id: str) -> EarningsRecord | None:
        """
        Create the earnings record for an order, or return the existing one.

        Returns None when the order does not exist or is not confirmed /
        completed.
        """
        with LogContext.bind(order_id=order_id):
            order = self._orders.get_order(order_id)
            if order is None:
                logger.info("earnings_order_not_found")
                return None
            if not self.is_eligible(order):
                logger.info("earnings_order_ineligible", extra={"status": order.status})
                return None

            existing = self._earnings.get_by_order(order_id)
            if existing is not None:
                logger.debug("earnings_estimate_exists", extra={"earnings_id": str(existing.id)})
                return existing

            campaign = self._orders.get_campaign(order.campaign_id)
            goals = self._goals.ensure(order, campaign)
            estimate = estimate_earnings(
                order.placements,
                goals,
                channels=self._channels,
                places=self._config.money_places,
            )

            now = self._clock.now()
            record = EarningsRecord(
                id=uuid4(),
                order_id=order.order_id,
                campaign_id=order.campaign_id,
                campaign_name=campaign.name if campaign else "",
                publication_id=order.publication_id,
                publication_name=order.publication_name,
                hub_id=order.hub_id or (campaign.hub_id if campaign else ""),
                estimated=estimate.estimated,
                actual=ActualEarnings(),
                tracked_impressions=TrackedImpressions(
                    estimated=estimate.tracked_impressions, actual=0
                ),
                variance=Variance(),
                created_at=now,
                updated_at=now,
                campaign_start=campaign.start_date if campaign else None,
                campaign_end=campaign.end_date if campaign else None,
            )

            stored, created = self._earnings.insert_if_absent(record)
            logger.info(
                "earnings_estimate_created" if created else "earnings_estimate_exists",
                extra={
                    "earnings_id": str(stored.id),
                    "estimated_total": str(stored.estimated.total),
                    "placement_count": len(stored.estimated.placements),
                },
            )
            return stored

    def compute_actual_for(
        self, order_id: str, estimated: EstimatedEarnings
    ) -> EarningsActual:
        """Attribute the order's current evidence against ``estimated``."""
        attribution = attribute_delivery(
            delivery_targets(estimated),
            self._evidence.performance_entries(order_id),
            self._evidence.proofs(order_id),
            self._channels,
        )
        return compute_actual(
            estimated,
            attribution,
            computed_at=self._clock.now(),
            places=self._config.money_places,
        )

    def recompute_actual(self, order_id: str) -> EarningsRecord | None:
        """
        Re-derive the actual side from the current evidence snapshot.

        Idempotent.  Finalized records are returned unchanged.
        """
        with LogContext.bind(order_id=order_id):
            record = self._earnings.get_by_order(order_id)
            if record is None:
                logger.info("earnings_record_not_found")
                return None
            if record.finalized:
                logger.debug("earnings_recompute_skipped_finalized")
                return record

            result = self.compute_actual_for(order_id, record.estimated)
            variance = compute_variance(result.actual.total, record.estimated.total)
            updated = self._earnings.update_actual(
                record.id,
                result.actual,
                result.tracked_impressions,
                variance,
                self._clock.now(),
            )
            logger.info(
                "earnings_actual_recomputed",
                extra={
                    "earnings_id": str(record.id),
                    "actual_total": str(result.actual.total),
                    "estimated_total": str(record.estimated.total),
                    "variance_percentage": str(variance.percentage),
                },
            )
            return updated

    def finalize(self, order_id: str) -> EarningsRecord | None:
        """
        One last recompute, then the one-way ``finalized`` transition.

        Payments may still be recorded afterwards.
        """
        with LogContext.bind(order_id=order_id):
            record = self._earnings.get_by_order(order_id)
            if record is None:
                logger.info("earnings_record_not_found")
                return None
            if record.finalized:
                return record

            result = self.compute_actual_for(order_id, record.estimated)
            variance = compute_variance(result.actual.total, record.estimated.total)
            finalized = self._earnings.mark_finalized(
                record.id,
                result.actual,
                result.tracked_impressions,
                variance,
                self._clock.now(),
            )
            logger.info(
                "earnings_finalized",
                extra={
                    "earnings_id": str(record.id),
                    "actual_total": str(result.actual.total),
                },
            )
            return finalized

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        earnings_id: Any,
        amount: Decimal | int | str,
        *,
        paid_on: date | None = None,
        method: PaymentMethod | str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        recorded_by: str | None = None,
    ) -> EarningsRecord | None:
        """
        Append a payment to an earnings record.

        Overpayment is accepted: the status becomes ``paid`` and the amount
        owed clamps to zero.

        Raises:
            InvalidPaymentAmountError: amount is not strictly positive.
        """
        payment = build_payment(
            self._clock,
            amount,
            paid_on=paid_on,
            method=method,
            reference=reference,
            notes=notes,
            recorded_by=recorded_by,
        )
        record_id = parse_record_id(earnings_id)
        if record_id is None:
            logger.info("earnings_id_malformed", extra={"earnings_id": str(earnings_id)})
            return None

        with LogContext.bind(actor_id=recorded_by):
            updated = self._earnings.append_payment(record_id, payment)
            if updated is None:
                logger.info("earnings_record_not_found", extra={"earnings_id": str(record_id)})
                return None
            logger.info(
                "earnings_payment_recorded",
                extra={
                    "earnings_id": str(record_id),
                    "order_id": updated.order_id,
                    "amount": str(payment.amount),
                    "amount_paid": str(updated.amount_paid),
                    "amount_owed": str(updated.amount_owed),
                    "payment_status": updated.payment_status.value,
                },
            )
            return updated

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_earnings(self, earnings_id: Any) -> EarningsRecord | None:
        record_id = parse_record_id(earnings_id)
        if record_id is None:
            return None
        return self._earnings.get(record_id)

    def get_order_earnings(self, order_id: str) -> EarningsRecord | None:
        return self._earnings.get_by_order(order_id)
