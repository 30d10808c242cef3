"""
Earnings Calculation Engine.

Pure functions with deterministic behavior. No I/O.

Combines stored delivery goals, attributed delivery and the pricing
algebra into the estimated and actual sides of a publication's earnings
record.

Caps:
    1. Each placement's actual earnings are capped at that placement's
       estimated earnings, so one over-delivering placement cannot mask
       under-delivery elsewhere.
    2. The order total is capped at the estimated total.

Both caps are applied and logged independently.

Usage:
    from earnings_engines.earnings import estimate_earnings, compute_actual

    estimate = estimate_earnings(order.placements, goals, channels=catalog)
    targets = delivery_targets(estimate.estimated)
    attribution = attribute_delivery(targets, entries, proofs, catalog)
    actual = compute_actual(estimate.estimated, attribution, computed_at=now)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from earnings_engines.attribution import AttributionResult, DeliveryTarget
from earnings_engines.pricing import (
    earnings_for,
    planned_billable_quantity,
    pricing_family,
    pricing_terms,
)
from earnings_engines.tracer import traced_engine
from earnings_kernel.domain.inventory import (
    ChannelCatalog,
    DeliveryGoal,
    GoalType,
    Placement,
)
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    ActualPlacement,
    EstimatedEarnings,
    EstimatedPlacement,
    Variance,
)
from earnings_kernel.domain.values import ZERO, percent_of, quantize_money
from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.earnings")


@dataclass(frozen=True)
class EarningsEstimate:
    estimated: EstimatedEarnings
    tracked_impressions: int = 0


@dataclass(frozen=True)
class EarningsActual:
    actual: ActualEarnings
    tracked_impressions: int = 0
    order_capped: bool = False


def _add(bucket: dict[str, Decimal], key: str, amount: Decimal) -> None:
    bucket[key] = bucket.get(key, ZERO) + amount


@traced_engine("earnings_estimate", "1.0")
def estimate_earnings(
    placements: Iterable[Placement],
    goals: Mapping[str, DeliveryGoal],
    *,
    channels: ChannelCatalog,
    places: int = 2,
) -> EarningsEstimate:
    """
    Contracted value of an order from its stored delivery goals.

    Placements without a stored goal (added after confirmation) are not
    part of the contract and are skipped.
    """
    items: list[EstimatedPlacement] = []
    by_channel: dict[str, Decimal] = {}
    total = ZERO
    tracked = 0

    for placement in placements:
        if placement.excluded:
            continue
        goal = goals.get(placement.item_path)
        if goal is None:
            logger.warning(
                "placement_without_goal",
                extra={"item_path": placement.item_path},
            )
            continue

        terms = pricing_terms(placement.pricing_model, placement.rate)
        planned = planned_billable_quantity(terms, goal.goal_value)
        amount = quantize_money(earnings_for(terms, planned), places)

        items.append(
            EstimatedPlacement(
                item_path=placement.item_path,
                item_name=placement.item_name,
                channel=placement.channel,
                pricing_model=terms.model,
                rate=terms.rate,
                goal_type=goal.goal_type,
                goal_value=goal.goal_value,
                planned_quantity=planned,
                estimated_earnings=amount,
            )
        )
        total += amount
        _add(by_channel, placement.channel.value, amount)
        if goal.goal_type is GoalType.IMPRESSIONS and channels.is_digital(placement.channel):
            tracked += goal.goal_value

    return EarningsEstimate(
        estimated=EstimatedEarnings(
            total=quantize_money(total, places),
            by_channel=by_channel,
            placements=tuple(items),
        ),
        tracked_impressions=tracked,
    )


def delivery_targets(estimated: EstimatedEarnings) -> tuple[DeliveryTarget, ...]:
    """Attribution targets for the placements priced in ``estimated``."""
    return tuple(
        DeliveryTarget(
            item_path=item.item_path,
            channel=item.channel,
            family=pricing_family(item.pricing_model),
            goal_type=item.goal_type,
            goal_value=item.goal_value,
        )
        for item in estimated.placements
    )


@traced_engine("earnings_actual", "1.0")
def compute_actual(
    estimated: EstimatedEarnings,
    attribution: AttributionResult,
    *,
    computed_at: datetime | None = None,
    places: int = 2,
) -> EarningsActual:
    """
    Recognized value of an order from attributed delivery.

    Postconditions:
        - Every placement's actual_earnings <= its estimated_earnings.
        - actual.total <= estimated.total.
    """
    items: list[ActualPlacement] = []
    by_channel: dict[str, Decimal] = {}
    total = ZERO
    tracked = 0

    for est in estimated.placements:
        delivery = attribution.for_item(est.item_path)
        terms = pricing_terms(est.pricing_model, est.rate)
        raw = quantize_money(earnings_for(terms, delivery.delivered), places)
        capped = raw > est.estimated_earnings
        amount = est.estimated_earnings if capped else raw

        if capped:
            logger.info(
                "earnings_item_capped",
                extra={
                    "item_path": est.item_path,
                    "raw_earnings": str(raw),
                    "cap": str(est.estimated_earnings),
                },
            )

        items.append(
            ActualPlacement(
                item_path=est.item_path,
                item_name=est.item_name,
                channel=est.channel,
                pricing_model=est.pricing_model,
                delivered=delivery.delivered,
                impressions=delivery.impressions,
                raw_earnings=raw,
                actual_earnings=amount,
                capped=capped,
                source=delivery.source,
            )
        )
        total += amount
        _add(by_channel, est.channel.value, amount)
        if est.goal_type is GoalType.IMPRESSIONS:
            tracked += delivery.impressions

    order_capped = total > estimated.total
    if order_capped:
        logger.warning(
            "earnings_order_capped",
            extra={"actual_total": str(total), "cap": str(estimated.total)},
        )
        total = estimated.total

    return EarningsActual(
        actual=ActualEarnings(
            total=quantize_money(total, places),
            by_channel=by_channel,
            placements=tuple(items),
            computed_at=computed_at,
        ),
        tracked_impressions=tracked,
        order_capped=order_capped,
    )


def compute_variance(actual_total: Decimal, estimated_total: Decimal) -> Variance:
    """actual - estimated, and as a percentage of estimated (0 if estimated is 0)."""
    amount = actual_total - estimated_total
    return Variance(amount=amount, percentage=percent_of(amount, estimated_total))
