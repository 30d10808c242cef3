"""
Delivery Goal Calculator.

Pure functions with deterministic behavior. No I/O.

Derives, once per order, the target delivery for every contracted
placement from the campaign's flight dates and each placement's channel
and pricing model.  The result is persisted on the order at confirmation
and is never re-derived afterwards; later inventory edits must not move
the goalposts.

Rules:
    duration_months = max(1, round(days / days_per_month)); 1 when either
    date is unknown.

    digital + CPM-family pricing  impressions  round(baseline x freq/100 x months)
    digital + time-based pricing  impressions  baseline x months
    everything else               units        contracted frequency

Excluded placements get no goal.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from earnings_engines.pricing import PricingFamily, pricing_family
from earnings_engines.tracer import traced_engine
from earnings_kernel.domain.inventory import (
    ChannelCatalog,
    DeliveryGoal,
    GoalType,
    Placement,
)
from earnings_kernel.domain.values import HUNDRED, round_half_up
from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.delivery_goals")


def duration_months(
    start_date: date | None,
    end_date: date | None,
    days_per_month: int = 30,
) -> int:
    """Campaign length in whole months, never less than one."""
    if start_date is None or end_date is None:
        return 1
    days = (end_date - start_date).days
    months = round_half_up(Decimal(days) / Decimal(days_per_month))
    return max(1, months)


def _plural(noun: str, count: int) -> str:
    return noun if count == 1 else f"{noun}s"


def goal_for_placement(
    placement: Placement,
    months: int,
    channels: ChannelCatalog,
) -> DeliveryGoal:
    """Delivery goal for a single (non-excluded) placement."""
    family = pricing_family(placement.pricing_model)
    baseline = max(0, placement.monthly_impressions)
    frequency = max(0, placement.frequency)

    if channels.is_digital(placement.channel):
        if family.is_cpm_family:
            share = Decimal(frequency) / HUNDRED
            value = round_half_up(Decimal(baseline) * share * months)
            return DeliveryGoal(
                goal_type=GoalType.IMPRESSIONS,
                goal_value=value,
                description=(
                    f"{value:,} impressions ({frequency}% share of voice of "
                    f"{baseline:,}/month over {months} {_plural('month', months)})"
                ),
            )
        if family is PricingFamily.TIME_BASED:
            value = baseline * months
            return DeliveryGoal(
                goal_type=GoalType.IMPRESSIONS,
                goal_value=value,
                description=(
                    f"{value:,} impressions ({baseline:,}/month over "
                    f"{months} {_plural('month', months)})"
                ),
            )

    noun = channels.unit_noun(placement.channel)
    return DeliveryGoal(
        goal_type=GoalType.UNITS,
        goal_value=frequency,
        description=f"{frequency} {_plural(noun, frequency)}",
    )


@traced_engine("delivery_goals", "1.0", fingerprint_fields=("start_date", "end_date"))
def compute_delivery_goals(
    placements: Iterable[Placement],
    *,
    start_date: date | None,
    end_date: date | None,
    channels: ChannelCatalog,
    days_per_month: int = 30,
) -> dict[str, DeliveryGoal]:
    """
    Delivery goal per item path for an order's placements.

    Postconditions:
        - One entry per non-excluded placement, keyed by item path.
        - Every goal_value is a non-negative integer.
    """
    months = duration_months(start_date, end_date, days_per_month)
    goals: dict[str, DeliveryGoal] = {}
    skipped = 0
    for placement in placements:
        if placement.excluded:
            skipped += 1
            continue
        goals[placement.item_path] = goal_for_placement(placement, months, channels)

    logger.debug(
        "delivery_goals_computed",
        extra={
            "goal_count": len(goals),
            "excluded_count": skipped,
            "duration_months": months,
        },
    )
    return goals
