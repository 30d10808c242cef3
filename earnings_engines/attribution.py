"""
Delivery Attribution.

Pure functions with deterministic behavior. No I/O.

Aggregates an order's delivery evidence per placement and expresses it in
the placement's billable unit:

    impression / view family   sum of metrics.impressions
    click family               sum of metrics.clicks
    occurrence / unrecognized  verified proof count, or else one per
                               performance entry (never both)
    time-based                 percent complete, 0-100:
                               min(1, delivered / goal) x 100 where delivered
                               is impressions (impressions goal) or
                               occurrences (units goal); a zero goal counts
                               as a goal of 1

Matching: a performance entry goes to the placement with the same item
path.  Failing that, it goes to the single placement on the entry's
channel; when several placements share that channel the entry is left
unattributed.  Proofs match by item path only and count only when
verified.  Soft-deleted entries are ignored.  Evidence for unknown item
paths contributes nothing.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from earnings_engines.pricing import FULL_COMPLETION, PricingFamily
from earnings_engines.tracer import traced_engine
from earnings_kernel.domain.evidence import PerformanceEntry, ProofOfPerformance
from earnings_kernel.domain.inventory import Channel, ChannelCatalog, GoalType
from earnings_kernel.domain.values import ZERO
from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.attribution")


class DeliverySource:
    NONE = "none"
    PERFORMANCE = "performance"
    PROOFS = "proofs"


@dataclass(frozen=True)
class DeliveryTarget:
    """What attribution needs to know about one placement."""

    item_path: str
    channel: Channel
    family: PricingFamily
    goal_type: GoalType
    goal_value: int


@dataclass(frozen=True)
class PlacementDelivery:
    """
    Attributed delivery for one placement.

    ``delivered`` is in billable units; the raw counters are kept alongside.
    """

    item_path: str
    delivered: Decimal = ZERO
    impressions: int = 0
    clicks: int = 0
    occurrences: int = 0
    source: str = DeliverySource.NONE


@dataclass(frozen=True)
class AttributionResult:
    deliveries: dict[str, PlacementDelivery] = field(default_factory=dict)
    unattributed_entries: int = 0

    def for_item(self, item_path: str) -> PlacementDelivery:
        return self.deliveries.get(item_path, PlacementDelivery(item_path=item_path))


def _completion_percent(delivered: Decimal, goal_value: int) -> Decimal:
    goal = Decimal(goal_value) if goal_value > 0 else Decimal(1)
    ratio = min(Decimal(1), delivered / goal)
    return ratio * FULL_COMPLETION


def _route_entries(
    targets: Sequence[DeliveryTarget],
    entries: Iterable[PerformanceEntry],
    channels: ChannelCatalog,
) -> tuple[dict[str, list[PerformanceEntry]], int]:
    by_path = {t.item_path: t for t in targets}
    by_channel: dict[Channel, list[DeliveryTarget]] = defaultdict(list)
    for target in targets:
        by_channel[target.channel].append(target)

    routed: dict[str, list[PerformanceEntry]] = defaultdict(list)
    unattributed = 0
    for entry in entries:
        if entry.deleted:
            continue
        target = by_path.get(entry.item_path)
        if target is None:
            candidates = by_channel.get(channels.normalize(entry.channel), [])
            if len(candidates) == 1:
                target = candidates[0]
        if target is None:
            unattributed += 1
            continue
        routed[target.item_path].append(entry)
    return routed, unattributed


def _deliver(
    target: DeliveryTarget,
    entries: list[PerformanceEntry],
    proof_count: int,
) -> PlacementDelivery:
    impressions = sum((e.impressions for e in entries), ZERO)
    clicks = sum((e.clicks for e in entries), ZERO)

    if proof_count > 0:
        occurrences, occurrence_source = proof_count, DeliverySource.PROOFS
    elif entries:
        occurrences, occurrence_source = len(entries), DeliverySource.PERFORMANCE
    else:
        occurrences, occurrence_source = 0, DeliverySource.NONE

    counter_source = DeliverySource.PERFORMANCE if entries else DeliverySource.NONE

    match target.family:
        case PricingFamily.IMPRESSION | PricingFamily.VIEW:
            delivered, source = impressions, counter_source
        case PricingFamily.CLICK:
            delivered, source = clicks, counter_source
        case PricingFamily.TIME_BASED if target.goal_type is GoalType.IMPRESSIONS:
            delivered = _completion_percent(impressions, target.goal_value)
            source = counter_source
        case PricingFamily.TIME_BASED:
            delivered = _completion_percent(Decimal(occurrences), target.goal_value)
            source = occurrence_source
        case _:
            delivered, source = Decimal(occurrences), occurrence_source

    return PlacementDelivery(
        item_path=target.item_path,
        delivered=delivered,
        impressions=int(impressions),
        clicks=int(clicks),
        occurrences=occurrences,
        source=source,
    )


@traced_engine("delivery_attribution", "1.0")
def attribute_delivery(
    targets: Sequence[DeliveryTarget],
    entries: Iterable[PerformanceEntry],
    proofs: Iterable[ProofOfPerformance],
    channels: ChannelCatalog,
) -> AttributionResult:
    """
    Attribute evidence to placements.

    Postconditions:
        - One ``PlacementDelivery`` per target, even with no evidence.
        - Time-based ``delivered`` is within [0, 100].
    """
    routed, unattributed = _route_entries(targets, entries, channels)

    proof_counts: dict[str, int] = defaultdict(int)
    for proof in proofs:
        if proof.verified:
            proof_counts[proof.item_path] += 1

    deliveries = {
        t.item_path: _deliver(t, routed.get(t.item_path, []), proof_counts.get(t.item_path, 0))
        for t in targets
    }

    if unattributed:
        logger.info(
            "evidence_unattributed",
            extra={"unattributed_entries": unattributed},
        )
    return AttributionResult(deliveries=deliveries, unattributed_entries=unattributed)
