"""
Module: earnings_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    earnings_services and earnings_batch.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import earnings_kernel (and sibling engine modules).
    MUST NOT import earnings_services, earnings_batch, or earnings_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Timestamps are passed in by the services.
    - Decimal-only arithmetic; floats never touch money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``earnings_engines.tracer``), emitting EARNINGS_ENGINE_TRACE records.
"""

from earnings_engines.attribution import (
    AttributionResult,
    DeliveryTarget,
    PlacementDelivery,
    attribute_delivery,
)
from earnings_engines.delivery_goals import compute_delivery_goals, duration_months
from earnings_engines.earnings import (
    EarningsActual,
    EarningsEstimate,
    compute_actual,
    compute_variance,
    delivery_targets,
    estimate_earnings,
)
from earnings_engines.hub_billing import (
    HubFees,
    PayoutRollup,
    calculate_platform_fees,
    compute_hub_fees,
    rollup_earnings,
)
from earnings_engines.payment_ledger import append_payment
from earnings_engines.pricing import (
    PricingFamily,
    earnings_for,
    planned_billable_quantity,
    pricing_family,
    pricing_terms,
)

__all__ = [
    # Goals
    "compute_delivery_goals",
    "duration_months",
    # Pricing
    "PricingFamily",
    "earnings_for",
    "planned_billable_quantity",
    "pricing_family",
    "pricing_terms",
    # Attribution
    "AttributionResult",
    "DeliveryTarget",
    "PlacementDelivery",
    "attribute_delivery",
    # Earnings
    "EarningsActual",
    "EarningsEstimate",
    "compute_actual",
    "compute_variance",
    "delivery_targets",
    "estimate_earnings",
    # Hub billing
    "HubFees",
    "PayoutRollup",
    "calculate_platform_fees",
    "compute_hub_fees",
    "rollup_earnings",
    # Payments
    "append_payment",
]
