"""
Pricing Model Algebra.

Pure functions with deterministic behavior. No I/O.

Maps (pricing model, rate, delivered quantity) to money.  Upstream
pricing keys are free-form strings; ``pricing_terms`` folds them into a
closed set of variants, each carrying only what its conversion needs, and
``earnings_for`` is an exhaustive match over that set.

Families:
    PerThousand      cpm, cpd            delivered / 1000 x rate
    PerHundredViews  cpv                 delivered / 100 x rate
    PerClick         cpc                 delivered x rate (clicks)
    PerOccurrence    per_send, per_spot, delivered x rate (occurrences)
                     per_post, per_ad, per_episode, per_story,
                     per_insertion, per_occurrence
    TimeBased        flat, monthly,      delivered / 100 x rate, where
                     per_month,          delivered is percent complete
                     per_week, per_day   (0-100)
    Unrecognized     anything else       delivered x rate

Usage:
    from earnings_engines.pricing import pricing_terms, earnings_for

    terms = pricing_terms("cpm", Decimal("10"))
    earnings_for(terms, Decimal("100000"))   # Decimal("1000")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from earnings_kernel.domain.values import HUNDRED, THOUSAND, ZERO, to_decimal


class PricingFamily(str, Enum):
    """Money-conversion rule shared by a group of pricing models."""

    IMPRESSION = "impression"
    VIEW = "view"
    CLICK = "click"
    OCCURRENCE = "occurrence"
    TIME_BASED = "time_based"
    UNRECOGNIZED = "unrecognized"

    @property
    def is_cpm_family(self) -> bool:
        return self in (PricingFamily.IMPRESSION, PricingFamily.VIEW, PricingFamily.CLICK)


@dataclass(frozen=True)
class PerThousand:
    model: str
    rate: Decimal


@dataclass(frozen=True)
class PerHundredViews:
    model: str
    rate: Decimal


@dataclass(frozen=True)
class PerClick:
    model: str
    rate: Decimal


@dataclass(frozen=True)
class PerOccurrence:
    model: str
    rate: Decimal


@dataclass(frozen=True)
class TimeBased:
    model: str
    rate: Decimal


@dataclass(frozen=True)
class Unrecognized:
    model: str
    rate: Decimal


PricingTerms = Union[
    PerThousand, PerHundredViews, PerClick, PerOccurrence, TimeBased, Unrecognized
]

_MODEL_VARIANTS: dict[str, type] = {
    "cpm": PerThousand,
    "cpd": PerThousand,
    "cpv": PerHundredViews,
    "cpc": PerClick,
    "per_send": PerOccurrence,
    "per_spot": PerOccurrence,
    "per_post": PerOccurrence,
    "per_ad": PerOccurrence,
    "per_episode": PerOccurrence,
    "per_story": PerOccurrence,
    "per_insertion": PerOccurrence,
    "per_occurrence": PerOccurrence,
    "flat": TimeBased,
    "monthly": TimeBased,
    "per_month": TimeBased,
    "per_week": TimeBased,
    "per_day": TimeBased,
}

_FAMILIES: dict[type, PricingFamily] = {
    PerThousand: PricingFamily.IMPRESSION,
    PerHundredViews: PricingFamily.VIEW,
    PerClick: PricingFamily.CLICK,
    PerOccurrence: PricingFamily.OCCURRENCE,
    TimeBased: PricingFamily.TIME_BASED,
    Unrecognized: PricingFamily.UNRECOGNIZED,
}

# Billable quantity a time-based placement is priced at: 100 percent.
FULL_COMPLETION = HUNDRED


def normalize_model(model: Any) -> str:
    if model is None:
        return ""
    return str(model).strip().lower()


def pricing_terms(model: Any, rate: Any) -> PricingTerms:
    """Build the pricing variant for ``model``; unknown models are Unrecognized."""
    key = normalize_model(model)
    variant = _MODEL_VARIANTS.get(key, Unrecognized)
    return variant(model=key, rate=to_decimal(rate))


def pricing_family(model: Any) -> PricingFamily:
    return _FAMILIES[_MODEL_VARIANTS.get(normalize_model(model), Unrecognized)]


def earnings_for(terms: PricingTerms, delivered: Any) -> Decimal:
    """
    Money earned for ``delivered`` billable units.

    Total: never raises.  A missing rate or delivered quantity is zero
    money.  The result is unrounded; callers quantize.
    """
    quantity = to_decimal(delivered)
    rate = terms.rate
    if quantity <= ZERO or rate == ZERO:
        return ZERO

    match terms:
        case PerThousand():
            return quantity / THOUSAND * rate
        case PerHundredViews():
            return quantity / HUNDRED * rate
        case PerClick() | PerOccurrence() | Unrecognized():
            return quantity * rate
        case TimeBased():
            return quantity / HUNDRED * rate


def planned_billable_quantity(terms: PricingTerms, goal_value: int) -> Decimal:
    """
    Quantity the estimate is priced at.

    Time-based placements are billed in percent complete, so their plan is
    always 100 regardless of the stored goal value.
    """
    if isinstance(terms, TimeBased):
        return FULL_COMPLETION
    return to_decimal(goal_value)
