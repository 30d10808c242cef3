"""
Hub Billing Engine.

Pure functions with deterministic behavior. No I/O.

Rolls a campaign's per-order earnings records up to the fees a hub owes
the platform:

    revenue share fee  = publisher payouts x revenue_share_percent / 100
    platform CPM fee   = tracked digital impressions / 1000 x platform_cpm_rate
    total fees         = revenue share fee + platform CPM fee

Inputs are always the already-capped earnings records, never raw
evidence, so the two ledgers cannot disagree about delivered volume.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from earnings_engines.tracer import traced_engine
from earnings_kernel.domain.inventory import HubBillingTerms
from earnings_kernel.domain.ledger import (
    EarningsRecord,
    FeeTotals,
    PlatformCpmFee,
    PublisherPayouts,
    RevenueShareFee,
)
from earnings_kernel.domain.values import HUNDRED, THOUSAND, ZERO, quantize_money


@dataclass(frozen=True)
class PayoutRollup:
    """Sums over a campaign's earnings records within one hub."""

    estimated_payouts: Decimal = ZERO
    actual_payouts: Decimal = ZERO
    estimated_impressions: int = 0
    actual_impressions: int = 0
    publication_count: int = 0


@dataclass(frozen=True)
class PlatformFees:
    revenue_share: Decimal
    platform_cpm: Decimal

    @property
    def total(self) -> Decimal:
        return self.revenue_share + self.platform_cpm


@dataclass(frozen=True)
class HubFees:
    """Estimated and actual fee sections of a billing record."""

    publisher_payouts: PublisherPayouts
    revenue_share_fee: RevenueShareFee
    platform_cpm_fee: PlatformCpmFee
    total_fees: FeeTotals


def rollup_earnings(records: Iterable[EarningsRecord]) -> PayoutRollup:
    estimated = actual = ZERO
    est_impressions = act_impressions = 0
    publications: set[str] = set()
    for record in records:
        estimated += record.estimated.total
        actual += record.actual.total
        est_impressions += record.tracked_impressions.estimated
        act_impressions += record.tracked_impressions.actual
        publications.add(record.publication_id)
    return PayoutRollup(
        estimated_payouts=estimated,
        actual_payouts=actual,
        estimated_impressions=est_impressions,
        actual_impressions=act_impressions,
        publication_count=len(publications),
    )


def calculate_platform_fees(
    terms: HubBillingTerms,
    payouts: Decimal,
    impressions: int,
    places: int = 2,
) -> PlatformFees:
    revenue_share = quantize_money(payouts * terms.revenue_share_percent / HUNDRED, places)
    platform_cpm = quantize_money(
        Decimal(impressions) / THOUSAND * terms.platform_cpm_rate, places
    )
    return PlatformFees(revenue_share=revenue_share, platform_cpm=platform_cpm)


@traced_engine("hub_billing", "1.0")
def compute_hub_fees(
    terms: HubBillingTerms,
    rollup: PayoutRollup,
    places: int = 2,
) -> HubFees:
    """Fee sections for both the estimated and actual sides."""
    estimated = calculate_platform_fees(
        terms, rollup.estimated_payouts, rollup.estimated_impressions, places
    )
    actual = calculate_platform_fees(
        terms, rollup.actual_payouts, rollup.actual_impressions, places
    )
    return HubFees(
        publisher_payouts=PublisherPayouts(
            estimated=rollup.estimated_payouts,
            actual=rollup.actual_payouts,
            publication_count=rollup.publication_count,
        ),
        revenue_share_fee=RevenueShareFee(
            rate=terms.revenue_share_percent,
            estimated=estimated.revenue_share,
            actual=actual.revenue_share,
        ),
        platform_cpm_fee=PlatformCpmFee(
            rate=terms.platform_cpm_rate,
            estimated_impressions=rollup.estimated_impressions,
            actual_impressions=rollup.actual_impressions,
            estimated=estimated.platform_cpm,
            actual=actual.platform_cpm,
        ),
        total_fees=FeeTotals(estimated=estimated.total, actual=actual.total),
    )
