"""
Tests for the pricing model algebra.

Every pricing model key maps to exactly one variant, and every variant
converts delivered quantity to money by its own rule.
"""

from decimal import Decimal

import pytest

from earnings_engines.pricing import (
    FULL_COMPLETION,
    PerClick,
    PerHundredViews,
    PerOccurrence,
    PerThousand,
    PricingFamily,
    TimeBased,
    Unrecognized,
    earnings_for,
    planned_billable_quantity,
    pricing_family,
    pricing_terms,
)


class TestPricingTerms:
    """Model keys fold onto the closed set of variants."""

    @pytest.mark.parametrize(
        "model,variant",
        [
            ("cpm", PerThousand),
            ("cpd", PerThousand),
            ("cpv", PerHundredViews),
            ("cpc", PerClick),
            ("per_send", PerOccurrence),
            ("per_spot", PerOccurrence),
            ("per_post", PerOccurrence),
            ("per_ad", PerOccurrence),
            ("per_episode", PerOccurrence),
            ("per_story", PerOccurrence),
            ("per_insertion", PerOccurrence),
            ("per_occurrence", PerOccurrence),
            ("flat", TimeBased),
            ("monthly", TimeBased),
            ("per_month", TimeBased),
            ("per_week", TimeBased),
            ("per_day", TimeBased),
        ],
    )
    def test_known_models(self, model, variant):
        assert isinstance(pricing_terms(model, "1"), variant)

    def test_model_key_is_normalized(self):
        terms = pricing_terms("  CPM ", "10")
        assert isinstance(terms, PerThousand)
        assert terms.model == "cpm"

    def test_unknown_model_is_unrecognized(self):
        terms = pricing_terms("barter", "5")
        assert isinstance(terms, Unrecognized)
        assert pricing_family("barter") is PricingFamily.UNRECOGNIZED

    def test_missing_model_is_unrecognized(self):
        assert isinstance(pricing_terms(None, "5"), Unrecognized)

    def test_malformed_rate_is_zero(self):
        assert pricing_terms("cpm", "ten dollars").rate == Decimal("0")

    def test_cpm_family_membership(self):
        assert pricing_family("cpm").is_cpm_family
        assert pricing_family("cpv").is_cpm_family
        assert pricing_family("cpc").is_cpm_family
        assert not pricing_family("per_send").is_cpm_family
        assert not pricing_family("flat").is_cpm_family


class TestEarningsFor:
    """Money conversion per family."""

    def test_per_thousand(self):
        assert earnings_for(pricing_terms("cpm", "10"), 100_000) == Decimal("1000")

    def test_per_thousand_downloads(self):
        assert earnings_for(pricing_terms("cpd", "25"), 4_000) == Decimal("100")

    def test_per_hundred_views(self):
        assert earnings_for(pricing_terms("cpv", "3"), 1_000) == Decimal("30")

    def test_per_click(self):
        assert earnings_for(pricing_terms("cpc", "0.50"), 120) == Decimal("60")

    def test_per_occurrence(self):
        assert earnings_for(pricing_terms("per_spot", "40"), 3) == Decimal("120")

    def test_time_based_is_percent_of_rate(self):
        terms = pricing_terms("flat", "500")
        assert earnings_for(terms, 50) == Decimal("250")
        assert earnings_for(terms, FULL_COMPLETION) == Decimal("500")

    def test_unrecognized_is_quantity_times_rate(self):
        assert earnings_for(pricing_terms("barter", "7"), 3) == Decimal("21")

    @pytest.mark.parametrize("delivered", [0, -5, None, "abc", float("nan")])
    def test_non_positive_or_malformed_quantity_is_zero(self, delivered):
        assert earnings_for(pricing_terms("cpm", "10"), delivered) == Decimal("0")

    def test_zero_rate_is_zero(self):
        assert earnings_for(pricing_terms("cpm", "0"), 1_000_000) == Decimal("0")


class TestPlannedBillableQuantity:

    def test_time_based_always_full_completion(self):
        assert planned_billable_quantity(pricing_terms("flat", "500"), 2) == Decimal("100")
        assert planned_billable_quantity(pricing_terms("monthly", "500"), 0) == Decimal("100")

    def test_other_families_use_goal_value(self):
        assert planned_billable_quantity(pricing_terms("cpm", "10"), 100_000) == Decimal("100000")
        assert planned_billable_quantity(pricing_terms("per_send", "75"), 4) == Decimal("4")
