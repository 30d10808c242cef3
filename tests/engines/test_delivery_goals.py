"""
Tests for the delivery goal calculator.

Covers the duration rule, impressions goals for digital CPM and
time-based placements, units goals for everything else, and exclusion.
"""

from datetime import date
from decimal import Decimal

from earnings_engines.delivery_goals import (
    compute_delivery_goals,
    duration_months,
    goal_for_placement,
)
from earnings_kernel.domain.inventory import Channel, GoalType, Placement

from tests.builders import CAMPAIGN_END, CAMPAIGN_START, cpm_web, flat_print, per_send_newsletter


class TestDurationMonths:

    def test_sixty_days_is_two_months(self):
        assert duration_months(CAMPAIGN_START, CAMPAIGN_END) == 2

    def test_rounds_half_up(self):
        # 45 / 30 = 1.5 -> 2
        assert duration_months(date(2024, 1, 1), date(2024, 2, 15)) == 2
        # 44 / 30 = 1.47 -> 1
        assert duration_months(date(2024, 1, 1), date(2024, 2, 14)) == 1

    def test_never_less_than_one(self):
        assert duration_months(date(2024, 1, 1), date(2024, 1, 3)) == 1
        assert duration_months(date(2024, 1, 10), date(2024, 1, 1)) == 1

    def test_unknown_dates_default_to_one(self):
        assert duration_months(None, CAMPAIGN_END) == 1
        assert duration_months(CAMPAIGN_START, None) == 1

    def test_custom_days_per_month(self):
        assert duration_months(date(2024, 1, 1), date(2024, 1, 29), days_per_month=28) == 1


class TestGoalForPlacement:

    def test_scenario_a_cpm_goal(self, channels):
        """rate 10, baseline 100k, 50% share of voice, 2 months -> 100,000."""
        goal = goal_for_placement(cpm_web(), 2, channels)
        assert goal.goal_type is GoalType.IMPRESSIONS
        assert goal.goal_value == 100_000
        assert "50% share of voice" in goal.description

    def test_cpm_goal_rounds_half_up(self, channels):
        placement = cpm_web(monthly_impressions=3, frequency=50)
        # 3 x 0.5 x 1 = 1.5 -> 2
        assert goal_for_placement(placement, 1, channels).goal_value == 2

    def test_digital_time_based_goal_is_baseline_times_months(self, channels):
        placement = Placement(
            item_path="web/takeover",
            item_name="Takeover",
            channel=Channel.WEB,
            pricing_model="flat",
            rate=Decimal("800"),
            frequency=100,
            monthly_impressions=20_000,
        )
        goal = goal_for_placement(placement, 3, channels)
        assert goal.goal_type is GoalType.IMPRESSIONS
        assert goal.goal_value == 60_000

    def test_print_goal_is_units(self, channels):
        goal = goal_for_placement(flat_print(frequency=2), 2, channels)
        assert goal.goal_type is GoalType.UNITS
        assert goal.goal_value == 2
        assert goal.description == "2 insertions"

    def test_digital_occurrence_priced_goal_uses_unit_noun(self, channels):
        goal = goal_for_placement(per_send_newsletter(frequency=1), 2, channels)
        assert goal.goal_type is GoalType.UNITS
        assert goal.goal_value == 1
        assert goal.description == "1 send"

    def test_digital_unrecognized_pricing_gets_units_goal(self, channels):
        placement = Placement(
            item_path="web/native",
            item_name="Native",
            channel=Channel.WEB,
            pricing_model="barter",
            rate=Decimal("10"),
            frequency=3,
            monthly_impressions=50_000,
        )
        goal = goal_for_placement(placement, 2, channels)
        assert goal.goal_type is GoalType.UNITS
        assert goal.goal_value == 3

    def test_negative_inputs_clamp_to_zero(self, channels):
        placement = cpm_web(monthly_impressions=-100, frequency=-5)
        assert goal_for_placement(placement, 2, channels).goal_value == 0


class TestComputeDeliveryGoals:

    def test_one_goal_per_active_placement(self, channels):
        excluded = Placement(
            item_path="radio/spot",
            item_name="Drive time",
            channel=Channel.RADIO,
            pricing_model="per_spot",
            rate=Decimal("40"),
            frequency=10,
            excluded=True,
        )
        goals = compute_delivery_goals(
            (cpm_web(), flat_print(), excluded),
            start_date=CAMPAIGN_START,
            end_date=CAMPAIGN_END,
            channels=channels,
        )
        assert set(goals) == {"web/banner", "print/full-page"}
        assert goals["web/banner"].goal_value == 100_000

    def test_emits_engine_trace(self, channels, captured_logs):
        compute_delivery_goals(
            (cpm_web(),),
            start_date=CAMPAIGN_START,
            end_date=CAMPAIGN_END,
            channels=channels,
        )
        traces = [r for r in captured_logs() if r["message"] == "EARNINGS_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "delivery_goals"
