"""
Tests for the Earnings Aggregator.

Every test runs against both the in-memory and the SQLite store so the two
repository implementations cannot drift apart.
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from earnings_kernel.domain.inventory import GoalType
from earnings_kernel.domain.ledger import PaymentMethod, PaymentStatus
from earnings_kernel.exceptions import InvalidPaymentAmountError
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.goal_recorder import DeliveryGoalRecorder

from tests.builders import CAMPAIGN_END, CAMPAIGN_START, flat_print


@pytest.fixture
def aggregator(any_store, config, clock):
    return EarningsAggregator(
        any_store.orders, any_store.evidence, any_store.earnings, config, clock
    )


class TestCreateEstimate:

    def test_scenario_a(self, aggregator, any_seed, any_store, clock):
        any_seed.standard()
        record = aggregator.create_estimate("order-1")

        assert record is not None
        assert record.estimated.total == Decimal("1000.00")
        assert record.actual.total == Decimal("0")
        assert record.variance.amount == Decimal("0")
        assert record.variance.percentage == Decimal("0")
        assert record.tracked_impressions.estimated == 100_000
        assert record.payment_status is PaymentStatus.PENDING
        assert record.campaign_name == "Spring Launch"
        assert record.campaign_start == CAMPAIGN_START
        assert record.campaign_end == CAMPAIGN_END
        assert record.created_at == clock.now()
        assert record.finalized is False

    def test_goals_recorded_on_order(self, aggregator, any_seed, any_store):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        goals = any_store.orders.get_order("order-1").delivery_goals
        assert goals["web/banner"].goal_type is GoalType.IMPRESSIONS
        assert goals["web/banner"].goal_value == 100_000

    def test_idempotent(self, aggregator, any_seed, any_store):
        any_seed.standard()
        first = aggregator.create_estimate("order-1")
        second = aggregator.create_estimate("order-1")
        assert second.id == first.id
        assert second.estimated.total == first.estimated.total
        assert len(any_store.earnings.list_by_campaign("camp-1")) == 1

    def test_unknown_order(self, aggregator, captured_logs):
        assert aggregator.create_estimate("missing") is None
        assert any(r["message"] == "earnings_order_not_found" for r in captured_logs())

    def test_ineligible_order(self, aggregator, any_seed, any_store):
        any_seed.standard(status="draft")
        assert aggregator.create_estimate("order-1") is None
        assert any_store.earnings.get_by_order("order-1") is None

    def test_status_match_is_case_insensitive(self, aggregator, any_seed):
        any_seed.standard(status="Completed")
        assert aggregator.create_estimate("order-1") is not None

    def test_stored_goals_are_not_recomputed(self, aggregator, any_seed, any_store):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        stored = any_store.orders.get_order("order-1").delivery_goals

        # Campaign extended after confirmation: goals must not move.
        any_seed.campaign(end_date=CAMPAIGN_END + timedelta(days=120))
        assert any_store.orders.get_order("order-1").delivery_goals == stored


class TestRecomputeActual:

    def test_scenario_b(self, aggregator, any_seed):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=25_000)
        any_seed.entry(impressions=15_000)

        record = aggregator.recompute_actual("order-1")
        assert record.actual.total == Decimal("400.00")
        assert record.variance.amount == Decimal("-600.00")
        assert record.variance.percentage == Decimal("-60.00")
        assert record.tracked_impressions.actual == 40_000

    def test_scenario_c(self, aggregator, any_seed):
        any_seed.standard(placements=(flat_print(rate="500", frequency=2),))
        aggregator.create_estimate("order-1")
        for _ in range(3):
            any_seed.proof()

        record = aggregator.recompute_actual("order-1")
        assert record.estimated.total == Decimal("500.00")
        assert record.actual.total == Decimal("500.00")

    def test_idempotent(self, aggregator, any_seed):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=40_000)
        first = aggregator.recompute_actual("order-1")
        second = aggregator.recompute_actual("order-1")
        assert second.actual.total == first.actual.total
        assert second.actual.placements == first.actual.placements

    def test_soft_delete_restores_prior_total(self, aggregator, any_seed, any_store):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=10_000)
        before = aggregator.recompute_actual("order-1").actual.total

        extra = any_seed.entry(impressions=20_000)
        during = aggregator.recompute_actual("order-1").actual.total
        assert during > before

        assert any_store.evidence.soft_delete_entry(extra.entry_id) is True
        after = aggregator.recompute_actual("order-1").actual.total
        assert after == before

    def test_cap_holds_under_over_delivery(self, aggregator, any_seed):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=5_000_000)
        record = aggregator.recompute_actual("order-1")
        assert record.actual.total == record.estimated.total

    def test_unknown_order(self, aggregator):
        assert aggregator.recompute_actual("missing") is None

    def test_finalized_record_ignores_recompute(self, aggregator, any_seed):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=10_000)
        finalized = aggregator.finalize("order-1")

        any_seed.entry(impressions=50_000)
        record = aggregator.recompute_actual("order-1")
        assert record.finalized is True
        assert record.actual.total == finalized.actual.total == Decimal("100.00")


class TestFinalize:

    def test_finalize_runs_last_recompute(self, aggregator, any_seed, clock):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        any_seed.entry(impressions=40_000)
        clock.advance(3600)

        record = aggregator.finalize("order-1")
        assert record.finalized is True
        assert record.finalized_at == clock.now()
        assert record.actual.total == Decimal("400.00")

    def test_finalize_twice_is_unchanged(self, aggregator, any_seed, clock):
        any_seed.standard()
        aggregator.create_estimate("order-1")
        first = aggregator.finalize("order-1")
        clock.advance(60)
        second = aggregator.finalize("order-1")
        assert second.finalized_at == first.finalized_at

    def test_unknown_order(self, aggregator):
        assert aggregator.finalize("missing") is None


class TestRecordPayment:

    def _record_with_actual(self, aggregator, any_seed):
        any_seed.standard(placements=(flat_print(rate="500", frequency=2),))
        aggregator.create_estimate("order-1")
        for _ in range(3):
            any_seed.proof()
        return aggregator.recompute_actual("order-1")

    def test_scenario_d_overpayment(self, aggregator, any_seed):
        record = self._record_with_actual(aggregator, any_seed)
        paid = aggregator.record_payment(record.id, Decimal("600"))
        assert paid.amount_paid == Decimal("600")
        assert paid.amount_owed == Decimal("0")
        assert paid.payment_status is PaymentStatus.PAID

    def test_partial_payment_details(self, aggregator, any_seed, clock):
        record = self._record_with_actual(aggregator, any_seed)
        paid = aggregator.record_payment(
            str(record.id),
            "125.50",
            method="ACH",
            reference="TXN-1",
            notes="first instalment",
            recorded_by="finance-user",
        )
        assert paid.payment_status is PaymentStatus.PARTIALLY_PAID
        assert paid.amount_owed == Decimal("374.50")
        (payment,) = paid.payments
        assert payment.amount == Decimal("125.50")
        assert payment.method is PaymentMethod.ACH
        assert payment.reference == "TXN-1"
        assert payment.recorded_by == "finance-user"
        assert payment.paid_on == clock.today()

    def test_payments_accumulate(self, aggregator, any_seed):
        record = self._record_with_actual(aggregator, any_seed)
        aggregator.record_payment(record.id, Decimal("200"))
        paid = aggregator.record_payment(record.id, Decimal("300"))
        assert paid.amount_paid == Decimal("500")
        assert paid.payment_status is PaymentStatus.PAID
        assert len(paid.payments) == 2

    def test_unrecognized_method_becomes_other(self, aggregator, any_seed):
        record = self._record_with_actual(aggregator, any_seed)
        paid = aggregator.record_payment(record.id, Decimal("10"), method="barter")
        assert paid.payments[0].method is PaymentMethod.OTHER

    def test_payment_after_finalize(self, aggregator, any_seed):
        record = self._record_with_actual(aggregator, any_seed)
        aggregator.finalize("order-1")
        paid = aggregator.record_payment(record.id, Decimal("500"))
        assert paid.finalized is True
        assert paid.payment_status is PaymentStatus.PAID

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), "abc", None])
    def test_invalid_amount_raises(self, aggregator, any_seed, amount):
        record = self._record_with_actual(aggregator, any_seed)
        with pytest.raises(InvalidPaymentAmountError):
            aggregator.record_payment(record.id, amount)
        assert aggregator.get_earnings(record.id).amount_paid == Decimal("0")

    def test_malformed_id_is_not_found(self, aggregator):
        assert aggregator.record_payment("not-a-uuid", Decimal("10")) is None
        assert aggregator.record_payment(12345, Decimal("10")) is None

    def test_unknown_id_is_not_found(self, aggregator):
        assert aggregator.record_payment(uuid4(), Decimal("10")) is None


class TestLookups:

    def test_get_earnings(self, aggregator, any_seed):
        any_seed.standard()
        record = aggregator.create_estimate("order-1")
        assert aggregator.get_earnings(str(record.id)).order_id == "order-1"
        assert aggregator.get_order_earnings("order-1").id == record.id

    def test_malformed_lookup(self, aggregator):
        assert aggregator.get_earnings("zzz") is None
        assert aggregator.get_earnings(None) is None


class TestGoalRecorder:

    def test_concurrent_writer_adopts_stored_goals(self, any_seed, any_store, config):
        order = any_seed.standard()
        campaign = any_store.orders.get_campaign("camp-1")
        recorder = DeliveryGoalRecorder(any_store.orders, config)

        stored = recorder.ensure(order, campaign)
        assert stored["web/banner"].goal_value == 100_000

        # A stale copy of the order and a different flight: the loser of the
        # write must return what is stored, not what it computed.
        stale = replace(order, delivery_goals=None)
        adopted = recorder.ensure(stale, None)
        assert adopted["web/banner"].goal_value == 100_000

    def test_compute_does_not_persist(self, any_seed, any_store, config):
        order = any_seed.standard()
        recorder = DeliveryGoalRecorder(any_store.orders, config)
        goals = recorder.compute(order, any_store.orders.get_campaign("camp-1"))
        assert goals["web/banner"].goal_value == 100_000
        assert any_store.orders.get_order("order-1").delivery_goals is None
