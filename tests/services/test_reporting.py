"""
Tests for the read-side reporting queries.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from earnings_kernel.domain.ledger import PaymentStatus
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.reporting import EarningsReporting

from tests.builders import CAMPAIGN_END, flat_print


@pytest.fixture
def reporting(any_store, config, clock):
    return EarningsReporting(any_store, config, clock)


@pytest.fixture
def earnings(any_store, config, clock):
    return EarningsAggregator(
        any_store.orders, any_store.evidence, any_store.earnings, config, clock
    )


@pytest.fixture
def billing(any_store, config, clock):
    return HubBillingAggregator(
        any_store.orders, any_store.earnings, any_store.billing, config, clock
    )


def _at(day: int) -> datetime:
    return datetime(2024, 1, day, tzinfo=timezone.utc)


class TestOrderSummary:

    def test_derived_on_read(self, reporting, any_seed, any_store):
        any_seed.standard()
        any_seed.entry(impressions=40_000)

        summary = reporting.order_summary("order-1")
        assert summary.persisted is False
        assert summary.earnings_id is None
        assert summary.estimated.total == Decimal("1000.00")
        assert summary.actual.total == Decimal("400.00")
        assert summary.variance.percentage == Decimal("-60.00")
        assert summary.payment_status is PaymentStatus.PENDING
        assert summary.amount_owed == Decimal("400.00")
        assert summary.finalized is False

        # Reads never record goals or create records.
        assert any_store.orders.get_order("order-1").delivery_goals is None
        assert any_store.earnings.get_by_order("order-1") is None

    def test_derived_finalized_after_campaign_end(self, reporting, any_seed, clock):
        any_seed.standard()
        clock.set_time(datetime(2024, 3, 5, tzinfo=timezone.utc))
        assert reporting.order_summary("order-1").finalized is True

    def test_campaign_ending_today_is_not_finalized(self, reporting, any_seed, clock):
        any_seed.standard()
        clock.set_time(datetime.combine(CAMPAIGN_END, datetime.min.time(), timezone.utc))
        assert reporting.order_summary("order-1").finalized is False

    def test_persisted_record(self, reporting, any_seed, earnings):
        any_seed.standard()
        record = earnings.create_estimate("order-1")
        any_seed.entry(impressions=40_000)

        summary = reporting.order_summary("order-1")
        assert summary.persisted is True
        assert summary.earnings_id == record.id
        # Persisted actual is only refreshed by recompute.
        assert summary.actual.total == Decimal("0")
        assert summary.earned == Decimal("1000.00")

    def test_unknown_order(self, reporting):
        assert reporting.order_summary("missing") is None

    def test_ineligible_order_has_no_summary(self, reporting, any_seed):
        any_seed.standard(status="draft")
        any_seed.entry(impressions=40_000)
        assert reporting.order_summary("order-1") is None

    def test_cancelled_order_has_no_summary(self, reporting, any_seed):
        any_seed.standard(status="cancelled")
        assert reporting.order_summary("order-1") is None

    def test_derive_carries_amount_paid(self, reporting, any_seed, any_store, earnings):
        order = any_seed.standard()
        record = earnings.create_estimate("order-1")
        any_seed.entry(impressions=40_000)
        paid = earnings.record_payment(record.id, Decimal("100"))

        summary = reporting.derive_order_summary(order, existing=paid)
        assert summary.amount_paid == Decimal("100")
        assert summary.amount_owed == Decimal("300.00")
        assert summary.payment_status is PaymentStatus.PARTIALLY_PAID
        assert summary.earnings_id == record.id


class TestPublicationEarnings:

    @pytest.fixture
    def three_orders(self, any_seed):
        any_seed.standard(order_id="order-old", created_at=_at(2))
        any_seed.order(order_id="order-new", created_at=_at(20))
        any_seed.order(order_id="order-undated")
        any_seed.order(order_id="order-draft", status="draft", created_at=_at(25))
        any_seed.order(order_id="order-other", publication_id="pub-2", created_at=_at(3))
        return any_seed

    def test_newest_first_eligible_only(self, reporting, three_orders):
        listing = reporting.publication_earnings("pub-1")
        assert [s.order_id for s in listing] == ["order-new", "order-old", "order-undated"]

    def test_mixes_persisted_and_derived(self, reporting, three_orders, earnings):
        earnings.create_estimate("order-old")
        listing = {s.order_id: s for s in reporting.publication_earnings("pub-1")}
        assert listing["order-old"].persisted is True
        assert listing["order-new"].persisted is False

    def test_paging(self, reporting, three_orders):
        page = reporting.publication_earnings("pub-1", skip=1, limit=1)
        assert [s.order_id for s in page] == ["order-old"]
        assert reporting.publication_earnings("pub-1", skip=10) == []

    def test_payment_status_filter(self, reporting, three_orders, earnings):
        record = earnings.create_estimate("order-old")
        three_orders.entry(order_id="order-old", impressions=40_000)
        earnings.recompute_actual("order-old")
        earnings.record_payment(record.id, Decimal("50"))

        partial = reporting.publication_earnings("pub-1", payment_status="Partially_Paid")
        assert [s.order_id for s in partial] == ["order-old"]
        pending = reporting.publication_earnings(
            "pub-1", payment_status=PaymentStatus.PENDING
        )
        assert [s.order_id for s in pending] == ["order-new", "order-undated"]

    def test_unknown_status_filter_matches_nothing(self, reporting, three_orders, captured_logs):
        assert reporting.publication_earnings("pub-1", payment_status="bogus") == []
        assert any(
            r["message"] == "unknown_payment_status_filter" and r["payment_status"] == "bogus"
            for r in captured_logs()
        )

    def test_finalized_filter(self, reporting, three_orders, clock):
        assert reporting.publication_earnings("pub-1", finalized=True) == []
        clock.set_time(datetime(2024, 6, 1, tzinfo=timezone.utc))
        assert len(reporting.publication_earnings("pub-1", finalized=True)) == 3


class TestPublicationSummary:

    def test_totals_and_status_counts(self, reporting, any_seed, earnings):
        any_seed.standard()
        any_seed.order(
            order_id="order-2",
            placements=(flat_print(rate="500", frequency=2),),
        )
        record = earnings.create_estimate("order-1")
        any_seed.entry(impressions=40_000)
        earnings.recompute_actual("order-1")
        earnings.record_payment(record.id, Decimal("100"))

        summary = reporting.publication_summary("pub-1")
        # order-1 earned its 400 actual; order-2 has no delivery so it
        # contributes its 500 estimate.
        assert summary.total_earned == Decimal("900.00")
        assert summary.total_paid == Decimal("100")
        assert summary.total_pending == Decimal("300.00")
        assert summary.order_count == 2
        assert summary.by_payment_status == {
            PaymentStatus.PENDING: 1,
            PaymentStatus.PARTIALLY_PAID: 1,
            PaymentStatus.PAID: 0,
        }

    def test_unknown_publication(self, reporting):
        summary = reporting.publication_summary("nobody")
        assert summary.order_count == 0
        assert summary.total_earned == Decimal("0")
        assert all(count == 0 for count in summary.by_payment_status.values())


class TestCampaignEarnings:

    def test_campaign_totals(self, reporting, any_seed, earnings):
        any_seed.standard()
        any_seed.order(
            order_id="order-2",
            publication_id="pub-2",
            placements=(flat_print(rate="500", frequency=2),),
        )
        earnings.create_estimate("order-1")
        earnings.create_estimate("order-2")
        any_seed.entry(impressions=40_000)
        earnings.recompute_actual("order-1")

        view = reporting.campaign_earnings("camp-1")
        assert len(view.records) == 2
        assert view.total_estimated == Decimal("1500.00")
        assert view.total_actual == Decimal("400.00")
        assert view.total_owed == Decimal("400.00")
        assert view.publication_count == 2


class TestHubBillingReports:

    @pytest.fixture
    def two_hubs(self, any_seed, earnings, billing, clock):
        any_seed.standard()
        earnings.create_estimate("order-1")
        billing.create_estimate("camp-1")

        clock.advance(3600)
        any_seed.hub(hub_id="hub-2", name="River Hub", revenue_share_percent="10")
        any_seed.campaign(campaign_id="camp-2", hub_id="hub-2", name="Summer")
        any_seed.order(
            order_id="order-2",
            campaign_id="camp-2",
            publication_id="pub-2",
            hub_id="hub-2",
            placements=(flat_print(rate="500", frequency=2),),
        )
        earnings.create_estimate("order-2")
        billing.create_estimate("camp-2")
        return any_seed

    def test_all_hub_billing_newest_first(self, reporting, two_hubs):
        records = reporting.all_hub_billing()
        assert [r.campaign_id for r in records] == ["camp-2", "camp-1"]

    def test_hub_billing_filters(self, reporting, two_hubs, billing):
        billing.finalize("camp-1")
        assert [r.campaign_id for r in reporting.hub_billing("hub-1", finalized=True)] == [
            "camp-1"
        ]
        assert reporting.hub_billing("hub-2", finalized=True) == []
        assert len(reporting.all_hub_billing(payment_status="pending")) == 2
        assert len(reporting.all_hub_billing(limit=1)) == 1

    def test_unknown_status_filter_on_billing(self, reporting, two_hubs):
        assert reporting.all_hub_billing(payment_status="bogus") == []
        assert reporting.hub_billing("hub-1", payment_status="overdue") == []

    def test_hub_billing_summary_uses_actual_when_present(
        self, reporting, two_hubs, earnings, billing
    ):
        estimated = reporting.hub_billing_summary("hub-1")
        assert estimated.total_fees == Decimal("350.00")
        assert estimated.revenue_share_total == Decimal("150.00")
        assert estimated.platform_cpm_total == Decimal("200.00")

        two_hubs.entry(impressions=40_000)
        earnings.recompute_actual("order-1")
        billing.recompute_actual("camp-1")

        actual = reporting.hub_billing_summary("hub-1")
        assert actual.total_fees == Decimal("140.00")
        assert actual.revenue_share_total == Decimal("60.00")
        assert actual.platform_cpm_total == Decimal("80.00")
        assert actual.total_outstanding == Decimal("140.00")
        assert actual.campaign_count == 1

    def test_platform_summary(self, reporting, two_hubs, billing, captured_logs):
        hub_2 = billing.get_campaign_billing("camp-2")
        billing.record_payment(hub_2.id, Decimal("50"))

        summary = reporting.platform_summary()
        assert summary.hub_count == 2
        assert summary.campaign_count == 2
        assert summary.total_revenue == Decimal("400.00")
        assert summary.total_collected == Decimal("50")
        assert [h.hub_id for h in summary.by_hub] == ["hub-1", "hub-2"]
        assert summary.by_hub[0].hub_name == "Metro Hub"
        assert summary.by_hub[1].total_fees == Decimal("50.00")
        assert any(r["message"] == "platform_summary_computed" for r in captured_logs())

    def test_empty_platform(self, reporting):
        summary = reporting.platform_summary()
        assert summary.hub_count == 0
        assert summary.by_hub == ()
        assert summary.total_revenue == Decimal("0")
