"""
Tests specific to the SQLAlchemy store: persistence round trips, the
conditional writes, insert races and connectivity failures.

Behaviour shared with the in-memory store is covered by the service tests
through the ``any_store`` fixture.
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from earnings_kernel.db.engine import create_store_engine, make_session_factory, session_scope
from earnings_kernel.domain.evidence import VerificationStatus
from earnings_kernel.domain.ledger import PaymentMethod, PaymentStatus
from earnings_kernel.exceptions import GoalsAlreadyRecordedError, StoreUnavailableError
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.orm import LedgerPaymentModel
from earnings_services.sql_store import sql_bundle

from tests.builders import StoreSeeder, flat_print, per_send_newsletter


@pytest.fixture
def sql_seed(sql_store):
    return StoreSeeder(sql_store)


@pytest.fixture
def aggregator(sql_store, config, clock):
    return EarningsAggregator(
        sql_store.orders, sql_store.evidence, sql_store.earnings, config, clock
    )


class TestRoundTrip:

    def test_order_and_hub(self, sql_store, sql_seed):
        created = datetime(2024, 1, 5, 9, 30, tzinfo=timezone.utc)
        sql_seed.hub(hub_id="hub-free", revenue_share_percent=None)
        sql_seed.standard(
            placements=(flat_print(), per_send_newsletter()),
            created_at=created,
        )

        order = sql_store.orders.get_order("order-1")
        assert [p.item_path for p in order.placements] == [
            "print/full-page",
            "newsletter/sponsor",
        ]
        assert order.placements[0].rate == Decimal("500")
        assert order.created_at == created
        assert order.delivery_goals is None

        assert sql_store.orders.get_hub("hub-free").billing is None
        assert sql_store.orders.get_hub("hub-1").billing.revenue_share_percent == Decimal("15")
        assert sql_store.orders.get_campaign("camp-1").end_date == date(2024, 3, 1)

    def test_save_order_updates_in_place(self, sql_store, sql_seed):
        sql_seed.standard()
        sql_seed.order(status="completed")
        assert sql_store.orders.get_order("order-1").status == "completed"
        assert len(sql_store.orders.list_orders_for_campaign("camp-1")) == 1

    def test_evidence(self, sql_store, sql_seed):
        sql_seed.standard()
        entry = sql_seed.entry(impressions=1_200, clicks=14)
        sql_seed.proof(status=VerificationStatus.REJECTED)

        (stored,) = sql_store.evidence.performance_entries("order-1")
        assert stored.entry_id == entry.entry_id
        assert stored.metrics["impressions"] == 1_200
        assert stored.deleted is False
        (proof,) = sql_store.evidence.proofs("order-1")
        assert proof.verification_status is VerificationStatus.REJECTED

        assert sql_store.evidence.soft_delete_entry(entry.entry_id) is True
        assert sql_store.evidence.performance_entries("order-1")[0].deleted is True
        assert sql_store.evidence.soft_delete_entry("unknown") is False

    def test_earnings_record(self, sql_store, sql_seed, aggregator, clock):
        sql_seed.standard(placements=(flat_print(), per_send_newsletter()))
        record = aggregator.create_estimate("order-1")

        loaded = sql_store.earnings.get(record.id)
        assert loaded.order_id == "order-1"
        assert loaded.estimated.total == Decimal("800.00")
        assert loaded.estimated.by_channel == record.estimated.by_channel
        assert [p.item_path for p in loaded.estimated.placements] == [
            p.item_path for p in record.estimated.placements
        ]
        assert loaded.created_at == clock.now()
        assert loaded.campaign_end == date(2024, 3, 1)

    def test_payment_history(self, sql_store, sql_seed, aggregator, clock):
        sql_seed.standard()
        record = aggregator.create_estimate("order-1")
        aggregator.record_payment(
            record.id, Decimal("10.25"), method=PaymentMethod.CHECK, reference="CHK-7"
        )
        clock.advance(60)
        aggregator.record_payment(record.id, Decimal("4.75"), notes="balance")

        loaded = sql_store.earnings.get_by_order("order-1")
        assert loaded.amount_paid == Decimal("15.00")
        assert [p.amount for p in loaded.payments] == [Decimal("10.25"), Decimal("4.75")]
        assert loaded.payments[0].method is PaymentMethod.CHECK
        assert loaded.payments[0].reference == "CHK-7"
        assert loaded.payments[1].notes == "balance"
        assert loaded.payments[1].recorded_at == clock.now()

    def test_same_instant_payments_keep_insertion_order(self, sql_engine, sql_store, sql_seed, aggregator):
        sql_seed.standard()
        record = aggregator.create_estimate("order-1")
        amounts = [Decimal("3"), Decimal("1"), Decimal("2")]
        for amount in amounts:
            aggregator.record_payment(record.id, amount)

        loaded = sql_store.earnings.get_by_order("order-1")
        assert len({p.recorded_at for p in loaded.payments}) == 1
        assert [p.amount for p in loaded.payments] == amounts

        with session_scope(make_session_factory(sql_engine)) as session:
            sequences = session.scalars(
                select(LedgerPaymentModel.sequence)
                .where(LedgerPaymentModel.record_id == record.id)
                .order_by(LedgerPaymentModel.sequence)
            ).all()
        assert sequences == [1, 2, 3]


class TestConditionalWrites:

    def test_goals_recorded_once(self, sql_store, sql_seed, aggregator):
        sql_seed.standard()
        aggregator.create_estimate("order-1")
        goals = sql_store.orders.get_order("order-1").delivery_goals

        with pytest.raises(GoalsAlreadyRecordedError) as exc_info:
            sql_store.orders.record_delivery_goals("order-1", goals)
        assert exc_info.value.order_id == "order-1"

    def test_goals_for_unknown_order(self, sql_store):
        assert sql_store.orders.record_delivery_goals("missing", {}) is False

    def test_finalized_row_rejects_updates(self, sql_store, sql_seed, aggregator):
        sql_seed.standard()
        record = aggregator.create_estimate("order-1")
        finalized = aggregator.finalize("order-1")

        result = aggregator.compute_actual_for("order-1", record.estimated)
        after = sql_store.earnings.update_actual(
            record.id,
            replace(result.actual, total=Decimal("999")),
            123,
            record.variance,
            datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
        assert after.actual.total == finalized.actual.total
        assert after.updated_at == finalized.updated_at

    def test_payment_to_unknown_record(self, sql_store, sql_seed, aggregator):
        assert aggregator.record_payment(uuid4(), Decimal("5")) is None

    def test_list_unfinalized_ended(self, sql_store, sql_seed, aggregator):
        sql_seed.standard()
        aggregator.create_estimate("order-1")
        assert sql_store.earnings.list_unfinalized_ended(date(2024, 3, 1)) == []
        (ended,) = sql_store.earnings.list_unfinalized_ended(date(2024, 3, 2))
        assert ended.order_id == "order-1"
        aggregator.finalize("order-1")
        assert sql_store.earnings.list_unfinalized_ended(date(2024, 3, 2)) == []


class TestInsertRace:

    def test_earnings_loser_adopts_winner(self, sql_store, sql_seed, aggregator, monkeypatch, captured_logs):
        sql_seed.standard()
        winner = aggregator.create_estimate("order-1")
        challenger = replace(winner, id=uuid4())

        repo = sql_store.earnings
        real_get = repo.get_by_order
        calls = []

        def stale_then_real(order_id):
            calls.append(order_id)
            return None if len(calls) == 1 else real_get(order_id)

        monkeypatch.setattr(repo, "get_by_order", stale_then_real)
        stored, created = repo.insert_if_absent(challenger)

        assert created is False
        assert stored.id == winner.id
        assert any(r["message"] == "earnings_insert_race_lost" for r in captured_logs())

    def test_billing_loser_adopts_winner(self, sql_store, sql_seed, aggregator, config, clock, monkeypatch):
        sql_seed.standard()
        aggregator.create_estimate("order-1")
        billing = HubBillingAggregator(
            sql_store.orders, sql_store.earnings, sql_store.billing, config, clock
        )
        winner = billing.create_estimate("camp-1")

        repo = sql_store.billing
        real_get = repo.get_by_hub_campaign
        calls = []

        def stale_then_real(hub_id, campaign_id):
            calls.append(campaign_id)
            return None if len(calls) == 1 else real_get(hub_id, campaign_id)

        monkeypatch.setattr(repo, "get_by_hub_campaign", stale_then_real)
        stored, created = repo.insert_if_absent(replace(winner, id=uuid4()))

        assert created is False
        assert stored.id == winner.id
        assert stored.payment_status is PaymentStatus.PENDING


class TestStoreUnavailable:

    def test_unreachable_database(self, tmp_path, captured_logs):
        engine = create_store_engine(f"sqlite:///{tmp_path}/missing/store.db")
        store = sql_bundle(make_session_factory(engine))
        try:
            with pytest.raises(StoreUnavailableError) as exc_info:
                store.orders.get_order("order-1")
        finally:
            engine.dispose()

        assert exc_info.value.code == "STORE_UNAVAILABLE"
        assert exc_info.value.operation == "get_order"
        assert any(r["message"] == "store_unavailable" for r in captured_logs())
