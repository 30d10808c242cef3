"""
SQLAlchemy repository implementations.

Every repository call runs in its own transaction through
``session_scope(session_factory)``.  Concurrency guarantees come from the
database, not from application locks:

    insert_if_absent   unique constraint; the loser of an insert race
                       catches IntegrityError and re-reads the winner
    append_payment     UPDATE ... SET amount_paid = amount_paid + :amount
                       in the same transaction as the payment row insert,
                       which takes the next per-record sequence number
    delivery goals     UPDATE ... WHERE delivery_goals IS NULL
    finalize/recompute UPDATE ... WHERE finalized = false

Driver-level connectivity failures are translated into
``StoreUnavailableError``; nothing else is caught.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from earnings_engines.hub_billing import HubFees
from earnings_kernel.db.engine import session_scope
from earnings_kernel.domain.evidence import PerformanceEntry, ProofOfPerformance
from earnings_kernel.domain.inventory import (
    Campaign,
    DeliveryGoal,
    Hub,
    Order,
    goals_to_dict,
)
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    BillingRecord,
    EarningsRecord,
    Payment,
    Variance,
)
from earnings_kernel.exceptions import GoalsAlreadyRecordedError, StoreUnavailableError
from earnings_kernel.logging_config import get_logger
from earnings_services.orm import (
    BillingRecordModel,
    CampaignModel,
    EarningsRecordModel,
    HubModel,
    LedgerPaymentModel,
    OrderModel,
    PerformanceEntryModel,
    ProofModel,
)
from earnings_services.repositories import (
    BillingRepository,
    EarningsRepository,
    EvidenceRepository,
    OrderRepository,
    StoreBundle,
)

logger = get_logger("services.sql_store")

_EARNINGS = "earnings"
_BILLING = "billing"

F = TypeVar("F", bound=Callable[..., Any])


def _store_call(operation: str) -> Callable[[F], F]:
    """Translate connectivity failures raised by ``operation`` into StoreUnavailableError."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except (OperationalError, InterfaceError) as exc:
                logger.error(
                    "store_unavailable",
                    extra={"operation": operation, "error": str(exc.orig)},
                )
                raise StoreUnavailableError(operation, str(exc.orig)) from exc
            except DBAPIError as exc:
                if not exc.connection_invalidated:
                    raise
                logger.error("store_connection_lost", extra={"operation": operation})
                raise StoreUnavailableError(operation, "connection invalidated") from exc

        return wrapper  # type: ignore[return-value]

    return decorator


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)


# ---------------------------------------------------------------------------
# Orders and evidence
# ---------------------------------------------------------------------------


class SqlOrderRepository(_SqlRepository, OrderRepository):
    @_store_call("get_order")
    def get_order(self, order_id: str) -> Order | None:
        with self._scope() as session:
            model = session.scalar(select(OrderModel).where(OrderModel.order_id == order_id))
            return model.to_dto() if model else None

    @_store_call("get_campaign")
    def get_campaign(self, campaign_id: str) -> Campaign | None:
        with self._scope() as session:
            model = session.scalar(
                select(CampaignModel).where(CampaignModel.campaign_id == campaign_id)
            )
            return model.to_dto() if model else None

    @_store_call("get_hub")
    def get_hub(self, hub_id: str) -> Hub | None:
        with self._scope() as session:
            model = session.scalar(select(HubModel).where(HubModel.hub_id == hub_id))
            return model.to_dto() if model else None

    @_store_call("list_orders_for_campaign")
    def list_orders_for_campaign(self, campaign_id: str) -> list[Order]:
        with self._scope() as session:
            models = session.scalars(
                select(OrderModel)
                .where(OrderModel.campaign_id == campaign_id)
                .order_by(OrderModel.order_id)
            )
            return [m.to_dto() for m in models]

    @_store_call("list_orders_for_publication")
    def list_orders_for_publication(self, publication_id: str) -> list[Order]:
        with self._scope() as session:
            models = session.scalars(
                select(OrderModel)
                .where(OrderModel.publication_id == publication_id)
                .order_by(OrderModel.order_id)
            )
            return [m.to_dto() for m in models]

    @_store_call("record_delivery_goals")
    def record_delivery_goals(
        self, order_id: str, goals: Mapping[str, DeliveryGoal]
    ) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(OrderModel)
                .where(
                    OrderModel.order_id == order_id,
                    OrderModel.delivery_goals.is_(None),
                )
                .values(delivery_goals=goals_to_dict(goals))
            )
            if result.rowcount == 1:
                return True
            exists = session.scalar(
                select(OrderModel.id).where(OrderModel.order_id == order_id)
            )
        if exists is None:
            return False
        raise GoalsAlreadyRecordedError(order_id)

    @_store_call("save_order")
    def save_order(self, order: Order) -> None:
        with self._scope() as session:
            model = session.scalar(
                select(OrderModel).where(OrderModel.order_id == order.order_id)
            )
            if model is None:
                session.add(OrderModel.from_dto(order))
            else:
                model.apply_dto(order)

    @_store_call("save_campaign")
    def save_campaign(self, campaign: Campaign) -> None:
        with self._scope() as session:
            model = session.scalar(
                select(CampaignModel).where(CampaignModel.campaign_id == campaign.campaign_id)
            )
            if model is None:
                model = CampaignModel()
                session.add(model)
            model.apply_dto(campaign)

    @_store_call("save_hub")
    def save_hub(self, hub: Hub) -> None:
        with self._scope() as session:
            model = session.scalar(select(HubModel).where(HubModel.hub_id == hub.hub_id))
            if model is None:
                model = HubModel()
                session.add(model)
            model.apply_dto(hub)


class SqlEvidenceRepository(_SqlRepository, EvidenceRepository):
    @_store_call("performance_entries")
    def performance_entries(self, order_id: str) -> list[PerformanceEntry]:
        with self._scope() as session:
            models = session.scalars(
                select(PerformanceEntryModel)
                .where(PerformanceEntryModel.order_id == order_id)
                .order_by(PerformanceEntryModel.entry_id)
            )
            return [m.to_dto() for m in models]

    @_store_call("proofs")
    def proofs(self, order_id: str) -> list[ProofOfPerformance]:
        with self._scope() as session:
            models = session.scalars(
                select(ProofModel)
                .where(ProofModel.order_id == order_id)
                .order_by(ProofModel.proof_id)
            )
            return [m.to_dto() for m in models]

    @_store_call("add_performance_entry")
    def add_performance_entry(self, entry: PerformanceEntry) -> None:
        with self._scope() as session:
            session.add(PerformanceEntryModel.from_dto(entry))

    @_store_call("soft_delete_entry")
    def soft_delete_entry(self, entry_id: str) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(PerformanceEntryModel)
                .where(PerformanceEntryModel.entry_id == entry_id)
                .values(deleted=True)
            )
            return result.rowcount == 1

    @_store_call("add_proof")
    def add_proof(self, proof: ProofOfPerformance) -> None:
        with self._scope() as session:
            session.add(ProofModel.from_dto(proof))


# ---------------------------------------------------------------------------
# Ledgers
# ---------------------------------------------------------------------------


def _payments(session: Session, kind: str, record_id: UUID) -> tuple[Payment, ...]:
    rows = session.scalars(
        select(LedgerPaymentModel)
        .where(
            LedgerPaymentModel.ledger_kind == kind,
            LedgerPaymentModel.record_id == record_id,
        )
        .order_by(LedgerPaymentModel.sequence)
    )
    return tuple(r.to_dto() for r in rows)


def _append_payment_row(
    session: Session, model_cls: type, kind: str, record_id: UUID, payment: Payment
) -> bool:
    result = session.execute(
        update(model_cls)
        .where(model_cls.id == record_id)
        .values(
            amount_paid=model_cls.amount_paid + payment.amount,
            updated_at=payment.recorded_at,
        )
    )
    if result.rowcount != 1:
        return False
    # The UPDATE above holds the parent row lock, so the next number is ours.
    sequence = session.scalar(
        select(func.coalesce(func.max(LedgerPaymentModel.sequence), 0) + 1).where(
            LedgerPaymentModel.ledger_kind == kind,
            LedgerPaymentModel.record_id == record_id,
        )
    )
    session.add(LedgerPaymentModel.from_dto(payment, kind, record_id, sequence))
    return True


class SqlEarningsRepository(_SqlRepository, EarningsRepository):
    def _load(self, session: Session, model: EarningsRecordModel | None) -> EarningsRecord | None:
        if model is None:
            return None
        return model.to_dto(_payments(session, _EARNINGS, model.id))

    @_store_call("earnings_insert")
    def insert_if_absent(self, record: EarningsRecord) -> tuple[EarningsRecord, bool]:
        existing = self.get_by_order(record.order_id)
        if existing is not None:
            return existing, False
        try:
            with self._scope() as session:
                session.add(EarningsRecordModel.from_dto(record))
        except IntegrityError:
            logger.info(
                "earnings_insert_race_lost",
                extra={"order_id": record.order_id},
            )
            winner = self.get_by_order(record.order_id)
            if winner is None:
                raise
            return winner, False
        return record, True

    @_store_call("earnings_get")
    def get(self, record_id: UUID) -> EarningsRecord | None:
        with self._scope() as session:
            return self._load(session, session.get(EarningsRecordModel, record_id))

    @_store_call("earnings_get_by_order")
    def get_by_order(self, order_id: str) -> EarningsRecord | None:
        with self._scope() as session:
            model = session.scalar(
                select(EarningsRecordModel).where(EarningsRecordModel.order_id == order_id)
            )
            return self._load(session, model)

    def _list(self, *criteria) -> list[EarningsRecord]:
        with self._scope() as session:
            models = session.scalars(
                select(EarningsRecordModel)
                .where(*criteria)
                .order_by(EarningsRecordModel.created_at, EarningsRecordModel.order_id)
            )
            return [self._load(session, m) for m in models]

    @_store_call("earnings_list_by_campaign")
    def list_by_campaign(self, campaign_id: str) -> list[EarningsRecord]:
        return self._list(EarningsRecordModel.campaign_id == campaign_id)

    @_store_call("earnings_list_by_publication")
    def list_by_publication(self, publication_id: str) -> list[EarningsRecord]:
        return self._list(EarningsRecordModel.publication_id == publication_id)

    @staticmethod
    def _actual_columns(
        actual: ActualEarnings, tracked_actual: int, variance: Variance
    ) -> dict[str, Any]:
        return {
            "actual": actual.to_dict(),
            "actual_total": actual.total,
            "tracked_impressions_actual": tracked_actual,
            "variance_amount": variance.amount,
            "variance_percentage": variance.percentage,
        }

    @_store_call("earnings_update_actual")
    def update_actual(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        updated_at: datetime,
    ) -> EarningsRecord | None:
        with self._scope() as session:
            session.execute(
                update(EarningsRecordModel)
                .where(
                    EarningsRecordModel.id == record_id,
                    EarningsRecordModel.finalized.is_(False),
                )
                .values(
                    updated_at=updated_at,
                    **self._actual_columns(actual, tracked_actual, variance),
                )
            )
        return self.get(record_id)

    @_store_call("earnings_finalize")
    def mark_finalized(
        self,
        record_id: UUID,
        actual: ActualEarnings,
        tracked_actual: int,
        variance: Variance,
        finalized_at: datetime,
    ) -> EarningsRecord | None:
        with self._scope() as session:
            session.execute(
                update(EarningsRecordModel)
                .where(
                    EarningsRecordModel.id == record_id,
                    EarningsRecordModel.finalized.is_(False),
                )
                .values(
                    finalized=True,
                    finalized_at=finalized_at,
                    updated_at=finalized_at,
                    **self._actual_columns(actual, tracked_actual, variance),
                )
            )
        return self.get(record_id)

    @_store_call("earnings_append_payment")
    def append_payment(self, record_id: UUID, payment: Payment) -> EarningsRecord | None:
        with self._scope() as session:
            appended = _append_payment_row(
                session, EarningsRecordModel, _EARNINGS, record_id, payment
            )
        return self.get(record_id) if appended else None

    @_store_call("earnings_list_unfinalized_ended")
    def list_unfinalized_ended(self, as_of: date) -> list[EarningsRecord]:
        return self._list(
            EarningsRecordModel.finalized.is_(False),
            EarningsRecordModel.campaign_end.is_not(None),
            EarningsRecordModel.campaign_end < as_of,
        )


class SqlBillingRepository(_SqlRepository, BillingRepository):
    def _load(self, session: Session, model: BillingRecordModel | None) -> BillingRecord | None:
        if model is None:
            return None
        return model.to_dto(_payments(session, _BILLING, model.id))

    @_store_call("billing_insert")
    def insert_if_absent(self, record: BillingRecord) -> tuple[BillingRecord, bool]:
        existing = self.get_by_hub_campaign(record.hub_id, record.campaign_id)
        if existing is not None:
            return existing, False
        try:
            with self._scope() as session:
                session.add(BillingRecordModel.from_dto(record))
        except IntegrityError:
            logger.info(
                "billing_insert_race_lost",
                extra={"hub_id": record.hub_id, "campaign_id": record.campaign_id},
            )
            winner = self.get_by_hub_campaign(record.hub_id, record.campaign_id)
            if winner is None:
                raise
            return winner, False
        return record, True

    @_store_call("billing_get")
    def get(self, record_id: UUID) -> BillingRecord | None:
        with self._scope() as session:
            return self._load(session, session.get(BillingRecordModel, record_id))

    @_store_call("billing_get_by_hub_campaign")
    def get_by_hub_campaign(self, hub_id: str, campaign_id: str) -> BillingRecord | None:
        with self._scope() as session:
            model = session.scalar(
                select(BillingRecordModel).where(
                    BillingRecordModel.hub_id == hub_id,
                    BillingRecordModel.campaign_id == campaign_id,
                )
            )
            return self._load(session, model)

    def _list(self, *criteria) -> list[BillingRecord]:
        with self._scope() as session:
            models = session.scalars(
                select(BillingRecordModel)
                .where(*criteria)
                .order_by(BillingRecordModel.created_at, BillingRecordModel.campaign_id)
            )
            return [self._load(session, m) for m in models]

    @_store_call("billing_list_by_hub")
    def list_by_hub(self, hub_id: str) -> list[BillingRecord]:
        return self._list(BillingRecordModel.hub_id == hub_id)

    @_store_call("billing_list_all")
    def list_all(self) -> list[BillingRecord]:
        return self._list()

    @staticmethod
    def _fee_columns(fees: HubFees) -> dict[str, Any]:
        return BillingRecordModel.fee_columns(
            fees.publisher_payouts,
            fees.revenue_share_fee,
            fees.platform_cpm_fee,
            fees.total_fees,
        )

    @_store_call("billing_update_fees")
    def update_fees(
        self, record_id: UUID, fees: HubFees, updated_at: datetime
    ) -> BillingRecord | None:
        with self._scope() as session:
            session.execute(
                update(BillingRecordModel)
                .where(
                    BillingRecordModel.id == record_id,
                    BillingRecordModel.finalized.is_(False),
                )
                .values(updated_at=updated_at, **self._fee_columns(fees))
            )
        return self.get(record_id)

    @_store_call("billing_finalize")
    def mark_finalized(
        self, record_id: UUID, fees: HubFees, finalized_at: datetime
    ) -> BillingRecord | None:
        with self._scope() as session:
            session.execute(
                update(BillingRecordModel)
                .where(
                    BillingRecordModel.id == record_id,
                    BillingRecordModel.finalized.is_(False),
                )
                .values(
                    finalized=True,
                    finalized_at=finalized_at,
                    updated_at=finalized_at,
                    **self._fee_columns(fees),
                )
            )
        return self.get(record_id)

    @_store_call("billing_append_payment")
    def append_payment(self, record_id: UUID, payment: Payment) -> BillingRecord | None:
        with self._scope() as session:
            appended = _append_payment_row(
                session, BillingRecordModel, _BILLING, record_id, payment
            )
        return self.get(record_id) if appended else None

    @_store_call("billing_list_unfinalized_ended")
    def list_unfinalized_ended(self, as_of: date) -> list[BillingRecord]:
        return self._list(
            BillingRecordModel.finalized.is_(False),
            BillingRecordModel.campaign_end.is_not(None),
            BillingRecordModel.campaign_end < as_of,
        )


def sql_bundle(session_factory: sessionmaker[Session]) -> StoreBundle:
    """SQL repositories sharing one session factory."""
    return StoreBundle(
        orders=SqlOrderRepository(session_factory),
        evidence=SqlEvidenceRepository(session_factory),
        earnings=SqlEarningsRepository(session_factory),
        billing=SqlBillingRepository(session_factory),
    )
