"""
Order confirmation hook.

Invoked once an order reaches an eligible status.  Records delivery goals
(at most once), creates the publication earnings estimate, and creates the
campaign's hub billing estimate when the hub is billed.  Every step is
idempotent, so a retried or concurrent confirmation converges on the same
stored state.
"""

from __future__ import annotations

from dataclasses import dataclass

from earnings_config.schema import EarningsConfig
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.inventory import DeliveryGoal
from earnings_kernel.domain.ledger import BillingRecord, EarningsRecord
from earnings_kernel.logging_config import LogContext, get_logger
from earnings_services.earnings_service import EarningsAggregator
from earnings_services.goal_recorder import DeliveryGoalRecorder
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.repositories import StoreBundle

logger = get_logger("services.order_confirmation")


@dataclass(frozen=True)
class ConfirmationResult:
    """What a confirmation left in the store."""
    order_id: str
    eligible: bool
    delivery_goals: dict[str, DeliveryGoal] | None = None
    earnings: EarningsRecord | None = None
    billing: BillingRecord | None = None


class OrderConfirmationService:
    def __init__(
        self,
        store: StoreBundle,
        config: EarningsConfig,
        clock: Clock | None = None,
    ):
        self._store = store
        self._config = config
        clock = clock or SystemClock()
        self._goals = DeliveryGoalRecorder(store.orders, config)
        self._earnings = EarningsAggregator(
            store.orders, store.evidence, store.earnings, config, clock
        )
        self._billing = HubBillingAggregator(
            store.orders, store.earnings, store.billing, config, clock
        )

    def confirm(self, order_id: str) -> ConfirmationResult:
        with LogContext.bind(order_id=order_id):
            order = self._store.orders.get_order(order_id)
            if order is None or not self._earnings.is_eligible(order):
                logger.info(
                    "order_confirmation_skipped",
                    extra={"found": order is not None},
                )
                return ConfirmationResult(order_id=order_id, eligible=False)

            campaign = self._store.orders.get_campaign(order.campaign_id)
            goals = self._goals.ensure(order, campaign)
            earnings = self._earnings.create_estimate(order_id)

            billing = None
            if campaign is not None:
                billing = self._billing.create_estimate(campaign.campaign_id, order.hub_id or None)
                if billing is not None and not billing.finalized:
                    billing = self._billing.recompute_actual(
                        campaign.campaign_id, billing.hub_id
                    )

            logger.info(
                "order_confirmed",
                extra={
                    "goal_count": len(goals),
                    "earnings_id": str(earnings.id) if earnings else None,
                    "billing_id": str(billing.id) if billing else None,
                },
            )
            return ConfirmationResult(
                order_id=order_id,
                eligible=True,
                delivery_goals=goals,
                earnings=earnings,
                billing=billing,
            )
