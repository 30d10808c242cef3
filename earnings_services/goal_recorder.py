"""
Delivery goal recorder.

Computes an order's delivery goals and persists them exactly once.  A
second writer (a concurrent confirmation, a retry) loses the conditional
write, gets ``GoalsAlreadyRecordedError`` from the store, and adopts the
goals that are already stored.  Stored goals are never recomputed.
"""

from __future__ import annotations

from earnings_config.schema import EarningsConfig
from earnings_engines.delivery_goals import compute_delivery_goals
from earnings_kernel.domain.inventory import (
    Campaign,
    ChannelCatalog,
    DeliveryGoal,
    Order,
)
from earnings_kernel.exceptions import GoalsAlreadyRecordedError
from earnings_kernel.logging_config import get_logger
from earnings_services.repositories import OrderRepository

logger = get_logger("services.goal_recorder")


class DeliveryGoalRecorder:
    def __init__(
        self,
        orders: OrderRepository,
        config: EarningsConfig,
        channels: ChannelCatalog | None = None,
    ):
        self._orders = orders
        self._config = config
        self._channels = channels or config.channel_catalog()

    def compute(self, order: Order, campaign: Campaign | None) -> dict[str, DeliveryGoal]:
        """Goals for ``order`` without persisting them."""
        return compute_delivery_goals(
            order.placements,
            start_date=campaign.start_date if campaign else None,
            end_date=campaign.end_date if campaign else None,
            channels=self._channels,
            days_per_month=self._config.days_per_month,
        )

    def ensure(self, order: Order, campaign: Campaign | None) -> dict[str, DeliveryGoal]:
        """Stored goals for ``order``, recording them first if absent."""
        if order.delivery_goals is not None:
            return order.delivery_goals

        goals = self.compute(order, campaign)
        try:
            written = self._orders.record_delivery_goals(order.order_id, goals)
        except GoalsAlreadyRecordedError:
            stored = self._orders.get_order(order.order_id)
            logger.info(
                "delivery_goals_already_recorded",
                extra={"order_id": order.order_id},
            )
            if stored is not None and stored.delivery_goals is not None:
                return stored.delivery_goals
            return goals

        if written:
            logger.info(
                "delivery_goals_recorded",
                extra={"order_id": order.order_id, "goal_count": len(goals)},
            )
        return goals
