"""
earnings_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure calculation engines
    (earnings_engines/) with repositories, configuration and the clock.
    This is the only layer that reads or writes the store or uses
    wall-clock time.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

        earnings_services/ -> earnings_engines/  (allowed)
        earnings_services/ -> earnings_kernel/   (allowed)
        earnings_engines/  -> earnings_services/ (FORBIDDEN)
        earnings_kernel/   -> earnings_services/ (FORBIDDEN)

Invariants enforced:
    - Aggregators depend on the repository interfaces only; the in-memory
      and SQLAlchemy stores are interchangeable.
    - Not-found is an ordinary ``None`` result.  Only
      ``StoreUnavailableError`` and ``InvalidPaymentAmountError`` reach
      callers.
"""

from earnings_services.earnings_service import EarningsAggregator
from earnings_services.goal_recorder import DeliveryGoalRecorder
from earnings_services.hub_billing_service import HubBillingAggregator
from earnings_services.memory_store import memory_bundle
from earnings_services.order_confirmation import (
    ConfirmationResult,
    OrderConfirmationService,
)
from earnings_services.reporting import (
    CampaignEarnings,
    EarningsReporting,
    HubBillingSummary,
    OrderEarningsSummary,
    PlatformSummary,
    PublicationEarningsSummary,
)
from earnings_services.repositories import (
    BillingRepository,
    EarningsRepository,
    EvidenceRepository,
    OrderRepository,
    StoreBundle,
)
from earnings_services.sql_store import sql_bundle

__all__ = [
    "BillingRepository",
    "CampaignEarnings",
    "ConfirmationResult",
    "DeliveryGoalRecorder",
    "EarningsAggregator",
    "EarningsReporting",
    "EarningsRepository",
    "EvidenceRepository",
    "HubBillingAggregator",
    "HubBillingSummary",
    "OrderConfirmationService",
    "OrderEarningsSummary",
    "OrderRepository",
    "PlatformSummary",
    "PublicationEarningsSummary",
    "StoreBundle",
    "memory_bundle",
    "sql_bundle",
]
