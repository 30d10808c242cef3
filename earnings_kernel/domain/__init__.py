"""
Pure domain layer.

Immutable records and Decimal helpers with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Configuration files
"""

from earnings_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from earnings_kernel.domain.evidence import (
    PerformanceEntry,
    ProofOfPerformance,
    VerificationStatus,
)
from earnings_kernel.domain.inventory import (
    Campaign,
    Channel,
    ChannelCatalog,
    ChannelProfile,
    DeliveryGoal,
    GoalType,
    Hub,
    HubBillingTerms,
    Order,
    Placement,
)
from earnings_kernel.domain.ledger import (
    ActualEarnings,
    ActualPlacement,
    BillingRecord,
    EarningsRecord,
    EstimatedEarnings,
    EstimatedPlacement,
    FeeTotals,
    Payment,
    PaymentLedger,
    PaymentMethod,
    PaymentStatus,
    PlatformCpmFee,
    PublisherPayouts,
    RevenueShareFee,
    TrackedImpressions,
    Variance,
)
from earnings_kernel.domain.values import parse_record_id, quantize_money, to_decimal

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Inventory
    "Campaign",
    "Channel",
    "ChannelCatalog",
    "ChannelProfile",
    "DeliveryGoal",
    "GoalType",
    "Hub",
    "HubBillingTerms",
    "Order",
    "Placement",
    # Evidence
    "PerformanceEntry",
    "ProofOfPerformance",
    "VerificationStatus",
    # Ledgers
    "ActualEarnings",
    "ActualPlacement",
    "BillingRecord",
    "EarningsRecord",
    "EstimatedEarnings",
    "EstimatedPlacement",
    "FeeTotals",
    "Payment",
    "PaymentLedger",
    "PaymentMethod",
    "PaymentStatus",
    "PlatformCpmFee",
    "PublisherPayouts",
    "RevenueShareFee",
    "TrackedImpressions",
    "Variance",
    # Values
    "parse_record_id",
    "quantize_money",
    "to_decimal",
]
