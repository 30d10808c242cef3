"""
Delivery evidence -- performance counters and proof-of-performance records.

Both streams are append-only and owned by the surrounding system.  Entries
are keyed by order id and item path; a performance entry may be soft-deleted
and must then be ignored at read time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from earnings_kernel.domain.values import ZERO, to_decimal


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PerformanceEntry:
    """
    Automated counter report for one placement over a date range.

    ``metrics`` is a loosely shaped bag (impressions, clicks, reach and
    channel-specific counts); read it through ``metric()``.
    """

    entry_id: str
    order_id: str
    item_path: str
    channel: str
    metrics: Mapping[str, Any] = field(default_factory=dict)
    period_start: date | None = None
    period_end: date | None = None
    deleted: bool = False

    def metric(self, name: str) -> Decimal:
        value = to_decimal(self.metrics.get(name))
        return value if value > ZERO else ZERO

    @property
    def impressions(self) -> Decimal:
        return self.metric("impressions")

    @property
    def clicks(self) -> Decimal:
        return self.metric("clicks")


@dataclass(frozen=True)
class ProofOfPerformance:
    """Manually submitted delivery proof (tearsheet, affidavit, screenshot)."""

    proof_id: str
    order_id: str
    item_path: str
    verification_status: VerificationStatus
    submitted_at: datetime | None = None

    @property
    def verified(self) -> bool:
        return self.verification_status is VerificationStatus.VERIFIED
