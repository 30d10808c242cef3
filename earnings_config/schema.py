"""
EarningsConfig schema.

The frozen runtime artifact produced by the loader.  Nothing downstream
reads YAML; services take the values they need from this object, and
engines receive the ``ChannelCatalog`` it builds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from earnings_kernel.domain.inventory import ChannelCatalog, ChannelProfile


@dataclass(frozen=True)
class EarningsConfig:
    """Validated earnings configuration."""

    config_id: str
    version: int
    checksum: str
    currency: str = "USD"
    money_places: int = 2
    days_per_month: int = 30
    eligible_order_statuses: frozenset[str] = frozenset({"confirmed", "completed"})
    default_page_size: int = 100
    max_page_size: int = 1000
    channels: tuple[ChannelProfile, ...] = field(default_factory=tuple)

    def channel_catalog(self) -> ChannelCatalog:
        return ChannelCatalog(self.channels)

    def clamp_page(self, skip: int | None, limit: int | None) -> tuple[int, int]:
        """Normalise listing pagination: non-negative skip, 1..max_page_size limit."""
        skip = max(0, skip or 0)
        if limit is None or limit <= 0:
            limit = self.default_page_size
        return skip, min(limit, self.max_page_size)
