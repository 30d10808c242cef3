"""
Inventory -- Channels, placements, delivery goals, and the order/campaign/hub
records the reconciliation engine reads.

Responsibility:
    Immutable value objects for everything consumed read-only from the
    surrounding campaign management system.  Orders, campaigns and hubs are
    owned elsewhere; the only field this subsystem ever writes on an order
    is its delivery-goal mapping, exactly once.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Channel is a closed enumeration.  Upstream spellings (``website``,
      ``social_media``) are folded onto it by ``ChannelCatalog.normalize``;
      anything unrecognised becomes ``Channel.OTHER``.
    - Loosely shaped upstream numbers are coerced through ``to_decimal`` /
      ``to_int`` when records are built from mappings.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from earnings_kernel.domain.values import ZERO, to_decimal, to_int


class Channel(str, Enum):
    """Distribution channel of a placement."""

    WEB = "web"
    NEWSLETTER = "newsletter"
    PRINT = "print"
    RADIO = "radio"
    PODCAST = "podcast"
    SOCIAL = "social"
    STREAMING = "streaming"
    EVENTS = "events"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> Channel:
        """Canonical channel for a stored value; unknown values map to OTHER."""
        if isinstance(value, Channel):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class ChannelProfile:
    """Static facts about one channel: digital or not, and its unit noun."""

    channel: Channel
    digital: bool
    unit_noun: str
    aliases: tuple[str, ...] = ()


class ChannelCatalog:
    """
    Lookup of channel profiles, built from configuration.

    Engines receive a catalog explicitly; they never read configuration.
    """

    def __init__(self, profiles: Iterable[ChannelProfile]):
        self._profiles: dict[Channel, ChannelProfile] = {}
        self._aliases: dict[str, Channel] = {}
        for profile in profiles:
            self._profiles[profile.channel] = profile
            self._aliases[profile.channel.value] = profile.channel
            for alias in profile.aliases:
                self._aliases[alias.strip().lower()] = profile.channel

    def normalize(self, raw: Any) -> Channel:
        """Fold an upstream channel spelling onto the closed enumeration."""
        if isinstance(raw, Channel):
            return raw
        if raw is None:
            return Channel.OTHER
        return self._aliases.get(str(raw).strip().lower(), Channel.OTHER)

    def profile(self, channel: Channel) -> ChannelProfile:
        found = self._profiles.get(channel)
        if found is None:
            return ChannelProfile(channel=channel, digital=False, unit_noun="unit")
        return found

    def is_digital(self, channel: Channel) -> bool:
        return self.profile(channel).digital

    def unit_noun(self, channel: Channel) -> str:
        return self.profile(channel).unit_noun

    @property
    def digital_channels(self) -> frozenset[Channel]:
        return frozenset(c for c, p in self._profiles.items() if p.digital)


# ============================================================================
# Placements and goals
# ============================================================================


@dataclass(frozen=True)
class Placement:
    """
    One contracted inventory line item on an order.

    Attributes:
        item_path: Stable identifier, unique within the order.
        item_name: Display name.
        channel: Normalised distribution channel.
        pricing_model: Raw pricing model key (``cpm``, ``per_send``, ``flat``...).
        rate: Currency amount per pricing-model unit.
        frequency: Share-of-voice percent for CPM-family models, otherwise
            the contracted occurrence count.
        monthly_impressions: Monthly baseline impressions (digital channels).
        excluded: Placement was removed from the order; it gets no goal.
    """

    item_path: str
    item_name: str
    channel: Channel
    pricing_model: str
    rate: Decimal
    frequency: int = 0
    monthly_impressions: int = 0
    excluded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_path": self.item_path,
            "item_name": self.item_name,
            "channel": self.channel.value,
            "pricing_model": self.pricing_model,
            "rate": str(self.rate),
            "frequency": self.frequency,
            "monthly_impressions": self.monthly_impressions,
            "excluded": self.excluded,
        }

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], catalog: ChannelCatalog | None = None
    ) -> Placement:
        """Build a placement from a loosely shaped mapping."""
        raw_channel = data.get("channel")
        channel = (
            catalog.normalize(raw_channel) if catalog else Channel.coerce(raw_channel)
        )
        return cls(
            item_path=str(data.get("item_path") or ""),
            item_name=str(data.get("item_name") or ""),
            channel=channel,
            pricing_model=str(data.get("pricing_model") or "").strip().lower(),
            rate=to_decimal(data.get("rate")),
            frequency=to_int(data.get("frequency")),
            monthly_impressions=to_int(data.get("monthly_impressions")),
            excluded=bool(data.get("excluded", False)),
        )


class GoalType(str, Enum):
    """Unit a delivery goal is measured in."""

    IMPRESSIONS = "impressions"
    UNITS = "units"


@dataclass(frozen=True)
class DeliveryGoal:
    """Target delivery for one placement, fixed at order confirmation."""

    goal_type: GoalType
    goal_value: int
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal_type": self.goal_type.value,
            "goal_value": self.goal_value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DeliveryGoal:
        try:
            goal_type = GoalType(str(data.get("goal_type", "")).lower())
        except ValueError:
            goal_type = GoalType.UNITS
        return cls(
            goal_type=goal_type,
            goal_value=max(0, to_int(data.get("goal_value"))),
            description=str(data.get("description") or ""),
        )


def goals_to_dict(goals: Mapping[str, DeliveryGoal]) -> dict[str, dict[str, Any]]:
    return {path: goal.to_dict() for path, goal in goals.items()}


def goals_from_dict(data: Mapping[str, Any] | None) -> dict[str, DeliveryGoal] | None:
    if data is None:
        return None
    return {path: DeliveryGoal.from_dict(raw) for path, raw in data.items()}


# ============================================================================
# Orders, campaigns, hubs
# ============================================================================


@dataclass(frozen=True)
class Order:
    """
    An insertion order between a campaign and one publication.

    ``delivery_goals`` is ``None`` until goals have been recorded.
    """

    order_id: str
    campaign_id: str
    publication_id: str
    publication_name: str
    hub_id: str
    status: str
    placements: tuple[Placement, ...] = ()
    delivery_goals: dict[str, DeliveryGoal] | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Campaign:
    """Campaign display name and flight dates (either date may be unknown)."""

    campaign_id: str
    name: str
    hub_id: str
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class HubBillingTerms:
    """
    Fees a hub owes the platform.

    Attributes:
        revenue_share_percent: Percent of publisher payouts (e.g. 15 for 15%).
        platform_cpm_rate: Fee per 1,000 tracked digital impressions.
    """

    revenue_share_percent: Decimal = ZERO
    platform_cpm_rate: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HubBillingTerms:
        return cls(
            revenue_share_percent=to_decimal(data.get("revenue_share_percent")),
            platform_cpm_rate=to_decimal(data.get("platform_cpm_rate")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "revenue_share_percent": str(self.revenue_share_percent),
            "platform_cpm_rate": str(self.platform_cpm_rate),
        }


@dataclass(frozen=True)
class Hub:
    """A hub brokering campaigns; ``billing`` is None when the hub is not billed."""

    hub_id: str
    name: str
    billing: HubBillingTerms | None = field(default=None)
