"""
Configuration Loader (``earnings_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``EarningsConfig``.  The single public entry point for runtime config is
``earnings_config.get_active_config()``.

Invariants enforced
-------------------
* Every channel of the closed ``Channel`` enumeration must be configured;
  unknown channel keys are rejected.
* Numeric settings must be positive integers.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML or invalid content  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from earnings_config.schema import EarningsConfig
from earnings_kernel.domain.inventory import Channel, ChannelProfile
from earnings_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(exc), source=str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("top level must be a mapping", source=str(path))
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _positive_int(data: dict[str, Any], key: str, default: int, source: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}", source)
    return value


def parse_channels(data: Any, source: str) -> tuple[ChannelProfile, ...]:
    """Parse the ``channels`` mapping into one profile per channel."""
    if not isinstance(data, dict):
        raise ConfigurationError("channels must be a mapping", source)

    profiles: list[ChannelProfile] = []
    seen_aliases: dict[str, str] = {}
    for key, raw in data.items():
        try:
            channel = Channel(str(key))
        except ValueError:
            raise ConfigurationError(f"unknown channel {key!r}", source) from None
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"channel {key!r} must be a mapping", source)
        aliases = tuple(str(a).strip().lower() for a in raw.get("aliases") or ())
        for alias in aliases:
            if alias in seen_aliases:
                raise ConfigurationError(
                    f"alias {alias!r} used by both {seen_aliases[alias]!r} and {key!r}",
                    source,
                )
            seen_aliases[alias] = key
        profiles.append(
            ChannelProfile(
                channel=channel,
                digital=bool(raw.get("digital", False)),
                unit_noun=str(raw.get("unit_noun") or "unit"),
                aliases=aliases,
            )
        )

    missing = {c.value for c in Channel} - {p.channel.value for p in profiles}
    if missing:
        raise ConfigurationError(
            f"channels missing from configuration: {sorted(missing)}", source
        )
    return tuple(sorted(profiles, key=lambda p: p.channel.value))


def parse_config(data: dict[str, Any], source: str = "<memory>") -> EarningsConfig:
    """
    Parse a configuration mapping into ``EarningsConfig``.

    Raises:
        ConfigurationError: on any missing or invalid value.
    """
    statuses = data.get("eligible_order_statuses", ["confirmed", "completed"])
    if not isinstance(statuses, list) or not statuses:
        raise ConfigurationError("eligible_order_statuses must be a non-empty list", source)

    currency = data.get("currency", "USD")
    if not isinstance(currency, str) or len(currency) != 3:
        raise ConfigurationError(f"currency must be an ISO 4217 code, got {currency!r}", source)

    default_page_size = _positive_int(data, "default_page_size", 100, source)
    max_page_size = _positive_int(data, "max_page_size", 1000, source)
    if default_page_size > max_page_size:
        raise ConfigurationError("default_page_size exceeds max_page_size", source)

    return EarningsConfig(
        config_id=str(data.get("config_id", "earnings")),
        version=_positive_int(data, "version", 1, source),
        checksum=compute_checksum(data),
        currency=currency.upper(),
        money_places=_positive_int(data, "money_places", 2, source),
        days_per_month=_positive_int(data, "days_per_month", 30, source),
        eligible_order_statuses=frozenset(str(s).lower() for s in statuses),
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        channels=parse_channels(data.get("channels"), source),
    )


def load_config_file(path: Path) -> EarningsConfig:
    return parse_config(load_yaml_file(path), source=str(path))
