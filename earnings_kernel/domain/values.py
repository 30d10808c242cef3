"""
Values -- Decimal coercion and money rounding primitives.

Responsibility:
    Every monetary and quantity computation in the engine goes through
    these helpers.  Upstream records are loosely shaped (numbers may be
    missing, ``None``, strings, or floats from a document store); nothing
    downstream may ever see anything but a finite ``Decimal``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine and by the persistence adapters.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so the
      binary representation never leaks into money.
    - Missing / malformed numeric inputs are zero, never ``None``.
    - Rounding is ROUND_HALF_UP, applied explicitly by callers.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from uuid import UUID

ZERO = Decimal("0")
HUNDRED = Decimal("100")
THOUSAND = Decimal("1000")

_DEFAULT_PLACES = 2


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a loosely-typed numeric value to a finite Decimal.

    Postconditions:
        - Returns ``Decimal("0")`` for None, booleans, empty strings,
          non-numeric strings, NaN and infinities.
        - Never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def to_int(value: Any) -> int:
    """Coerce to a whole number (ROUND_HALF_UP); malformed input is 0."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quantize_money(value: Decimal, places: int = _DEFAULT_PLACES) -> Decimal:
    """Round a monetary amount to ``places`` decimal places (ROUND_HALF_UP)."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal, places: int = 2) -> Decimal:
    """``part / whole * 100``; zero when ``whole`` is zero."""
    if whole == ZERO:
        return Decimal(0).quantize(Decimal(1).scaleb(-places))
    return (part / whole * HUNDRED).quantize(
        Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
    )


def parse_record_id(value: Any) -> UUID | None:
    """
    Parse a ledger record identifier.

    Identifiers that are not a valid store key (wrong length, non-hex,
    wrong type) yield ``None`` so that lookups treat them as not-found.
    """
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        return None
