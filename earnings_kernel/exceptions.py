"""
Typed Exception Hierarchy for the Earnings Reconciliation Engine.

Every error has a typed class and a machine-readable ``code`` attribute,
and carries structured data rather than just a message string.

Reconciliation is routinely invoked speculatively ("does this order have
earnings yet?"), so the ordinary absences are NOT exceptions:

    - referenced order / campaign / earnings / billing record absent
    - hub without a billing configuration
    - identifiers that are not a valid store key
    - evidence referencing an item path that no placement carries

Those surface as ``None``, no-op, or zero results.  What remains here are
caller bugs (invalid payment amounts), bad configuration, and the one hard
failure that must propagate: the persistent store being unavailable.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    EarningsError (base)
    |
    +-- ConfigurationError
    |
    +-- PaymentError
    |   +-- InvalidPaymentAmountError
    |
    +-- LedgerError
    |   +-- GoalsAlreadyRecordedError
    |
    +-- StoreError
        +-- StoreUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_INVALID       | YAML config missing keys / bad values
----------------|-----------------------------|-----------------------------------------
Payment         | INVALID_PAYMENT_AMOUNT      | Payment amount not strictly positive
----------------|-----------------------------|-----------------------------------------
Ledger          | GOALS_ALREADY_RECORDED      | Second write of an order's delivery goals
----------------|-----------------------------|-----------------------------------------
Store           | STORE_UNAVAILABLE           | Persistent store cannot be reached
"""

from decimal import Decimal


class EarningsError(Exception):
    """
    Base exception for all earnings engine errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "EARNINGS_ERROR"


# Configuration


class ConfigurationError(EarningsError):
    """Configuration content is missing or invalid."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, detail: str, source: str | None = None):
        self.detail = detail
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"Invalid earnings configuration{where}: {detail}")


# Payments


class PaymentError(EarningsError):
    """Base exception for payment recording errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentAmountError(PaymentError):
    """Payment amount must be strictly positive; ledgers do not support un-paying."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: Decimal | str):
        self.amount = str(amount)
        super().__init__(f"Payment amount must be positive, got {amount}")


# Ledger bookkeeping


class LedgerError(EarningsError):
    """Base exception for ledger bookkeeping errors."""

    code: str = "LEDGER_ERROR"


class GoalsAlreadyRecordedError(LedgerError):
    """Delivery goals are immutable once persisted on an order."""

    code: str = "GOALS_ALREADY_RECORDED"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Delivery goals already recorded for order {order_id}")


# Store


class StoreError(EarningsError):
    """Base exception for persistent-store failures."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """The persistent store could not be reached; the operation may be retried."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Store unavailable during {operation}" + (f": {detail}" if detail else "")
        )
