"""Payment construction shared by the earnings and billing aggregators."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from earnings_kernel.domain.clock import Clock
from earnings_kernel.domain.ledger import Payment, PaymentMethod
from earnings_kernel.domain.values import to_decimal
from earnings_kernel.logging_config import get_logger

logger = get_logger("services.payments")


def coerce_method(method: PaymentMethod | str | None) -> PaymentMethod | None:
    if method is None or isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).strip().lower())
    except ValueError:
        logger.warning("payment_method_unrecognized", extra={"method": str(method)})
        return PaymentMethod.OTHER


def build_payment(
    clock: Clock,
    amount: Decimal | int | str,
    *,
    paid_on: date | None = None,
    method: PaymentMethod | str | None = None,
    reference: str | None = None,
    invoice_number: str | None = None,
    notes: str | None = None,
    recorded_by: str | None = None,
) -> Payment:
    """
    Validated payment stamped with the clock.

    Raises:
        InvalidPaymentAmountError: amount is missing, malformed, or not
            strictly positive.
    """
    value: Any = amount if isinstance(amount, Decimal) else to_decimal(amount)
    return Payment(
        amount=value,
        paid_on=paid_on or clock.today(),
        recorded_at=clock.now(),
        method=coerce_method(method),
        reference=reference,
        invoice_number=invoice_number,
        notes=notes,
        recorded_by=recorded_by,
    )
