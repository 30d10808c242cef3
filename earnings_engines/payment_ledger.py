"""
Payment Ledger Engine.

Pure functions with deterministic behavior. No I/O.

Shared by the earnings and billing ledgers.  History is append-only; the
status and amount owed are re-derived from (amount paid, target) by the
record properties, so there is no stored state that could drift from the
history.

    pending         amount paid == 0
    paid            target > 0 and amount paid >= target
    partially_paid  otherwise
"""

from __future__ import annotations

from earnings_kernel.domain.ledger import Payment, PaymentLedger


def append_payment(ledger: PaymentLedger, payment: Payment) -> PaymentLedger:
    """New ledger with ``payment`` appended and the running total advanced."""
    return PaymentLedger(
        amount_paid=ledger.amount_paid + payment.amount,
        payments=ledger.payments + (payment,),
    )
