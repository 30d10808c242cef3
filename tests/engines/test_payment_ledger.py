"""
Tests for the payment ledger: append-only history and derived status.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from earnings_engines.payment_ledger import append_payment
from earnings_kernel.domain.ledger import (
    Payment,
    PaymentLedger,
    PaymentStatus,
    amount_owed,
    derive_payment_status,
)
from earnings_kernel.exceptions import InvalidPaymentAmountError

NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _payment(amount: str) -> Payment:
    return Payment(amount=Decimal(amount), paid_on=date(2024, 2, 1), recorded_at=NOW)


class TestDerivedStatus:

    def test_pending_when_nothing_paid(self):
        assert derive_payment_status(Decimal("0"), Decimal("500")) is PaymentStatus.PENDING

    def test_partially_paid(self):
        assert derive_payment_status(Decimal("100"), Decimal("500")) is PaymentStatus.PARTIALLY_PAID

    def test_paid_in_full(self):
        assert derive_payment_status(Decimal("500"), Decimal("500")) is PaymentStatus.PAID

    def test_payment_against_zero_target_is_partially_paid(self):
        assert derive_payment_status(Decimal("10"), Decimal("0")) is PaymentStatus.PARTIALLY_PAID

    def test_scenario_d_overpayment(self):
        """$600 paid against a $500 actual -> owed clamps to 0, status paid."""
        ledger = append_payment(PaymentLedger(), _payment("600"))
        assert amount_owed(ledger.amount_paid, Decimal("500")) == Decimal("0")
        assert derive_payment_status(ledger.amount_paid, Decimal("500")) is PaymentStatus.PAID

    def test_amount_owed(self):
        assert amount_owed(Decimal("100"), Decimal("500")) == Decimal("400")
        assert amount_owed(Decimal("700"), Decimal("500")) == Decimal("0")


class TestAppend:

    def test_history_is_append_only(self):
        first = append_payment(PaymentLedger(), _payment("100"))
        second = append_payment(first, _payment("150.50"))
        assert first.amount_paid == Decimal("100")
        assert len(first.payments) == 1
        assert second.amount_paid == Decimal("250.50")
        assert [p.amount for p in second.payments] == [Decimal("100"), Decimal("150.50")]


class TestPaymentValidation:

    @pytest.mark.parametrize("amount", ["0", "-50", "NaN", "Infinity"])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidPaymentAmountError) as exc_info:
            _payment(amount)
        assert exc_info.value.code == "INVALID_PAYMENT_AMOUNT"
