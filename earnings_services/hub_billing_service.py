"""
Hub Billing Aggregator - Maintains one billing record per (hub, campaign).

Mirrors the earnings aggregator one level up.  Fees are always computed
from the campaign's already-capped earnings records, never from raw
evidence.  Billing is opt-in per hub: a hub without billing terms is a
valid steady state and ``create_estimate`` simply returns ``None``.

The revenue-share and CPM rates are captured on the record at creation;
recompute and finalize reuse those stored rates.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

from earnings_config.schema import EarningsConfig
from earnings_engines.hub_billing import HubFees, compute_hub_fees, rollup_earnings
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.inventory import Campaign, HubBillingTerms
from earnings_kernel.domain.ledger import BillingRecord, PaymentMethod
from earnings_kernel.domain.values import parse_record_id
from earnings_kernel.logging_config import LogContext, get_logger
from earnings_services.payments import build_payment
from earnings_services.repositories import (
    BillingRepository,
    EarningsRepository,
    OrderRepository,
)

logger = get_logger("services.hub_billing")


def _terms_of(record: BillingRecord) -> HubBillingTerms:
    return HubBillingTerms(
        revenue_share_percent=record.revenue_share_fee.rate,
        platform_cpm_rate=record.platform_cpm_fee.rate,
    )


class HubBillingAggregator:
    """Creates, recomputes, finalizes and records payments against hub billing."""

    def __init__(
        self,
        orders: OrderRepository,
        earnings: EarningsRepository,
        billing: BillingRepository,
        config: EarningsConfig,
        clock: Clock | None = None,
    ):
        self._orders = orders
        self._earnings = earnings
        self._billing = billing
        self._config = config
        self._clock = clock or SystemClock()

    def _resolve_hub_id(self, campaign: Campaign, hub_id: str | None) -> str:
        return hub_id or campaign.hub_id

    def _fees(self, campaign_id: str, hub_id: str, terms: HubBillingTerms) -> HubFees:
        records = [r for r in self._earnings.list_by_campaign(campaign_id) if r.hub_id == hub_id]
        return compute_hub_fees(
            terms, rollup_earnings(records), places=self._config.money_places
        )

    def _existing(self, campaign_id: str, hub_id: str | None) -> BillingRecord | None:
        if hub_id is None:
            campaign = self._orders.get_campaign(campaign_id)
            if campaign is None:
                return None
            hub_id = campaign.hub_id
        return self._billing.get_by_hub_campaign(hub_id, campaign_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_estimate(
        self, campaign_id: str, hub_id: str | None = None
    ) -> BillingRecord | None:
        """
        Create the billing record for a campaign, or return the existing one.

        Returns None when the campaign is unknown or the hub has no billing
        terms.
        """
        with LogContext.bind(campaign_id=campaign_id, hub_id=hub_id):
            campaign = self._orders.get_campaign(campaign_id)
            if campaign is None:
                logger.info("hub_billing_campaign_not_found")
                return None
            hub_id = self._resolve_hub_id(campaign, hub_id)

            existing = self._billing.get_by_hub_campaign(hub_id, campaign_id)
            if existing is not None:
                return existing

            hub = self._orders.get_hub(hub_id)
            if hub is None or hub.billing is None:
                logger.info("hub_billing_config_missing", extra={"billing_hub_id": hub_id})
                return None

            fees = self._fees(campaign_id, hub_id, hub.billing)
            now = self._clock.now()
            record = BillingRecord(
                id=uuid4(),
                hub_id=hub_id,
                hub_name=hub.name,
                campaign_id=campaign_id,
                campaign_name=campaign.name,
                publisher_payouts=fees.publisher_payouts,
                revenue_share_fee=fees.revenue_share_fee,
                platform_cpm_fee=fees.platform_cpm_fee,
                total_fees=fees.total_fees,
                created_at=now,
                updated_at=now,
                campaign_start=campaign.start_date,
                campaign_end=campaign.end_date,
            )
            stored, created = self._billing.insert_if_absent(record)
            logger.info(
                "hub_billing_created" if created else "hub_billing_exists",
                extra={
                    "billing_id": str(stored.id),
                    "total_fees_estimated": str(stored.total_fees.estimated),
                    "publication_count": stored.publisher_payouts.publication_count,
                },
            )
            return stored

    def recompute_actual(
        self, campaign_id: str, hub_id: str | None = None
    ) -> BillingRecord | None:
        """Re-derive fees from the campaign's current earnings records."""
        with LogContext.bind(campaign_id=campaign_id, hub_id=hub_id):
            record = self._existing(campaign_id, hub_id)
            if record is None:
                logger.info("hub_billing_not_found")
                return None
            if record.finalized:
                return record

            fees = self._fees(campaign_id, record.hub_id, _terms_of(record))
            updated = self._billing.update_fees(record.id, fees, self._clock.now())
            logger.info(
                "hub_billing_recomputed",
                extra={
                    "billing_id": str(record.id),
                    "payouts_actual": str(fees.publisher_payouts.actual),
                    "total_fees_actual": str(fees.total_fees.actual),
                },
            )
            return updated

    def finalize(self, campaign_id: str, hub_id: str | None = None) -> BillingRecord | None:
        with LogContext.bind(campaign_id=campaign_id, hub_id=hub_id):
            record = self._existing(campaign_id, hub_id)
            if record is None:
                logger.info("hub_billing_not_found")
                return None
            if record.finalized:
                return record

            fees = self._fees(campaign_id, record.hub_id, _terms_of(record))
            finalized = self._billing.mark_finalized(record.id, fees, self._clock.now())
            logger.info(
                "hub_billing_finalized",
                extra={
                    "billing_id": str(record.id),
                    "total_fees_actual": str(fees.total_fees.actual),
                },
            )
            return finalized

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        billing_id: Any,
        amount: Decimal | int | str,
        *,
        paid_on: date | None = None,
        method: PaymentMethod | str | None = None,
        reference: str | None = None,
        invoice_number: str | None = None,
        notes: str | None = None,
        recorded_by: str | None = None,
    ) -> BillingRecord | None:
        """
        Append a hub payment to a billing record.

        Raises:
            InvalidPaymentAmountError: amount is not strictly positive.
        """
        payment = build_payment(
            self._clock,
            amount,
            paid_on=paid_on,
            method=method,
            reference=reference,
            invoice_number=invoice_number,
            notes=notes,
            recorded_by=recorded_by,
        )
        record_id = parse_record_id(billing_id)
        if record_id is None:
            logger.info("billing_id_malformed", extra={"billing_id": str(billing_id)})
            return None

        with LogContext.bind(actor_id=recorded_by):
            updated = self._billing.append_payment(record_id, payment)
            if updated is None:
                logger.info("hub_billing_not_found", extra={"billing_id": str(record_id)})
                return None
            logger.info(
                "hub_billing_payment_recorded",
                extra={
                    "billing_id": str(record_id),
                    "amount": str(payment.amount),
                    "invoice_number": payment.invoice_number,
                    "amount_paid": str(updated.amount_paid),
                    "payment_status": updated.payment_status.value,
                },
            )
            return updated

    def get_billing(self, billing_id: Any) -> BillingRecord | None:
        record_id = parse_record_id(billing_id)
        if record_id is None:
            return None
        return self._billing.get(record_id)

    def get_campaign_billing(
        self, campaign_id: str, hub_id: str | None = None
    ) -> BillingRecord | None:
        return self._existing(campaign_id, hub_id)
