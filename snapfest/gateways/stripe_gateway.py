"""Stripe payment gateway adapter."""

import json
import logging

import stripe

from snapfest.config import settings
from snapfest.gateways.base import (
    GatewayEvent,
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)

SUCCEEDED_EVENT = "payment_intent.succeeded"
FAILED_EVENT = "payment_intent.payment_failed"

# PaymentIntent states that still await customer action or settlement
PENDING_INTENT_STATUSES = ("requires_action", "requires_confirmation", "requires_capture", "processing")


class StripeGateway(PaymentGateway):
    """Stripe payment gateway implementation."""

    def __init__(self, secret_key: str | None = None, webhook_secret: str | None = None):
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    async def charge(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create and confirm a Stripe PaymentIntent."""
        if not self.secret_key:
            return PaymentResult(
                success=False,
                error_message="Stripe not configured",
            )

        payment_method = (metadata or {}).get("payment_method")
        try:
            stripe.api_key = self.secret_key

            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                description=description,
                confirm=bool(payment_method),
                payment_method=payment_method,
                metadata={"booking_id": reference_id},
            )

            succeeded = intent.status == "succeeded"
            # Unconfirmed intents wait for the client to attach a payment method
            pending = intent.status in PENDING_INTENT_STATUSES or (
                intent.status == "requires_payment_method" and not payment_method
            )
            return PaymentResult(
                success=succeeded,
                pending=pending,
                transaction_id=intent.id,
                error_message=None if succeeded or pending else f"PaymentIntent {intent.status}",
                raw_response={
                    "client_secret": intent.client_secret,
                    "id": intent.id,
                    "status": intent.status,
                },
            )

        except stripe.StripeError as e:
            logger.warning(f"Stripe charge failed for booking {reference_id}: {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
            )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process Stripe refund."""
        if not self.secret_key:
            return RefundResult(
                success=False,
                error_message="Stripe not configured",
            )

        try:
            stripe.api_key = self.secret_key

            refund = stripe.Refund.create(
                payment_intent=transaction_id,
                amount=amount,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
            )

            return RefundResult(
                success=refund.status in ("succeeded", "pending"),
                refund_id=refund.id,
                error_message=None if refund.status in ("succeeded", "pending") else f"Refund {refund.status}",
                raw_response={"status": refund.status, "id": refund.id},
            )

        except stripe.StripeError as e:
            logger.warning(f"Stripe refund failed for {transaction_id}: {e}")
            return RefundResult(
                success=False,
                error_message=str(e),
            )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify Stripe webhook signature."""
        if not self.webhook_secret:
            return None

        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
            )
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            return None

        # Plain dict rather than a StripeObject
        return json.loads(payload)

    def parse_event(self, event: dict) -> GatewayEvent | None:
        """Map PaymentIntent succeeded/failed events."""
        if event["type"] not in (SUCCEEDED_EVENT, FAILED_EVENT):
            logger.info(f"Ignoring Stripe event type {event['type']}")
            return None

        intent = event["data"]["object"]
        booking_id = (intent.get("metadata") or {}).get("booking_id")
        if not booking_id:
            logger.warning(f"Stripe event {event['id']} has no booking_id metadata")
            return None

        succeeded = event["type"] == SUCCEEDED_EVENT
        failure = intent.get("last_payment_error") or {}
        return GatewayEvent(
            transaction_id=intent["id"],
            booking_id=booking_id,
            amount=intent.get("amount_received") if succeeded else intent.get("amount", 0),
            succeeded=succeeded,
            failure_reason=None if succeeded else failure.get("message", "Payment failed"),
            raw_event={"id": event["id"], "type": event["type"]},
        )
