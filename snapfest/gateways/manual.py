"""Manual payment gateway adapter for payments confirmed offline."""

import uuid

from snapfest.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)


class ManualGateway(PaymentGateway):
    """Manual gateway for transfers an admin has already confirmed.

    Charges and refunds always succeed; money moves outside the platform.
    """

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def charge(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Record a confirmed manual payment (always succeeds)."""
        return PaymentResult(
            success=True,
            transaction_id=f"manual_{uuid.uuid4().hex}",
            raw_response={
                "type": "bank_transfer",
                "status": "confirmed",
                "amount": amount,
                "currency": currency,
            },
        )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process manual refund (admin pays out by bank transfer)."""
        return RefundResult(
            success=True,
            refund_id=f"refund_{uuid.uuid4().hex}",
            raw_response={
                "type": "manual_refund",
                "note": "Admin must process refund manually via bank transfer",
                "amount": amount,
                "reason": reason,
            },
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Manual gateway doesn't have webhooks."""
        return None
