"""Payment gateway service.

Routes payment operations to the appropriate gateway adapter.
No business logic here - only gateway coordination.
"""

from snapfest.config import settings
from snapfest.gateways.base import (
    GatewayEvent,
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)
from snapfest.gateways.manual import ManualGateway
from snapfest.gateways.stripe_gateway import StripeGateway


def _is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def _assert_production_for_real_gateway(gateway_type: GatewayType) -> None:
    """Block real gateway operations in non-production environments.

    Raises:
        RuntimeError: If attempting real gateway operation outside production
    """
    if gateway_type == GatewayType.STRIPE and not _is_production():
        if settings.stripe_secret_key and settings.stripe_secret_key.startswith("sk_test_"):
            return
        raise RuntimeError(
            f"Cannot execute real {gateway_type.value} gateway operations "
            f"in {settings.environment} environment. Set ENVIRONMENT=production or use a test key."
        )


class GatewayService:
    """Service for managing payment gateway operations."""

    def __init__(self, gateways: dict[GatewayType, PaymentGateway] | None = None):
        self._gateways: dict[GatewayType, PaymentGateway] = dict(gateways or {})

    def _get_gateway(self, gateway_type: str | GatewayType) -> PaymentGateway:
        """Get or create gateway instance."""
        if isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type)
            except ValueError:
                gateway_type = GatewayType.MANUAL

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.STRIPE:
                self._gateways[gateway_type] = StripeGateway()
            else:
                self._gateways[gateway_type] = ManualGateway()

        return self._gateways[gateway_type]

    async def charge(
        self,
        gateway_type: str | GatewayType,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Charge via specified gateway."""
        gateway = self._get_gateway(gateway_type)
        _assert_production_for_real_gateway(gateway.gateway_type)
        return await gateway.charge(
            amount=amount,
            currency=currency,
            reference_id=reference_id,
            description=description,
            metadata=metadata,
        )

    async def process_refund(
        self,
        gateway_type: str | GatewayType,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process refund via gateway."""
        gateway = self._get_gateway(gateway_type)
        _assert_production_for_real_gateway(gateway.gateway_type)
        return await gateway.process_refund(
            transaction_id=transaction_id,
            amount=amount,
            reason=reason,
        )

    def verify_webhook(
        self,
        gateway_type: str | GatewayType,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify webhook from gateway."""
        gateway = self._get_gateway(gateway_type)
        return gateway.verify_webhook(payload, signature)

    def parse_event(self, gateway_type: str | GatewayType, event: dict) -> GatewayEvent | None:
        """Normalise a verified webhook event."""
        gateway = self._get_gateway(gateway_type)
        return gateway.parse_event(event)


# Singleton instance
gateway_service = GatewayService()
