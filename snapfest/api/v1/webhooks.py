"""Webhook endpoints for payment gateways."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.api.deps import get_db, get_gateway_service, get_payment_service
from snapfest.core.exceptions import WebhookSignatureError
from snapfest.gateways.base import GatewayType
from snapfest.schemas.payment import WebhookAck
from snapfest.services.gateway_service import GatewayService
from snapfest.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{gateway}", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def gateway_webhook(
    gateway: GatewayType,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    gateways: Annotated[GatewayService, Depends(get_gateway_service)],
    payments: Annotated[PaymentService, Depends(get_payment_service)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
    x_signature: Annotated[str | None, Header(alias="X-Signature")] = None,
) -> WebhookAck:
    """Verify a gateway notification and apply it to the booking."""
    payload = await request.body()
    signature = stripe_signature or x_signature or ""

    event = gateways.verify_webhook(gateway, payload, signature)
    if event is None:
        raise WebhookSignatureError()

    payment_event = gateways.parse_event(gateway, event)
    if payment_event is None:
        return WebhookAck(received=True)

    booking = await payments.handle_gateway_event(db, gateway, payment_event)
    return WebhookAck(
        received=True,
        booking_id=booking.id,
        payment_status=booking.payment_status,
    )
