"""API dependencies for sessions, services and request metadata."""

from typing import Annotated

from fastapi import Depends, Header

from snapfest.database import get_db
from snapfest.services.assignment_service import AssignmentService, assignment_service
from snapfest.services.booking_service import BookingService, booking_service
from snapfest.services.completion_service import CompletionService, completion_service
from snapfest.services.gateway_service import GatewayService, gateway_service
from snapfest.services.payment_service import PaymentService, payment_service
from snapfest.services.refund_service import RefundService, refund_service

__all__ = [
    "get_db",
    "get_actor",
    "get_booking_service",
    "get_payment_service",
    "get_assignment_service",
    "get_completion_service",
    "get_refund_service",
    "get_gateway_service",
]


async def get_actor(
    x_actor: Annotated[str | None, Header(max_length=100)] = None,
) -> str:
    """Actor recorded in the audit log; authentication is handled upstream."""
    return x_actor or "system"


def get_booking_service() -> BookingService:
    return booking_service


def get_payment_service() -> PaymentService:
    return payment_service


def get_assignment_service() -> AssignmentService:
    return assignment_service


def get_completion_service() -> CompletionService:
    return completion_service


def get_refund_service() -> RefundService:
    return refund_service


def get_gateway_service() -> GatewayService:
    return gateway_service


Actor = Annotated[str, Depends(get_actor)]
