"""Test doubles and factories for bookings, vendors and payments."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from snapfest.core.exceptions import ConcurrencyError, ConflictError
from snapfest.domain.customization import CustomizationRequest
from snapfest.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)
from snapfest.models.catalog import Package
from snapfest.models.vendor import Vendor, VendorAvailability
from snapfest.services.assignment_service import AssignmentService
from snapfest.services.booking_service import BookingService
from snapfest.services.completion_service import CompletionService
from snapfest.services.payment_service import PaymentService
from snapfest.services.refund_service import RefundService


class FakeNotifier:
    """Records notifications instead of delivering them."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def send(self, channel: str, template: str, payload: dict) -> bool:
        self.sent.append((channel, template, payload))
        return True

    def templates(self) -> list[str]:
        return [template for _, template, _ in self.sent]

    def last_otp(self) -> str:
        for _, template, payload in reversed(self.sent):
            if template == "completion_otp":
                return payload["otp"]
        raise AssertionError("no OTP was sent")


class FakeGateway(PaymentGateway):
    """Gateway double with scriptable outcomes."""

    def __init__(self):
        # "succeeded", "declined" or "pending"
        self.charge_outcome = "succeeded"
        # Seconds each gateway call takes
        self.delay = 0.0
        # 1-based refund call numbers the gateway rejects
        self.failing_refund_calls: set[int] = set()
        # 1-based refund call numbers that raise instead of returning
        self.raising_refund_calls: set[int] = set()
        self.refund_calls: list[tuple[str, int]] = []
        self.charges: list[int] = []

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def charge(self, amount, currency, reference_id, description, metadata=None) -> PaymentResult:
        self.charges.append(amount)
        await asyncio.sleep(self.delay)
        if self.charge_outcome == "declined":
            return PaymentResult(success=False, error_message="Card declined")
        transaction_id = f"txn_{uuid.uuid4().hex}"
        if self.charge_outcome == "pending":
            return PaymentResult(
                success=False,
                pending=True,
                transaction_id=transaction_id,
                raw_response={"client_secret": f"{transaction_id}_secret", "status": "requires_action"},
            )
        return PaymentResult(success=True, transaction_id=transaction_id)

    async def process_refund(self, transaction_id, amount, reason) -> RefundResult:
        self.refund_calls.append((transaction_id, amount))
        await asyncio.sleep(self.delay)
        if len(self.refund_calls) in self.raising_refund_calls:
            raise RuntimeError("Connection reset by gateway")
        if len(self.refund_calls) in self.failing_refund_calls:
            return RefundResult(success=False, error_message="Gateway timeout")
        return RefundResult(success=True, refund_id=f"re_{uuid.uuid4().hex}")

    def verify_webhook(self, payload: bytes, signature: str) -> dict | None:
        return None


@dataclass
class Services:
    """Service graph wired to fakes."""

    notifier: FakeNotifier
    gateway: FakeGateway
    booking: BookingService
    payment: PaymentService
    assignment: AssignmentService
    completion: CompletionService
    refund: RefundService


def package_kwargs(**overrides) -> dict:
    """Package with one removable feature, one locked feature and two add-ons."""
    data = {
        "title": "Royal Wedding",
        "category": "WEDDING",
        "base_price": 5000,
        "per_guest_price": 200,
        "included_features": [
            {"id": "decor", "name": "Stage decor", "price": 1500, "is_removable": True, "is_required": False},
            {"id": "venue", "name": "Venue setup", "price": 3000, "is_removable": False, "is_required": True},
        ],
        "customization_options": [
            {"id": "dj", "name": "DJ", "price": 500, "category": "ENTERTAINMENT", "max_quantity": 3},
            {"id": "drone", "name": "Drone shoot", "price": 2500, "category": "PHOTOGRAPHY", "max_quantity": 1},
        ],
    }
    data.update(overrides)
    return data


def future_date(days: int = 30) -> date:
    return date.today() + timedelta(days=days)


async def make_vendor(db, availability=VendorAvailability.AVAILABLE, **overrides) -> Vendor:
    data = {
        "business_name": "Bloom Events",
        "email": "vendor@example.com",
        "phone": "+919800000001",
        "services_offered": ["WEDDING"],
        "availability": availability.value,
    }
    data.update(overrides)
    vendor = Vendor(**data)
    db.add(vendor)
    await db.flush()
    return vendor


async def make_booking(
    db,
    services: Services,
    package: Package,
    guests: int = 10,
    selected_options: dict | None = None,
    removed_feature_ids: tuple = (),
):
    """Checkout a booking; defaults price to 9440 (two DJ slots, ten guests)."""
    request = CustomizationRequest(
        selected_options={"dj": 2} if selected_options is None else selected_options,
        removed_feature_ids=tuple(removed_feature_ids),
    )
    return await services.booking.create_booking(
        db,
        user_id=uuid.uuid4(),
        package_id=package.id,
        event_date=future_date(),
        location="Jaipur Palace Grounds",
        guests=guests,
        customization=request,
        customer_email="customer@example.com",
        customer_phone="+919800000002",
    )


async def pay(db, services: Services, booking, amount: int, txn: str | None = None):
    return await services.payment.record_payment(
        db,
        booking.id,
        amount,
        gateway="manual",
        gateway_transaction_id=txn or f"txn_{uuid.uuid4().hex}",
    )


async def in_progress_booking(db, services: Services, package: Package, vendor: Vendor, paid: int):
    """Booking paid ``paid``, vendor assigned and service started."""
    booking = await make_booking(db, services, package)
    await pay(db, services, booking, paid)
    await services.assignment.assign_vendor(db, booking.id, vendor.id)
    return await services.booking.start_service(db, booking.id)


async def seed_booking(session_maker, services: Services, paid: int = 0, cancel: bool = False):
    """Commit a booking in its own session; returns its id."""
    async with session_maker() as db:
        package = Package(**package_kwargs())
        db.add(package)
        await db.flush()
        booking = await make_booking(db, services, package)
        if paid:
            await pay(db, services, booking, paid)
        if cancel:
            await services.booking.cancel_booking(db, booking.id, "Venue flooded")
        await db.commit()
        return booking.id


async def race(session_maker, operation) -> list[str]:
    """Run ``operation(session)`` twice at once, each in its own session.

    Returns "ok" or the name of the conflict raised, per attempt.
    """

    async def attempt() -> str:
        async with session_maker() as session:
            try:
                await operation(session)
                await session.commit()
            except (ConcurrencyError, ConflictError) as e:
                return type(e).__name__
            return "ok"

    return list(await asyncio.gather(attempt(), attempt()))
