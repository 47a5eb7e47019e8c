"""Payment ledger and payment status."""

import uuid
from datetime import timedelta

import pytest

from snapfest.core.exceptions import ConflictError, NotFoundError, PaymentError, ValidationError
from snapfest.domain.payment_state import PaymentMethod
from snapfest.gateways.base import GatewayEvent, GatewayType
from snapfest.services.booking_service import get_booking_or_404
from snapfest.utils.datetime_normaliser import utcnow
from tests.factories import make_booking, pay, race, seed_booking


class TestRecordPayment:
    """Tests for recording ledger entries."""

    async def test_deposit_then_balance(self, db, services, package):
        booking = await make_booking(db, services, package)

        booking = await pay(db, services, booking, 1888)
        assert booking.payment_status == "PARTIALLY_PAID"
        assert booking.online_payment_done is True

        booking = await pay(db, services, booking, 7552)
        assert booking.payment_status == "FULLY_PAID"
        assert booking.amount_paid == 9440
        assert booking.remaining_amount == 0

    async def test_below_deposit_stays_pending(self, db, services, package):
        booking = await make_booking(db, services, package)

        booking = await pay(db, services, booking, 1000)

        assert booking.payment_status == "PENDING_PAYMENT"
        assert booking.amount_paid == 1000

    async def test_failed_attempt(self, db, services, package):
        booking = await make_booking(db, services, package)

        booking = await services.payment.record_payment(
            db, booking.id, 1888, gateway="manual",
            gateway_transaction_id="txn_declined", succeeded=False, failure_reason="Insufficient funds",
        )

        assert booking.payment_status == "FAILED_PAYMENT"
        assert booking.amount_paid == 0
        entries = await services.payment.list_payments(db, booking.id)
        assert [(e.status, e.failure_reason) for e in entries] == [("FAILED", "Insufficient funds")]
        assert "payment_failed" in services.notifier.templates()

    async def test_success_after_failure(self, db, services, package):
        booking = await make_booking(db, services, package)
        await services.payment.record_payment(
            db, booking.id, 1888, gateway_transaction_id="txn_1", succeeded=False
        )

        booking = await pay(db, services, booking, 1888)

        assert booking.payment_status == "PARTIALLY_PAID"

    async def test_duplicate_transaction_is_ignored(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 1888, txn="pi_same")

        booking = await pay(db, services, booking, 1888, txn="pi_same")

        assert booking.amount_paid == 1888
        assert len(await services.payment.list_payments(db, booking.id)) == 1

    async def test_cash_payment_keeps_online_flag_clear(self, db, services, package):
        booking = await make_booking(db, services, package)

        booking = await services.payment.record_payment(
            db, booking.id, 1888, method=PaymentMethod.CASH, gateway_transaction_id="receipt_17"
        )

        assert booking.payment_status == "PARTIALLY_PAID"
        assert booking.online_payment_done is False

    @pytest.mark.parametrize("amount", [0, -5, 9441])
    async def test_rejects_bad_amount(self, db, services, package, amount):
        booking = await make_booking(db, services, package)

        with pytest.raises(ValidationError):
            await pay(db, services, booking, amount)

    async def test_rejects_fully_paid_booking(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 9440)

        with pytest.raises(ConflictError):
            await pay(db, services, booking, 1)

    async def test_rejects_cancelled_booking(self, db, services, package):
        booking = await make_booking(db, services, package)
        await services.booking.cancel_booking(db, booking.id, "cancelled")

        with pytest.raises(ConflictError):
            await pay(db, services, booking, 1888)

    async def test_ledger_balance_matches_amount_paid(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 1888)
        await services.payment.record_payment(
            db, booking.id, 500, gateway_transaction_id="txn_fail", succeeded=False
        )
        booking = await pay(db, services, booking, 2000)

        assert await services.payment.ledger_balance(db, booking.id) == booking.amount_paid == 3888

    async def test_success_after_failure_on_same_transaction(self, db, services, package):
        booking = await make_booking(db, services, package)
        await services.payment.record_payment(
            db, booking.id, 1888, gateway_transaction_id="pi_retry", succeeded=False
        )

        booking = await pay(db, services, booking, 1888, txn="pi_retry")

        assert booking.payment_status == "PARTIALLY_PAID"
        assert booking.amount_paid == 1888
        entries = await services.payment.list_payments(db, booking.id)
        assert [e.status for e in entries] == ["FAILED", "SUCCESS"]

    async def test_repeated_failure_is_recorded_once(self, db, services, package):
        booking = await make_booking(db, services, package)
        for _ in range(2):
            await services.payment.record_payment(
                db, booking.id, 1888, gateway_transaction_id="pi_declined", succeeded=False
            )

        assert len(await services.payment.list_payments(db, booking.id)) == 1

    async def test_failure_after_full_payment_keeps_status(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 9440)

        booking = await services.payment.record_payment(
            db, booking.id, 9440, gateway_transaction_id="pi_stale", succeeded=False, failure_reason="expired"
        )

        assert booking.payment_status == "FULLY_PAID"
        assert booking.amount_paid == 9440
        entries = await services.payment.list_payments(db, booking.id)
        assert [e.status for e in entries] == ["SUCCESS", "FAILED"]
        assert "payment_failed" not in services.notifier.templates()

    async def test_failure_on_cancelled_booking_is_recorded(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 1888)
        await services.booking.cancel_booking(db, booking.id, "cancelled")

        booking = await services.payment.record_payment(
            db, booking.id, 7552, gateway_transaction_id="pi_late", succeeded=False
        )

        assert booking.payment_status == "PARTIALLY_PAID"
        assert booking.vendor_status == "CANCELLED"


class TestChargeBooking:
    """Tests for gateway-initiated charges."""

    async def test_successful_charge(self, db, services, package):
        booking = await make_booking(db, services, package)

        outcome = await services.payment.charge_booking(db, booking.id, 1888, gateway="manual")

        assert outcome.pending is False
        assert outcome.booking.payment_status == "PARTIALLY_PAID"
        assert outcome.booking.gateway_claimed_at is None
        assert services.gateway.charges == [1888]
        entries = await services.payment.list_payments(db, booking.id)
        assert entries[0].gateway_transaction_id == outcome.transaction_id

    async def test_declined_charge_is_recorded(self, db, services, package):
        booking = await make_booking(db, services, package)
        services.gateway.charge_outcome = "declined"

        with pytest.raises(PaymentError):
            await services.payment.charge_booking(db, booking.id, 1888, gateway="manual")

        entries = await services.payment.list_payments(db, booking.id)
        assert [e.status for e in entries] == ["FAILED"]
        assert booking.payment_status == "FAILED_PAYMENT"

    async def test_charge_checks_balance_before_calling_gateway(self, db, services, package):
        booking = await make_booking(db, services, package)

        with pytest.raises(ValidationError):
            await services.payment.charge_booking(db, booking.id, 10000, gateway="manual")
        assert services.gateway.charges == []

    async def test_pending_charge_is_settled_by_webhook(self, db, services, package):
        booking = await make_booking(db, services, package)
        services.gateway.charge_outcome = "pending"

        outcome = await services.payment.charge_booking(db, booking.id, 9440, gateway="manual")

        assert outcome.pending is True
        assert outcome.client_secret == f"{outcome.transaction_id}_secret"
        assert outcome.booking.payment_status == "PENDING_PAYMENT"
        assert outcome.booking.gateway_claimed_at is None
        assert await services.payment.list_payments(db, booking.id) == []

        event = GatewayEvent(
            transaction_id=outcome.transaction_id, booking_id=str(booking.id), amount=9440, succeeded=True
        )
        await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)
        booking = await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)

        assert booking.payment_status == "FULLY_PAID"
        assert booking.amount_paid == 9440
        assert await services.payment.ledger_balance(db, booking.id) == 9440

    async def test_claimed_booking_is_not_charged(self, db, services, package):
        booking = await make_booking(db, services, package)
        booking.gateway_claimed_at = utcnow()
        await db.flush()

        with pytest.raises(ConflictError):
            await services.payment.charge_booking(db, booking.id, 1888, gateway="manual")
        assert services.gateway.charges == []

    async def test_expired_claim_is_taken_over(self, db, services, package):
        booking = await make_booking(db, services, package)
        booking.gateway_claimed_at = utcnow() - timedelta(hours=1)
        await db.flush()

        outcome = await services.payment.charge_booking(db, booking.id, 1888, gateway="manual")

        assert outcome.booking.payment_status == "PARTIALLY_PAID"
        assert services.gateway.charges == [1888]

    async def test_concurrent_charges_reach_gateway_once(self, file_session_maker, services):
        booking_id = await seed_booking(file_session_maker, services)
        services.gateway.delay = 0.2

        async def charge(session):
            await services.payment.charge_booking(session, booking_id, 9440, gateway="manual")

        results = await race(file_session_maker, charge)

        assert results.count("ok") == 1
        assert services.gateway.charges == [9440]
        async with file_session_maker() as session:
            booking = await get_booking_or_404(session, booking_id)
            assert booking.amount_paid == 9440
            assert booking.gateway_claimed_at is None


class TestGatewayEvents:
    """Tests for webhook event application."""

    async def test_duplicate_delivery_credits_once(self, db, services, package):
        booking = await make_booking(db, services, package)
        event = GatewayEvent(
            transaction_id="pi_123", booking_id=str(booking.id), amount=1888, succeeded=True
        )

        await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)
        booking = await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)

        assert booking.amount_paid == 1888
        assert booking.payment_status == "PARTIALLY_PAID"

    async def test_failure_event(self, db, services, package):
        booking = await make_booking(db, services, package)
        event = GatewayEvent(
            transaction_id="pi_456",
            booking_id=str(booking.id),
            amount=1888,
            succeeded=False,
            failure_reason="card_declined",
        )

        booking = await services.payment.handle_gateway_event(db, "manual", event)

        assert booking.payment_status == "FAILED_PAYMENT"

    async def test_failed_then_succeeded_event_credits_once(self, db, services, package):
        booking = await make_booking(db, services, package)
        failed = GatewayEvent(
            transaction_id="pi_3ds", booking_id=str(booking.id), amount=1888, succeeded=False
        )
        succeeded = GatewayEvent(
            transaction_id="pi_3ds", booking_id=str(booking.id), amount=1888, succeeded=True
        )

        await services.payment.handle_gateway_event(db, GatewayType.MANUAL, failed)
        await services.payment.handle_gateway_event(db, GatewayType.MANUAL, succeeded)
        await services.payment.handle_gateway_event(db, GatewayType.MANUAL, succeeded)
        booking = await services.payment.handle_gateway_event(db, GatewayType.MANUAL, failed)

        assert booking.amount_paid == 1888
        assert booking.payment_status == "PARTIALLY_PAID"

    async def test_stale_failure_event_for_fully_paid_booking(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 9440, txn="pi_paid")
        event = GatewayEvent(
            transaction_id="pi_abandoned",
            booking_id=str(booking.id),
            amount=9440,
            succeeded=False,
            failure_reason="card_declined",
        )

        booking = await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)

        assert booking.payment_status == "FULLY_PAID"
        entries = await services.payment.list_payments(db, booking.id)
        assert [e.status for e in entries] == ["SUCCESS", "FAILED"]

    async def test_malformed_booking_id(self, db, services):
        event = GatewayEvent(transaction_id="pi_789", booking_id="not-a-uuid", amount=1, succeeded=True)

        with pytest.raises(ValidationError):
            await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)

    async def test_unknown_booking(self, db, services):
        event = GatewayEvent(transaction_id="pi_000", booking_id=str(uuid.uuid4()), amount=1, succeeded=True)

        with pytest.raises(NotFoundError):
            await services.payment.handle_gateway_event(db, GatewayType.MANUAL, event)
