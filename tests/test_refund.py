"""Refund coordination for cancelled bookings."""

import pytest
from sqlalchemy import select

from snapfest.core.exceptions import ConflictError, RefundError, ValidationError
from snapfest.models.payment import Payment
from snapfest.services.booking_service import get_booking_or_404
from snapfest.utils.datetime_normaliser import utcnow
from tests.factories import make_booking, pay, race, seed_booking


async def cancelled_booking(db, services, package):
    """Booking paid 1888 then 2000, then cancelled."""
    booking = await make_booking(db, services, package)
    await pay(db, services, booking, 1888, txn="txn_deposit")
    await pay(db, services, booking, 2000, txn="txn_second")
    return await services.booking.cancel_booking(db, booking.id, "Event postponed")


class TestRefund:
    """Tests for refunds through the gateway."""

    async def test_full_refund(self, db, services, package):
        booking = await cancelled_booking(db, services, package)

        booking = await services.refund.refund(db, booking.id, "Event postponed")

        assert booking.refund_status == "PROCESSED"
        assert booking.refund_amount == 3888
        assert booking.amount_paid == 0
        assert services.gateway.refund_calls == [("txn_second", 2000), ("txn_deposit", 1888)]
        assert await services.payment.ledger_balance(db, booking.id) == 0
        assert "refund_processed" in services.notifier.templates()

    async def test_refund_rows_reference_originals(self, db, services, package):
        booking = await cancelled_booking(db, services, package)

        await services.refund.refund(db, booking.id, "Event postponed")

        entries = await services.payment.list_payments(db, booking.id)
        by_id = {e.id: e for e in entries}
        refunds = [e for e in entries if e.status == "REFUNDED"]
        assert sorted(
            (by_id[r.refund_of_id].gateway_transaction_id, r.amount) for r in refunds
        ) == [("txn_deposit", 1888), ("txn_second", 2000)]

    async def test_partial_refund_takes_newest_first(self, db, services, package):
        booking = await cancelled_booking(db, services, package)

        booking = await services.refund.refund(db, booking.id, "Goodwill", amount=500)

        assert booking.refund_status == "PROCESSED"
        assert booking.amount_paid == 3388
        assert services.gateway.refund_calls == [("txn_second", 500)]

    async def test_gateway_failure_keeps_accepted_portions(self, db, services, package):
        booking = await cancelled_booking(db, services, package)
        services.gateway.failing_refund_calls = {2}

        with pytest.raises(RefundError) as exc_info:
            await services.refund.refund(db, booking.id, "Event postponed")

        assert exc_info.value.status_code == 502
        assert booking.refund_status == "FAILED"
        assert booking.refund_failure_reason == "Gateway timeout"
        assert booking.refund_amount == 2000
        assert booking.amount_paid == 1888
        refunded = (await db.execute(select(Payment).where(Payment.status == "REFUNDED"))).scalars().all()
        assert [r.amount for r in refunded] == [2000]

    async def test_retry_after_failure_refunds_remainder(self, db, services, package):
        booking = await cancelled_booking(db, services, package)
        services.gateway.failing_refund_calls = {2}
        with pytest.raises(RefundError):
            await services.refund.refund(db, booking.id, "Event postponed")
        services.gateway.failing_refund_calls = set()

        booking = await services.refund.refund(db, booking.id, "Event postponed")

        assert booking.refund_status == "PROCESSED"
        assert booking.refund_amount == 3888
        assert booking.amount_paid == 0
        assert services.gateway.refund_calls[-1] == ("txn_deposit", 1888)

    async def test_second_refund_rejected(self, db, services, package):
        booking = await cancelled_booking(db, services, package)
        await services.refund.refund(db, booking.id, "Event postponed", amount=500)

        with pytest.raises(RefundError):
            await services.refund.refund(db, booking.id, "Again")

    async def test_requires_cancelled_booking(self, db, services, package):
        booking = await make_booking(db, services, package)
        await pay(db, services, booking, 1888)

        with pytest.raises(ConflictError):
            await services.refund.refund(db, booking.id, "Not cancelled")

    async def test_amount_over_paid(self, db, services, package):
        booking = await cancelled_booking(db, services, package)

        with pytest.raises(ValidationError):
            await services.refund.refund(db, booking.id, "Too much", amount=5000)

    async def test_nothing_paid(self, db, services, package):
        booking = await make_booking(db, services, package)
        await services.booking.cancel_booking(db, booking.id, "Called off")

        with pytest.raises(RefundError):
            await services.refund.refund(db, booking.id, "Nothing held")

    async def test_gateway_error_keeps_accepted_portions(self, db, services, package):
        booking = await cancelled_booking(db, services, package)
        services.gateway.raising_refund_calls = {2}

        with pytest.raises(RefundError):
            await services.refund.refund(db, booking.id, "Event postponed")

        assert booking.refund_status == "FAILED"
        assert booking.refund_failure_reason == "Connection reset by gateway"
        assert booking.refund_amount == 2000
        assert booking.gateway_claimed_at is None


class TestRefundClaims:
    """Tests for serialising refunds against other gateway calls."""

    async def test_claimed_booking_is_not_refunded(self, db, services, package):
        booking = await cancelled_booking(db, services, package)
        booking.gateway_claimed_at = utcnow()
        await db.flush()

        with pytest.raises(ConflictError):
            await services.refund.refund(db, booking.id, "Event postponed")
        assert services.gateway.refund_calls == []

    async def test_claim_is_released_after_refund(self, db, services, package):
        booking = await cancelled_booking(db, services, package)

        booking = await services.refund.refund(db, booking.id, "Event postponed")

        assert booking.gateway_claimed_at is None

    async def test_concurrent_refunds_reach_gateway_once(self, file_session_maker, services):
        booking_id = await seed_booking(file_session_maker, services, paid=9440, cancel=True)
        services.gateway.delay = 0.2

        async def refund(session):
            await services.refund.refund(session, booking_id, "Venue flooded")

        results = await race(file_session_maker, refund)

        assert results.count("ok") == 1
        assert [amount for _, amount in services.gateway.refund_calls] == [9440]
        async with file_session_maker() as session:
            booking = await get_booking_or_404(session, booking_id)
            assert booking.refund_status == "PROCESSED"
            assert booking.refund_amount == 9440
            assert booking.amount_paid == 0
