"""Notification Service for email and SMS.

Handles the booking notification channels:
- Email (SendGrid)
- SMS (Twilio)

Delivery is best effort: failures are logged and reported as ``False``,
never raised into booking operations.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from snapfest.config import settings

logger = logging.getLogger(__name__)

EMAIL = "email"
SMS = "sms"

# template -> (subject, body); bodies are str.format()-ed with the payload
TEMPLATES: dict[str, tuple[str, str]] = {
    "booking_created": (
        "Booking received",
        "Your booking {booking_id} for {event_date} is confirmed pending payment. "
        "Total: {total_amount} paise.",
    ),
    "payment_received": (
        "Payment received",
        "We received {amount} paise for booking {booking_id}. "
        "Payment status: {payment_status}.",
    ),
    "payment_failed": (
        "Payment failed",
        "A payment for booking {booking_id} failed: {reason}. You can try again.",
    ),
    "vendor_assigned": (
        "Vendor assigned",
        "{vendor_name} has been assigned to booking {booking_id} on {event_date}.",
    ),
    "booking_assigned_to_vendor": (
        "New booking assigned",
        "You have been assigned booking {booking_id} on {event_date} at {location}.",
    ),
    "service_started": (
        "Your event service has started",
        "Your vendor has started the service for booking {booking_id}.",
    ),
    "completion_otp": (
        "Your completion code",
        "Share this code with your vendor once the service for booking {booking_id} "
        "is complete: {otp}. It expires in {ttl_minutes} minutes.",
    ),
    "booking_completed": (
        "Booking completed",
        "Booking {booking_id} is complete. Thank you for celebrating with us!",
    ),
    "booking_cancelled": (
        "Booking cancelled",
        "Booking {booking_id} has been cancelled. Reason: {reason}.",
    ),
    "refund_processed": (
        "Refund processed",
        "A refund of {amount} paise for booking {booking_id} has been processed.",
    ),
    "refund_failed": (
        "Refund delayed",
        "We could not complete the refund for booking {booking_id}. Our team will follow up.",
    ),
}


class NotificationService:
    """Service for sending notifications across all channels."""

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()

    def render(self, template: str, payload: dict[str, Any]) -> tuple[str, str]:
        """Render a template to (subject, body).

        Raises:
            KeyError: Unknown template or a placeholder missing from payload
        """
        subject, body = TEMPLATES[template]
        return subject, body.format(**payload)

    async def send(self, channel: str, template: str, payload: dict[str, Any]) -> bool:
        """Send a templated notification.

        Args:
            channel: ``email`` or ``sms``
            template: Key into ``TEMPLATES``
            payload: Template values plus ``to`` (address or phone number)

        Returns:
            bool: True if the provider accepted the message
        """
        to = payload.get("to")
        if not to:
            logger.info(f"Skipping {channel} '{template}': no recipient")
            return False

        subject, body = self.render(template, payload)

        if channel == EMAIL:
            return await self.send_email(to, subject, self._generate_email_html(subject, body), body)
        if channel == SMS:
            return await self.send_sms(to, body)

        logger.warning(f"Unknown notification channel '{channel}'")
        return False

    # ==================== EMAIL (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body

        Returns:
            bool: True if sent successfully
        """
        if not settings.sendgrid_api_key:
            return False

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }

        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(
                "https://api.sendgrid.com/v3/mail/send",
                headers=headers,
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.error(f"SendGrid request failed for {to_email}: {e}")
            return False

        if response.status_code not in (200, 202):
            logger.error(f"SendGrid rejected email to {to_email}: {response.status_code}")
            return False
        return True

    # ==================== SMS (TWILIO) ====================

    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> bool:
        """Send an SMS via Twilio.

        Args:
            to_phone: Recipient phone number (international format)
            message: SMS text

        Returns:
            bool: True if sent successfully
        """
        if not settings.twilio_account_sid or not settings.twilio_auth_token:
            return False

        url = f"https://api.twilio.com/2010-04-01/Accounts/{settings.twilio_account_sid}/Messages.json"
        auth = (settings.twilio_account_sid, settings.twilio_auth_token)
        data = {
            "To": to_phone,
            "From": settings.twilio_sms_number,
            "Body": message,
        }

        try:
            response = await self.http_client.post(url, auth=auth, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed for {to_phone}: {e}")
            return False

        if response.status_code != 201:
            logger.error(f"Twilio rejected SMS to {to_phone}: {response.status_code}")
            return False
        return True

    def _generate_email_html(self, title: str, body: str) -> str:
        """Generate simple HTML email content."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <div style="background-color: #fdf6f0; border-radius: 8px; padding: 24px;">
                <h1 style="color: #111827; font-size: 24px; margin-bottom: 16px;">{title}</h1>
                <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{body}</p>
            </div>
            <p style="color: #9ca3af; font-size: 12px; margin-top: 24px; text-align: center;">
                &copy; {datetime.now(UTC).year} {settings.app_name}. All rights reserved.
            </p>
        </body>
        </html>
        """


notification_service = NotificationService()


async def notify_customer(notifier: NotificationService, booking, template: str, **values: Any) -> None:
    """Send ``template`` to the booking's customer on every channel they have."""
    payload = {"booking_id": str(booking.id), **values}
    if booking.customer_email:
        await notifier.send(EMAIL, template, {**payload, "to": booking.customer_email})
    if booking.customer_phone:
        await notifier.send(SMS, template, {**payload, "to": booking.customer_phone})
