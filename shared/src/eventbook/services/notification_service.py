"""Booking confirmation emails sent through SES.

The sink subscribes to BookingConfirmed on the event bus. It runs after the
booking has committed, so a delivery failure is raised to the bus (which
logs it) and never affects the booking itself.
"""

import html
import logging
from typing import Any

import boto3

from eventbook.models.events import BookingConfirmed

from .events import InProcessEventBus

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "Your booking for {event_date} is confirmed"


def format_amount(cents: int, currency: str = "eur") -> str:
    """Render minor units as "2,500.00 EUR"."""
    return f"{cents / 100:,.2f} {currency.upper()}"


class SesNotificationSink:
    """Sends confirmation emails for BookingConfirmed events."""

    def __init__(
        self,
        from_email: str,
        region: str | None = None,
        currency: str = "eur",
        client: Any | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            from_email: Verified SES sender address
            region: SES region. Defaults to the boto3 session region.
            currency: Currency code used when rendering totals
            client: Optional preconfigured SES client
        """
        self.from_email = from_email
        self.currency = currency
        self._ses = client or boto3.client("ses", region_name=region)

    def subscribe(self, bus: InProcessEventBus) -> None:
        bus.subscribe(BookingConfirmed, self.on_booking_confirmed)

    def on_booking_confirmed(self, event: BookingConfirmed) -> None:
        """Send the confirmation email for one booking.

        Args:
            event: Confirmed booking details

        Raises:
            botocore.exceptions.ClientError: If SES rejects the message
        """
        subject = SUBJECT_TEMPLATE.format(event_date=event.event_date.isoformat())
        text_body, html_body = self._render(event)

        self._ses.send_email(
            Source=self.from_email,
            Destination={"ToAddresses": [event.email]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {
                    "Text": {"Data": text_body, "Charset": "UTF-8"},
                    "Html": {"Data": html_body, "Charset": "UTF-8"},
                },
            },
        )
        logger.info(
            "Sent booking confirmation for %s to %s...",
            event.booking_id,
            event.email[:3],
        )

    def _render(self, event: BookingConfirmed) -> tuple[str, str]:
        total = format_amount(event.total_cents, self.currency)
        extras = ", ".join(event.add_on_titles) if event.add_on_titles else "None"

        text_body = (
            f"Hi {event.customer_name},\n\n"
            f"Your {event.package_title} booking on {event.event_date.isoformat()} is confirmed.\n"
            f"Add-ons: {extras}\n"
            f"Total paid: {total}\n"
            f"Booking reference: {event.booking_id}\n"
        )

        html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Your booking is confirmed</h2>
        <p>Hi {html.escape(event.customer_name)},</p>
        <p>
            Your <strong>{html.escape(event.package_title)}</strong> booking on
            <strong>{event.event_date.isoformat()}</strong> is confirmed.
        </p>
        <p>Add-ons: {html.escape(extras)}</p>
        <p>Total paid: {total}</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        <p style="color: #999; font-size: 12px;">Booking reference: {event.booking_id}</p>
    </body>
    </html>
    """
        return text_body, html_body
