# Booking inquiries relayed to the merchant inbox via Mailjet Send API v3.1.

from __future__ import annotations

from html import escape

import httpx
import structlog

from storefront.config import Settings
from storefront.exceptions import EmailDeliveryError
from storefront.schemas import EmailRequest

logger = structlog.get_logger(__name__)

SUBJECT = "Booking Inquiry"


def render_inquiry(inquiry: EmailRequest) -> str:
    name = escape(inquiry.name)
    return (
        f"<big>Email from {name}:</big><br/><br/>"
        f"<big><i>&emsp;{escape(inquiry.body)}</i></big><br/><br/>"
        f"<big>You can reach {name} back at {escape(inquiry.sender)}</big>"
    )


class Mailer:
    """Async Mailjet client. One pooled httpx.AsyncClient per app."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(
            auth=(
                settings.mailjet_api_key.get_secret_value(),
                settings.mailjet_api_secret.get_secret_value(),
            ),
            timeout=10.0,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send_inquiry(self, inquiry: EmailRequest) -> None:
        s = self._settings
        message = {
            "From": {"Email": s.sender_email, "Name": s.booking_name},
            "To": [{"Email": s.booking_email}],
            "ReplyTo": {"Email": inquiry.sender, "Name": inquiry.name},
            "Subject": SUBJECT,
            "HTMLPart": render_inquiry(inquiry),
        }
        try:
            response = await self._client.post(s.mailjet_url, json={"Messages": [message]})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("email_send_failed", error=str(e))
            raise EmailDeliveryError() from e
        logger.info("email_sent", reply_to=inquiry.sender)
