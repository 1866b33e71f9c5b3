"""Mailjet notifier for "payment sent" emails."""
import html
import logging
from typing import Optional

import httpx

from payrail.config import Settings
from payrail.services.ports import DisbursedNotice, NotificationResult
from payrail.services.reporting import format_stx

logger = logging.getLogger(__name__)

NOTIFICATIONS_DISABLED = "notifications_disabled"


class MailjetNotifier:
    """
    Sends one email per disbursed leg through the Mailjet Send API v3.1.

    Delivery problems are returned as ``sent=False`` with an error string,
    never raised, so one recipient cannot affect another.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.settings.notifications_enabled

    def _build_message(self, notice: DisbursedNotice) -> dict:
        amount = format_stx(notice.amount)
        explorer = self.settings.explorer_link(notice.transaction_id)
        name = html.escape(notice.recipient_name)
        organization = html.escape(notice.organization_name)

        html_part = f"""
            <h2>Payment sent</h2>
            <p>Hi <strong>{name}</strong>,</p>
            <p><strong>{organization}</strong> sent you a payment.</p>
            <p style="font-size: 28px; font-weight: bold;">{amount} STX</p>
            <p>Transaction ID</p>
            <p style="font-family: monospace; word-break: break-all;">{notice.transaction_id}</p>
            <p><a href="{explorer}">View on Explorer</a></p>
            <p>The funds should appear in your wallet within 1-2 minutes.</p>
        """
        text_part = (
            f"Hi {notice.recipient_name},\n\n"
            f"{notice.organization_name} sent you {amount} STX.\n"
            f"Transaction: {notice.transaction_id}\n"
            f"{explorer}\n"
        )

        return {
            "Messages": [
                {
                    "From": {
                        "Email": self.settings.mailjet_from_email,
                        "Name": self.settings.mailjet_from_name,
                    },
                    "To": [{"Email": notice.recipient_contact, "Name": notice.recipient_name}],
                    "Subject": f"You received {amount} STX from {notice.organization_name}",
                    "TextPart": text_part,
                    "HTMLPart": html_part,
                    "CustomID": notice.transaction_id,
                }
            ]
        }

    async def notify_disbursed(self, notice: DisbursedNotice) -> NotificationResult:
        """Send the payment-sent email for one leg."""
        if not self.enabled:
            return NotificationResult(sent=False, error=NOTIFICATIONS_DISABLED)

        payload = self._build_message(notice)
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient(
                    base_url=self.settings.mailjet_base_url,
                    timeout=self.settings.mailjet_timeout_seconds,
                ) as client:
                    response = await self._post(client, payload)
        except httpx.HTTPError as e:
            logger.warning(f"Mailjet request failed for {notice.transaction_id}: {e}")
            return NotificationResult(sent=False, error=f"Network error: {e}")

        if response.status_code != 200:
            logger.warning(
                f"Mailjet rejected message for {notice.transaction_id}: "
                f"HTTP {response.status_code} {response.text[:200]}"
            )
            return NotificationResult(sent=False, error=f"HTTP {response.status_code}")

        try:
            status = response.json()["Messages"][0]["Status"]
        except (ValueError, KeyError, IndexError, TypeError):
            status = None
        if status != "success":
            logger.warning(f"Mailjet returned status {status!r} for {notice.transaction_id}")
            return NotificationResult(sent=False, error=f"Mailjet status: {status}")

        logger.info(f"Payment email sent for {notice.transaction_id}")
        return NotificationResult(sent=True)

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            "/v3.1/send",
            json=payload,
            auth=(self.settings.mailjet_api_key, self.settings.mailjet_secret_key),
        )
