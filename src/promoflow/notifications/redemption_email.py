"""Redemption confirmation email.

Sent after a redemption record is created. Runs outside the redemption
transaction: a failure here is logged and never reaches the caller.
"""

import html
import logging
from typing import Optional

from promoflow.models import Customer, RedemptionRecord
from promoflow.notifications.email_client import SendGridClient

logger = logging.getLogger(__name__)

SUBJECT = "Your Reward Has Been Redeemed!"


def render_redemption_email(customer_name: str, record: RedemptionRecord) -> str:
    return f"""
      <p>Hello {html.escape(customer_name or "Customer")},</p>
      <p>Your reward has been successfully redeemed!</p>
      <p>Details:</p>
      <ul>
        <li>Reward: {html.escape(record.campaign_name)}</li>
        <li>Offer: {html.escape(record.reward_value)}</li>
      </ul>
      <p>Thank you!</p>
    """


class RedemptionNotifier:
    """Emails the customer when a redemption is recorded."""

    def __init__(self, api_key: Optional[str], from_email: str):
        self.api_key = api_key
        self.from_email = from_email

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def notify(self, customer: Customer, record: RedemptionRecord) -> bool:
        """Send the confirmation email. Returns True when it was sent."""
        if not self.enabled:
            logger.info("SENDGRID_API_KEY not set, skipping redemption email")
            return False
        if not customer.email:
            logger.info(f"Customer {customer.id} has no email, skipping redemption email")
            return False

        try:
            async with SendGridClient(self.api_key) as client:
                await client.send(
                    to_email=customer.email,
                    from_email=self.from_email,
                    subject=SUBJECT,
                    html=render_redemption_email(customer.name, record),
                    to_name=customer.name or None,
                )
            logger.info(f"Redemption email sent for {record.id}")
            return True
        except Exception as e:
            logger.error(f"Error sending redemption email for {record.id}: {e}")
            return False
