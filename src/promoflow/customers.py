"""Customer opt-in from the public landing page."""

import logging
from dataclasses import dataclass
from urllib.parse import quote

from promoflow.models import Customer
from promoflow.repository import PromoRepository

logger = logging.getLogger(__name__)

QR_CODE_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/"


def qr_code_url(customer_id: str, size: int = 200) -> str:
    """Image URL of the QR code that encodes the customer id."""
    return f"{QR_CODE_SERVICE_URL}?size={size}x{size}&data={quote(customer_id)}"


@dataclass
class OptInResult:
    customer: Customer
    created: bool

    @property
    def qr_code_url(self) -> str:
        return qr_code_url(self.customer.id)


def opt_in(
    repository: PromoRepository,
    name: str,
    email: str,
    phone: str = "",
    birthdate: str = "",
) -> OptInResult:
    """Return the customer registered under ``email``, creating one if needed."""
    customer = repository.find_customer_by_email(email)
    if customer:
        logger.info(f"Existing customer {customer.id} opted in again")
        return OptInResult(customer=customer, created=False)

    customer_data = {
        "name": name,
        "email": email,
        "phone": phone,
        "birthdate": birthdate,
        "redemptions": {},
    }
    customer_id = repository.add_customer(customer_data)
    return OptInResult(customer=Customer.from_document(customer_id, customer_data), created=True)
