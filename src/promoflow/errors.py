"""Error taxonomy for PromoFlow operations.

Every error carries the message shown to the operator and the HTTP status
the API answers with. None of them are retried.
"""

from typing import Optional


class PromoFlowError(Exception):
    """Base class for all PromoFlow failures."""
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class InvalidCustomerId(PromoFlowError):
    status_code = 400
    default_message = "The scanned code is not a valid customer ID."


class NotFound(PromoFlowError):
    status_code = 404
    default_message = "Not found."


class CustomerNotFound(NotFound):
    default_message = "Customer ID not found."


class CampaignNotFound(NotFound):
    default_message = "Campaign not found."


class InventoryItemNotFound(NotFound):
    default_message = "Inventory item not found."


class NoActiveCampaign(PromoFlowError):
    status_code = 409
    default_message = "No active campaigns available for redemption."


class OutOfStock(PromoFlowError):
    status_code = 409
    default_message = "Reward is out of stock."

    def __init__(self, campaign_name: Optional[str] = None):
        self.campaign_name = campaign_name
        message = None
        if campaign_name:
            message = f"Reward is out of stock (Campaign: {campaign_name})."
        super().__init__(message)


class AlreadyRedeemed(PromoFlowError):
    status_code = 409
    default_message = "Customer has already redeemed this offer."

    def __init__(self, redeemed_on: Optional[str] = None):
        self.redeemed_on = redeemed_on
        message = None
        if redeemed_on:
            message = f"Customer has already redeemed this offer on {redeemed_on}."
        super().__init__(message)


class InvalidStock(PromoFlowError):
    status_code = 422
    default_message = 'Stock must be a non-negative number or "unlimited".'


class InvalidCampaignDates(PromoFlowError):
    status_code = 422
    default_message = "End date must be on or after the start date."


class EmailAlreadyRegistered(PromoFlowError):
    status_code = 409
    default_message = "This email is already registered to another customer."


class TransactionFailure(PromoFlowError):
    status_code = 500
    default_message = "The redemption could not be recorded."


class ExternalServiceFailure(PromoFlowError):
    status_code = 502
    default_message = "The AI model did not return a valid reward selection."
