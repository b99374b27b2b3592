"""Customer notifications."""

from .redemption_email import RedemptionNotifier

__all__ = ["RedemptionNotifier"]
