"""PromoFlow - promotional campaigns, customer opt-ins, inventory and reward redemption."""

__version__ = "1.0.0"
