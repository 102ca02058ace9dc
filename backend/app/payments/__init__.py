"""Payment notification handling for orders."""

from .processor import PaymentProcessor

__all__ = ["PaymentProcessor"]
