from .base import CheckoutRedirect, CheckoutRequest, PaymentEvent, PaymentProvider
from .factory import create_payment_provider

__all__ = [
    "CheckoutRedirect",
    "CheckoutRequest",
    "PaymentEvent",
    "PaymentProvider",
    "create_payment_provider",
]
