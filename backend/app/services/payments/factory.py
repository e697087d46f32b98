"""Factory for payment providers."""

from ...core.enums import PaymentProviderName
from ...core.exceptions import NotFoundException
from .base import PaymentProvider
from .stripe_provider import StripeProvider
from .vipps_provider import VippsProvider


def create_payment_provider(name: str) -> PaymentProvider:
    provider: PaymentProvider
    if name == PaymentProviderName.STRIPE.value:
        provider = StripeProvider()
    elif name == PaymentProviderName.VIPPS.value:
        provider = VippsProvider()
    else:
        raise NotFoundException("Unknown payment provider", details={"provider": name})
    return provider
