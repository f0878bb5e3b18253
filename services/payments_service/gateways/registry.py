"""Gateway registry keyed by the closed ``PaymentGateway`` enum."""

from typing import Optional

import httpx

from services.payments_service.config import PaymentsConfig
from services.payments_service.gateways.base import PaymentGatewayClient
from services.payments_service.gateways.paypal import PayPalGateway
from services.payments_service.gateways.paystack import PaystackGateway
from services.payments_service.gateways.stripe import StripeGateway
from services.payments_service.models import PaymentGateway

GATEWAY_CLASSES: dict[PaymentGateway, type[PaymentGatewayClient]] = {
    PaymentGateway.STRIPE: StripeGateway,
    PaymentGateway.PAYPAL: PayPalGateway,
    PaymentGateway.PAYSTACK: PaystackGateway,
}


def build_gateway_registry(
    config: PaymentsConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[PaymentGateway, PaymentGatewayClient]:
    """Instantiate one client per provider with its own configuration."""
    return {
        gateway: gateway_cls(
            config.for_gateway(gateway),
            timeout=config.timeout,
            callback_url=config.callback_url,
            transport=transport,
        )
        for gateway, gateway_cls in GATEWAY_CLASSES.items()
    }
