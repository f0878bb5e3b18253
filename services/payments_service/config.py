"""Payments configuration injected into the orchestrator and gateways."""

from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import Settings, get_settings
from services.payments_service.models.enums import PaymentGateway


@dataclass(frozen=True)
class GatewayConfig:
    enabled: bool = False
    credentials: dict[str, str] = field(default_factory=dict)
    currency: str = "USD"

    def credential(self, name: str) -> str:
        return self.credentials.get(name, "")


@dataclass(frozen=True)
class PaymentsConfig:
    stripe: GatewayConfig = field(default_factory=GatewayConfig)
    paypal: GatewayConfig = field(default_factory=GatewayConfig)
    paystack: GatewayConfig = field(default_factory=GatewayConfig)
    default_gateway: PaymentGateway = PaymentGateway.STRIPE
    default_currency: str = "USD"
    timeout: float = 10.0
    callback_url: Optional[str] = None

    def for_gateway(self, gateway: PaymentGateway) -> GatewayConfig:
        return getattr(self, PaymentGateway(gateway).value)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PaymentsConfig":
        settings = settings or get_settings()
        return cls(
            stripe=GatewayConfig(
                enabled=settings.STRIPE_ENABLED,
                credentials={
                    "secret_key": settings.STRIPE_SECRET_KEY,
                    "public_key": settings.STRIPE_PUBLIC_KEY,
                    "webhook_secret": settings.STRIPE_WEBHOOK_SECRET,
                },
                currency=settings.STRIPE_CURRENCY,
            ),
            paypal=GatewayConfig(
                enabled=settings.PAYPAL_ENABLED,
                credentials={
                    "client_id": settings.PAYPAL_CLIENT_ID,
                    "client_secret": settings.PAYPAL_CLIENT_SECRET,
                    "mode": settings.PAYPAL_MODE,
                },
                currency=settings.PAYPAL_CURRENCY,
            ),
            paystack=GatewayConfig(
                enabled=settings.PAYSTACK_ENABLED,
                credentials={
                    "secret_key": settings.PAYSTACK_SECRET_KEY,
                    "public_key": settings.PAYSTACK_PUBLIC_KEY,
                },
                currency=settings.PAYSTACK_CURRENCY,
            ),
            default_gateway=PaymentGateway(settings.PAYMENT_DEFAULT_GATEWAY),
            default_currency=settings.PAYMENT_DEFAULT_CURRENCY,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
            callback_url=settings.PAYMENT_CALLBACK_URL,
        )
