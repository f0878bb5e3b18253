"""Payment gateway clients."""

from services.payments_service.gateways.base import (
    GatewayAPIError,
    GatewayResult,
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
)
from services.payments_service.gateways.registry import build_gateway_registry

__all__ = [
    "GatewayAPIError",
    "GatewayResult",
    "InitiationResult",
    "PaymentGatewayClient",
    "RefundResult",
    "VerificationResult",
    "build_gateway_registry",
]
