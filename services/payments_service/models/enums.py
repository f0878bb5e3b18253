"""Enum definitions for payments service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

    def is_successful(self) -> bool:
        return self is PaymentStatus.COMPLETED

    def can_be_refunded(self) -> bool:
        return self in (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)


class PaymentGateway(str, enum.Enum):
    """Supported providers, in declaration order."""

    STRIPE = "stripe"
    PAYPAL = "paypal"
    PAYSTACK = "paystack"

    @property
    def label(self) -> str:
        return _GATEWAY_LABELS[self]


_GATEWAY_LABELS = {
    PaymentGateway.STRIPE: "Stripe",
    PaymentGateway.PAYPAL: "PayPal",
    PaymentGateway.PAYSTACK: "Paystack",
}
