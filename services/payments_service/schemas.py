import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.payments_service.models import PaymentGateway, PaymentStatus


class PaymentCreate(BaseModel):
    order_id: uuid.UUID
    # Falls back to PAYMENT_DEFAULT_GATEWAY when omitted
    gateway: Optional[PaymentGateway] = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class VerifyPaymentRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=255)


class RefundPaymentRequest(BaseModel):
    """Omit ``amount`` for a full refund."""

    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    gateway: PaymentGateway
    amount: Decimal
    currency: str
    status: PaymentStatus
    status_label: str
    reference: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_payment(cls, payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            gateway=payment.gateway,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            status_label=payment.status.label,
            reference=payment.reference,
            transaction_id=payment.transaction_id,
            failure_reason=payment.failure_reason,
            paid_at=payment.paid_at,
            refunded_at=payment.refunded_at,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class PaymentInitiationResponse(BaseModel):
    payment: PaymentResponse
    reference: Optional[str] = None
    # Provider specific: client_secret, approval_url, authorization_url...
    details: dict[str, Any] = {}


class PaymentVerificationResponse(BaseModel):
    payment: PaymentResponse
    status: PaymentStatus
    message: Optional[str] = None


class PaymentRefundResponse(BaseModel):
    payment: PaymentResponse
    refund_id: Optional[str] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None


class GatewayOption(BaseModel):
    value: PaymentGateway
    label: str
    currency: str
