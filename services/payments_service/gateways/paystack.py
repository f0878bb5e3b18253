"""Paystack (regional processor) gateway over the Transaction API."""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.currency import from_minor_units, to_minor_units
from services.payments_service.gateways.base import (
    GatewayAPIError,
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
)
from services.payments_service.models import Payment, PaymentStatus

PAYSTACK_BASE_URL = "https://api.paystack.co"

_PENDING_STATUSES = {"pending", "ongoing"}


def map_paystack_status(status: str) -> PaymentStatus:
    """Map a transaction status; anything unrecognised is a failure."""
    if status == "success":
        return PaymentStatus.COMPLETED
    if status in _PENDING_STATUSES:
        return PaymentStatus.PENDING
    return PaymentStatus.FAILED


def generate_reference() -> str:
    return f"PAY_{uuid.uuid4().hex[:16].upper()}"


class PaystackGateway(PaymentGatewayClient):
    name = "paystack"
    base_url = PAYSTACK_BASE_URL

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.credential('secret_key')}",
            "Content-Type": "application/json",
        }

    def _check_envelope(self, data: dict) -> dict:
        """Paystack wraps payloads as ``{"status": bool, "message", "data"}``."""
        if not data.get("status"):
            raise GatewayAPIError(
                message=data.get("message", "Paystack request failed"),
                response_data=data,
            )
        return data["data"]

    async def _initiate(self, payment: Payment) -> InitiationResult:
        customer = payment.order.customer
        body = {
            "amount": to_minor_units(payment.amount),
            "email": customer.email,
            "currency": payment.currency.upper(),
            "reference": generate_reference(),
            "metadata": {
                "order_id": str(payment.order_id),
                "payment_id": str(payment.id),
            },
        }
        if self.callback_url:
            body["callback_url"] = f"{self.callback_url}?gateway=paystack"

        async with self._client() as client:
            response = await client.post(
                "/transaction/initialize", json=body, headers=self._headers
            )
        data = self._json(response)
        self._raise_for_error(response, data)
        payload = self._check_envelope(data)

        return InitiationResult(
            success=True,
            reference=payload["reference"],
            details={
                "authorization_url": payload["authorization_url"],
                "access_code": payload["access_code"],
                "public_key": self.config.credential("public_key"),
                "gateway": self.name,
            },
        )

    async def _verify(self, reference: str) -> VerificationResult:
        async with self._client() as client:
            response = await client.get(
                f"/transaction/verify/{reference}", headers=self._headers
            )
        data = self._json(response)
        self._raise_for_error(response, data)
        payload = self._check_envelope(data)

        return VerificationResult(
            success=True,
            status=map_paystack_status(payload["status"]),
            reference=payload.get("reference", reference),
            transaction_id=str(payload["id"]),
            amount=from_minor_units(payload["amount"]),
            metadata=payload.get("metadata") or {},
        )

    async def _refund(
        self, payment: Payment, amount: Optional[Decimal]
    ) -> RefundResult:
        # Omitting amount refunds the unrefunded balance of the transaction
        body = {"transaction": payment.transaction_id or payment.reference}
        if amount is not None:
            body["amount"] = to_minor_units(amount)
        async with self._client() as client:
            response = await client.post("/refund", json=body, headers=self._headers)
        data = self._json(response)
        self._raise_for_error(response, data)
        payload = self._check_envelope(data)

        if amount is not None:
            refunded = from_minor_units(body["amount"])
        elif payload.get("amount") is not None:
            refunded = from_minor_units(payload["amount"])
        else:
            refunded = None
        return RefundResult(
            success=True,
            refund_id=str(payload["id"]),
            amount=refunded,
            status=payload.get("status"),
        )
