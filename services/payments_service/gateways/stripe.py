"""Stripe (card processor) gateway over the Payment Intents API."""

from decimal import Decimal
from typing import Optional

from libs.common.currency import from_minor_units, to_minor_units
from services.payments_service.gateways.base import (
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
)
from services.payments_service.models import Payment, PaymentStatus

STRIPE_BASE_URL = "https://api.stripe.com/v1"

_PENDING_STATUSES = {
    "processing",
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "requires_capture",
}


def map_stripe_status(status: str) -> PaymentStatus:
    """Map a PaymentIntent status; anything unrecognised is a failure."""
    if status == "succeeded":
        return PaymentStatus.COMPLETED
    if status in _PENDING_STATUSES:
        return PaymentStatus.PENDING
    return PaymentStatus.FAILED


class StripeGateway(PaymentGatewayClient):
    name = "stripe"
    base_url = STRIPE_BASE_URL

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.config.credential('secret_key')}"}

    def _error_message(self, data: dict) -> Optional[str]:
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return data.get("message")

    async def _initiate(self, payment: Payment) -> InitiationResult:
        form = {
            "amount": to_minor_units(payment.amount),
            "currency": payment.currency.lower(),
            "description": f"Order #{payment.order_id}",
            "metadata[order_id]": str(payment.order_id),
            "metadata[payment_id]": str(payment.id),
        }
        async with self._client() as client:
            response = await client.post(
                "/payment_intents", data=form, headers=self._headers
            )
        data = self._json(response)
        self._raise_for_error(response, data)

        return InitiationResult(
            success=True,
            reference=data["id"],
            details={
                "client_secret": data["client_secret"],
                "public_key": self.config.credential("public_key"),
                "gateway": self.name,
            },
        )

    async def _verify(self, reference: str) -> VerificationResult:
        async with self._client() as client:
            response = await client.get(
                f"/payment_intents/{reference}", headers=self._headers
            )
        data = self._json(response)
        self._raise_for_error(response, data)

        return VerificationResult(
            success=True,
            status=map_stripe_status(data["status"]),
            reference=reference,
            transaction_id=data["id"],
            amount=from_minor_units(data["amount"]),
            metadata=data.get("metadata") or {},
        )

    async def _refund(
        self, payment: Payment, amount: Optional[Decimal]
    ) -> RefundResult:
        # Without an amount Stripe refunds whatever is left on the intent
        form = {"payment_intent": payment.transaction_id or payment.reference}
        if amount is not None:
            form["amount"] = to_minor_units(amount)
        async with self._client() as client:
            response = await client.post("/refunds", data=form, headers=self._headers)
        data = self._json(response)
        self._raise_for_error(response, data)

        if amount is not None:
            refunded = from_minor_units(form["amount"])
        elif data.get("amount") is not None:
            refunded = from_minor_units(data["amount"])
        else:
            refunded = None
        return RefundResult(
            success=True,
            refund_id=data["id"],
            amount=refunded,
            status=data.get("status"),
        )
