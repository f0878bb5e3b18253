"""PayPal (wallet redirect) gateway over the Orders v2 API."""

import time
from decimal import Decimal
from typing import Optional

import httpx

from libs.common.currency import to_money
from services.payments_service.gateways.base import (
    GatewayAPIError,
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
)
from services.payments_service.models import Payment, PaymentStatus

PAYPAL_LIVE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"

_PENDING_STATUSES = {"CREATED", "SAVED", "PAYER_ACTION_REQUIRED"}


def map_paypal_status(status: str) -> PaymentStatus:
    """Map an Orders v2 status; anything unrecognised is a failure.

    APPROVED orders are captured before mapping, so only a captured
    (COMPLETED) order counts as paid.
    """
    if status == "COMPLETED":
        return PaymentStatus.COMPLETED
    if status in _PENDING_STATUSES:
        return PaymentStatus.PENDING
    return PaymentStatus.FAILED


def _first_capture(order_data: dict) -> Optional[dict]:
    for unit in order_data.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures:
            return captures[0]
    return None


class PayPalGateway(PaymentGatewayClient):
    name = "paypal"

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        self.base_url = (
            PAYPAL_LIVE_URL
            if config.credential("mode") == "live"
            else PAYPAL_SANDBOX_URL
        )
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(
                self.config.credential("client_id"),
                self.config.credential("client_secret"),
            ),
        )
        data = self._json(response)
        self._raise_for_error(response, data)

        self._access_token = data["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + int(data.get("expires_in", 0)) - 60
        return self._access_token

    async def _headers(self, client: httpx.AsyncClient) -> dict:
        token = await self._get_access_token(client)
        return {"Authorization": f"Bearer {token}"}

    def _error_message(self, data: dict) -> Optional[str]:
        return data.get("message") or data.get("error_description")

    async def _initiate(self, payment: Payment) -> InitiationResult:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": str(payment.id),
                    "custom_id": str(payment.order_id),
                    "description": f"Order #{payment.order_id}",
                    "amount": {
                        "currency_code": payment.currency.upper(),
                        "value": f"{to_money(payment.amount):.2f}",
                    },
                }
            ],
        }
        if self.callback_url:
            body["application_context"] = {
                "return_url": f"{self.callback_url}?gateway=paypal",
                "cancel_url": f"{self.callback_url}?gateway=paypal&cancelled=1",
            }

        async with self._client() as client:
            response = await client.post(
                "/v2/checkout/orders", json=body, headers=await self._headers(client)
            )
        data = self._json(response)
        self._raise_for_error(response, data)

        approval_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        return InitiationResult(
            success=True,
            reference=data["id"],
            details={"approval_url": approval_url, "gateway": self.name},
        )

    async def _verify(self, reference: str) -> VerificationResult:
        async with self._client() as client:
            headers = await self._headers(client)
            response = await client.get(f"/v2/checkout/orders/{reference}", headers=headers)
            data = self._json(response)
            self._raise_for_error(response, data)

            if data["status"] == "APPROVED":
                # Buyer approved; funds move only once the order is captured
                response = await client.post(
                    f"/v2/checkout/orders/{reference}/capture",
                    json={},
                    headers=headers,
                )
                data = self._json(response)
                self._raise_for_error(response, data)

        capture = _first_capture(data)
        status = map_paypal_status(data["status"])
        if status is PaymentStatus.COMPLETED and capture is None:
            raise GatewayAPIError("PayPal order completed without a capture")

        metadata = {"paypal_order_id": data["id"]}
        amount = None
        if capture is not None:
            metadata["capture_id"] = capture["id"]
            amount = to_money(capture["amount"]["value"])

        return VerificationResult(
            success=True,
            status=status,
            reference=reference,
            transaction_id=capture["id"] if capture else data["id"],
            amount=amount,
            metadata=metadata,
        )

    async def _refund(
        self, payment: Payment, amount: Optional[Decimal]
    ) -> RefundResult:
        capture_id = payment.metadata_dict.get("capture_id")
        if not capture_id:
            raise GatewayAPIError("Capture ID not found for refund")

        body = {}
        if amount is not None:
            body["amount"] = {
                "currency_code": payment.currency.upper(),
                "value": f"{to_money(amount):.2f}",
            }

        async with self._client() as client:
            response = await client.post(
                f"/v2/payments/captures/{capture_id}/refund",
                json=body,
                headers=await self._headers(client),
            )
        data = self._json(response)
        self._raise_for_error(response, data)

        reported = (data.get("amount") or {}).get("value")
        if amount is not None:
            refunded = to_money(amount)
        elif reported is not None:
            refunded = to_money(reported)
        else:
            refunded = None
        return RefundResult(
            success=True,
            refund_id=data["id"],
            amount=refunded,
            status=data.get("status"),
        )
