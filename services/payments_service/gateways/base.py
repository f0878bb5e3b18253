"""
Uniform contract over external payment providers.

Each provider implements the ``_initiate`` / ``_verify`` / ``_refund`` hooks
and may raise freely inside them. The public methods wrap the hooks and turn
transport errors, provider error responses and malformed payloads into
``success=False`` results, so callers never see an exception for an expected
provider failure.
"""

import abc
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Optional

import httpx

from libs.common.logging import get_logger
from services.payments_service.config import GatewayConfig
from services.payments_service.models import Payment, PaymentStatus

logger = get_logger(__name__)


# ============================================================================
# RESULTS
# ============================================================================


@dataclass
class GatewayResult:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str, error: Optional[str] = None):
        return cls(success=False, message=message, error=error or message)

    def to_dict(self) -> dict[str, Any]:
        data = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, PaymentStatus):
                value = value.value
            data[key] = value
        return data


@dataclass
class InitiationResult(GatewayResult):
    """``details`` holds the provider's redirect/token fields."""

    reference: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationResult(GatewayResult):
    status: Optional[PaymentStatus] = None
    reference: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult(GatewayResult):
    refund_id: Optional[str] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None


class GatewayAPIError(Exception):
    """A provider answered with an error response."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


# ============================================================================
# BASE GATEWAY
# ============================================================================

# Transport failures, provider error responses and malformed payloads
_EXPECTED_ERRORS = (
    httpx.HTTPError,
    GatewayAPIError,
    KeyError,
    TypeError,
    ValueError,
    ArithmeticError,
)


class PaymentGatewayClient(abc.ABC):
    """Base class for provider clients."""

    name: str = ""
    base_url: str = ""

    def __init__(
        self,
        config: GatewayConfig,
        *,
        timeout: float = 10.0,
        callback_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self.callback_url = callback_url
        self._transport = transport

    def get_name(self) -> str:
        return self.name

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text[:500]}
        return data if isinstance(data, dict) else {"data": data}

    def _raise_for_error(self, response: httpx.Response, data: dict) -> None:
        if response.is_success:
            return
        logger.error(f"{self.name} API error: {response.status_code} - {data}")
        raise GatewayAPIError(
            message=self._error_message(data) or f"HTTP {response.status_code}",
            status_code=response.status_code,
            response_data=data,
        )

    def _error_message(self, data: dict) -> Optional[str]:
        return data.get("message")

    def _failure(self, operation: str, exc: Exception, result_cls, subject: str):
        if isinstance(exc, httpx.TimeoutException):
            message = f"{self.name} request timed out"
        elif isinstance(exc, httpx.HTTPError):
            message = f"Could not reach {self.name}: {exc}"
        elif isinstance(exc, GatewayAPIError):
            message = exc.message
        else:
            message = f"Unexpected {self.name} response: {type(exc).__name__}"
        logger.error(f"{self.name} {operation} failed for {subject}: {message}")
        return result_cls.failed(f"Payment {operation} failed", message)

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def initiate(self, payment: Payment) -> InitiationResult:
        try:
            return await self._initiate(payment)
        except _EXPECTED_ERRORS as e:
            return self._failure("initiation", e, InitiationResult, f"payment {payment.id}")

    async def verify(self, reference: str) -> VerificationResult:
        try:
            return await self._verify(reference)
        except _EXPECTED_ERRORS as e:
            return self._failure(
                "verification", e, VerificationResult, f"reference {reference}"
            )

    async def refund(
        self, payment: Payment, amount: Optional[Decimal] = None
    ) -> RefundResult:
        try:
            return await self._refund(payment, amount)
        except _EXPECTED_ERRORS as e:
            return self._failure("refund", e, RefundResult, f"payment {payment.id}")

    async def get_status(self, reference: str) -> PaymentStatus:
        result = await self.verify(reference)
        if result.success and result.status is not None:
            return result.status
        return PaymentStatus.FAILED

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _initiate(self, payment: Payment) -> InitiationResult: ...

    @abc.abstractmethod
    async def _verify(self, reference: str) -> VerificationResult: ...

    @abc.abstractmethod
    async def _refund(
        self, payment: Payment, amount: Optional[Decimal]
    ) -> RefundResult: ...
