"""
Model factories and test doubles.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    product = ProductFactory.create(stock_quantity=5)
    db_session.add(product)
    await db_session.commit()
"""

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_money
from libs.common.notifications import Notifier
from services.payments_service.config import GatewayConfig
from services.payments_service.gateways import (
    GatewayAPIError,
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
)
from services.payments_service.models import PaymentStatus

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


# ---------------------------------------------------------------------------
# Store Service
# ---------------------------------------------------------------------------


class CustomerFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Customer

        defaults = {
            "id": _uuid(),
            "name": "Test Customer",
            "email": _unique_email(),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Customer(**defaults)


class ProductFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Product

        defaults = {
            "id": _uuid(),
            "name": f"Test Product {uuid.uuid4().hex[:4]}",
            "sku": f"SKU-{uuid.uuid4().hex[:8].upper()}",
            "description": "A product for tests",
            "price": Decimal("10.00"),
            "stock_quantity": 10,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Product(**defaults)


class OrderFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Order, OrderStatus

        defaults = {
            "id": _uuid(),
            "total_amount": Decimal("100.00"),
            "status": OrderStatus.PENDING,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Order(**defaults)


# ---------------------------------------------------------------------------
# Payments Service
# ---------------------------------------------------------------------------


class PaymentFactory:
    @staticmethod
    def create(**overrides):
        from services.payments_service.models import Payment, PaymentGateway

        defaults = {
            "id": _uuid(),
            "gateway": PaymentGateway.STRIPE,
            "amount": Decimal("100.00"),
            "currency": "USD",
            "status": PaymentStatus.PENDING,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Payment(**defaults)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingNotifier(Notifier):
    """Records queued jobs instead of talking to Redis."""

    def __init__(self, fail: bool = False):
        self.jobs: list[tuple[str, str]] = []
        self.fail = fail

    async def _enqueue(self, job_name: str, entity_id: str) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.jobs.append((job_name, entity_id))


class FakeGateway(PaymentGatewayClient):
    """Scriptable provider. Errors raised from the hooks go through the
    base class, exactly like a real provider's would.
    """

    def __init__(self, name: str = "stripe"):
        super().__init__(GatewayConfig(enabled=True))
        self.name = name
        self.calls: list[tuple[str, object]] = []
        self.initiate_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None
        self.refund_error: Optional[Exception] = None
        self.verify_status = PaymentStatus.COMPLETED
        # None reports no amount
        self.verify_amount: Optional[Decimal] = None
        self.verify_metadata: dict = {}
        self.refund_amounts: list[Optional[Decimal]] = []
        # Seconds each verify/refund call takes, to hold requests in flight
        self.delay = 0.0

    async def _initiate(self, payment) -> InitiationResult:
        self.calls.append(("initiate", payment.id))
        if self.initiate_error is not None:
            raise self.initiate_error
        return InitiationResult(
            success=True,
            reference=f"{self.name}_ref_{payment.id.hex[:12]}",
            details={"gateway": self.name},
        )

    async def _verify(self, reference: str) -> VerificationResult:
        self.calls.append(("verify", reference))
        await asyncio.sleep(self.delay)
        if self.verify_error is not None:
            raise self.verify_error
        return VerificationResult(
            success=True,
            status=self.verify_status,
            reference=reference,
            transaction_id=f"txn_{reference}",
            amount=self.verify_amount,
            metadata=dict(self.verify_metadata),
        )

    async def _refund(self, payment, amount) -> RefundResult:
        self.calls.append(("refund", payment.id))
        self.refund_amounts.append(amount)
        await asyncio.sleep(self.delay)
        if self.refund_error is not None:
            raise self.refund_error
        return RefundResult(
            success=True,
            refund_id=f"re_{uuid.uuid4().hex[:10]}",
            amount=to_money(amount if amount is not None else payment.amount),
            status="succeeded",
        )

    def fail_next_initiation(self, message: str = "Card declined") -> None:
        self.initiate_error = GatewayAPIError(message, status_code=402)
