"""Payment operations exposed to the HTTP layer.

These wrap the orchestrator with lookups, preconditions and the Order
updates that follow a settled payment or a full refund.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from libs.common.currency import to_money
from libs.common.datetime_utils import minutes_ago, utc_now
from libs.common.errors import (
    ConflictError,
    GatewayError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from libs.common.events import EventBus, PaymentCompleted
from libs.common.logging import get_logger
from services.payments_service.gateways import (
    InitiationResult,
    RefundResult,
    VerificationResult,
)
from services.payments_service.models import Payment, PaymentGateway, PaymentStatus
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.store_service.models import Order, OrderStatus
from services.store_service.services.order_ops import require_order

logger = get_logger(__name__)

SETTLED_STATUSES = (
    PaymentStatus.COMPLETED,
    PaymentStatus.REFUNDED,
    PaymentStatus.PARTIALLY_REFUNDED,
)
VERIFIABLE_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.FAILED,
)
REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)

# A claim older than this belongs to a request that died mid-call
CLAIM_TTL_MINUTES = 5


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def _payment_query():
    return select(Payment).options(
        selectinload(Payment.order).selectinload(Order.customer)
    )


async def get_payment(db: AsyncSession, payment_id: uuid.UUID) -> Optional[Payment]:
    result = await db.execute(
        _payment_query()
        .where(Payment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_payment(db: AsyncSession, payment_id: uuid.UUID) -> Payment:
    payment = await get_payment(db, payment_id)
    if payment is None:
        raise NotFoundError(
            "Payment not found", details={"payment_id": str(payment_id)}
        )
    return payment


async def list_payments_for_order(
    db: AsyncSession, order_id: uuid.UUID
) -> list[Payment]:
    result = await db.execute(
        _payment_query()
        .where(Payment.order_id == order_id)
        .order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())


def list_available_gateways(orchestrator: PaymentOrchestrator) -> list[dict]:
    return orchestrator.get_available_gateways()


# ---------------------------------------------------------------------------
# Initiation
# ---------------------------------------------------------------------------


async def initiate_payment(
    db: AsyncSession,
    orchestrator: PaymentOrchestrator,
    *,
    order_id: uuid.UUID,
    gateway: PaymentGateway,
    amount: Decimal,
    currency: Optional[str] = None,
) -> tuple[Payment, InitiationResult]:
    """Create a payment for an order and start it with the gateway.

    1. Validate amount and gateway availability.
    2. Reject orders that are already paid or closed.
    3. Persist a pending payment.
    4. Hand it to the orchestrator; a failed initiation leaves the payment
       persisted as ``failed`` and raises ``GatewayError``.
    """
    gateway = PaymentGateway(gateway)
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if not orchestrator.is_enabled(gateway):
        raise ValidationError(
            f"Payment gateway {gateway.value} is not available",
            details={"gateway": gateway.value},
        )

    order = await require_order(db, order_id, for_update=True)

    completed = await db.execute(
        select(Payment.id).where(
            Payment.order_id == order.id,
            Payment.status == PaymentStatus.COMPLETED,
        )
    )
    if completed.first() is not None:
        raise ConflictError(
            "Payment already completed for this order",
            details={"order_id": str(order.id), "reason": "PAYMENT_ALREADY_PROCESSED"},
        )
    if order.status.is_final():
        raise InvalidStateTransitionError(
            f"Cannot take payment for an order in status {order.status.value}",
            details={"order_id": str(order.id), "current_status": order.status.value},
        )

    payment = Payment(
        order=order,
        gateway=gateway,
        amount=amount,
        currency=(currency or orchestrator.currency_for(gateway)).upper(),
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    await db.commit()
    logger.info(
        "Created payment %s for order %s (%s %s via %s)",
        payment.id,
        order.id,
        payment.amount,
        payment.currency,
        gateway.value,
    )

    result = await orchestrator.process_payment(db, payment)
    if not result.success:
        raise GatewayError(
            result.message or "Payment initiation failed",
            details={"payment_id": str(payment.id), "error": result.error},
        )
    return payment, result


# ---------------------------------------------------------------------------
# In-flight claims
# ---------------------------------------------------------------------------


async def _claim_payment(
    db: AsyncSession, payment_id: uuid.UUID, statuses: tuple[PaymentStatus, ...]
) -> bool:
    """Mark the payment as having a gateway call in flight.

    A single conditional UPDATE: it matches only while the payment is in one
    of ``statuses`` and holds no live claim, so exactly one of several
    concurrent callers gets a row back. Claims older than
    ``CLAIM_TTL_MINUTES`` are treated as abandoned.
    """
    result = await db.execute(
        update(Payment)
        .where(
            Payment.id == payment_id,
            Payment.status.in_(statuses),
            or_(
                Payment.claimed_at.is_(None),
                Payment.claimed_at < minutes_ago(CLAIM_TTL_MINUTES),
            ),
        )
        .values(claimed_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def _release_claim(db: AsyncSession, payment_id: uuid.UUID) -> Payment:
    """Clear the claim and return the payment as stored."""
    try:
        await db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not release claim on payment %s", payment_id)
    return await require_payment(db, payment_id)


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def _already_verified(payment: Payment) -> VerificationResult:
    logger.info("Payment %s already settled (%s)", payment.id, payment.status.value)
    return VerificationResult(
        success=True,
        message="Payment already verified",
        status=payment.status,
        reference=payment.reference,
        transaction_id=payment.transaction_id,
        amount=payment.amount,
    )


async def _advance_order_after_payment(db: AsyncSession, payment: Payment) -> None:
    try:
        order = await require_order(db, payment.order_id, for_update=True)
        if order.status is OrderStatus.PENDING:
            order.update_status(OrderStatus.PROCESSING)
            await db.commit()
            logger.info("Order %s moved to processing after payment %s", order.id, payment.id)
        else:
            logger.info(
                "Order %s left at %s after payment %s",
                order.id,
                order.status.value,
                payment.id,
            )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "Payment %s completed but order %s could not be advanced",
            payment.id,
            payment.order_id,
        )


async def verify_payment(
    db: AsyncSession,
    orchestrator: PaymentOrchestrator,
    *,
    payment_id: uuid.UUID,
    reference: str,
    events: Optional[EventBus] = None,
) -> tuple[Payment, VerificationResult]:
    """Confirm a payment with its gateway.

    Already-settled payments are returned as they are, without another
    gateway call. Only the caller holding the payment's claim talks to the
    gateway; a concurrent verify gets ``ConflictError``. A completed payment
    moves a pending order to processing and publishes ``PaymentCompleted``.
    """
    payment = await require_payment(db, payment_id)
    if payment.status in SETTLED_STATUSES:
        return payment, _already_verified(payment)

    if not await _claim_payment(db, payment.id, VERIFIABLE_STATUSES):
        payment = await require_payment(db, payment_id)
        if payment.status in SETTLED_STATUSES:
            return payment, _already_verified(payment)
        raise ConflictError(
            "Payment verification already in progress",
            details={"payment_id": str(payment.id), "status": payment.status.value},
        )

    payment = await require_payment(db, payment_id)
    # Release the read transaction before the gateway round trip
    await db.commit()
    try:
        result = await orchestrator.verify_payment(db, payment, reference)
    finally:
        payment = await _release_claim(db, payment_id)

    if not result.success:
        raise GatewayError(
            result.message or "Payment verification failed",
            details={"payment_id": str(payment.id), "error": result.error},
        )

    if payment.status is PaymentStatus.COMPLETED:
        await _advance_order_after_payment(db, payment)
        if events is not None:
            await events.publish(PaymentCompleted(payment=payment))

    return payment, result


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


async def refund_payment(
    db: AsyncSession,
    orchestrator: PaymentOrchestrator,
    *,
    payment_id: uuid.UUID,
    amount: Optional[Decimal] = None,
) -> tuple[Payment, RefundResult]:
    """Refund a settled payment; a full refund also refunds the order.

    ``amount`` defaults to the balance not yet refunded. The payment is
    claimed before the gateway call, so two concurrent refunds never both
    reach the provider.
    """
    if amount is not None:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be greater than zero")

    payment = await require_payment(db, payment_id)
    if not payment.can_be_refunded():
        raise ConflictError(
            "Payment cannot be refunded",
            details={"payment_id": str(payment.id), "status": payment.status.value},
        )
    refundable = payment.refundable_amount
    if amount is not None and amount > refundable:
        raise ValidationError(
            "Refund amount exceeds the refundable balance",
            details={
                "payment_id": str(payment.id),
                "requested": str(amount),
                "refundable": str(refundable),
            },
        )

    if not await _claim_payment(db, payment.id, REFUNDABLE_STATUSES):
        raise ConflictError(
            "Payment refund already in progress",
            details={"payment_id": str(payment.id)},
        )

    payment = await require_payment(db, payment_id)
    # Release the read transaction before the gateway round trip
    await db.commit()
    try:
        result = await orchestrator.refund_payment(db, payment, amount)
    finally:
        payment = await _release_claim(db, payment_id)

    if not result.success:
        raise GatewayError(
            result.message or "Refund failed",
            details={"payment_id": str(payment.id), "error": result.error},
        )

    if payment.status is PaymentStatus.REFUNDED:
        order = await require_order(db, payment.order_id, for_update=True)
        try:
            order.update_status(OrderStatus.REFUNDED)
        except InvalidStateTransitionError:
            logger.warning(
                "Payment %s fully refunded but order %s stays %s",
                payment.id,
                order.id,
                order.status.value,
            )
        else:
            await db.commit()

    return payment, result
