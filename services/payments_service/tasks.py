"""Background reconciliation tasks for payments service."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libs.common.datetime_utils import minutes_ago
from libs.common.errors import ServiceError
from libs.common.events import EventBus
from libs.common.logging import get_logger
from services.payments_service.models import Payment, PaymentStatus
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.payments_service.services.payment_ops import verify_payment

logger = get_logger(__name__)

STALE_AFTER_MINUTES = 10
BATCH_SIZE = 200


async def reconcile_processing_payments(
    session_factory: async_sessionmaker[AsyncSession],
    orchestrator: PaymentOrchestrator,
    events: EventBus | None = None,
) -> int:
    """Verify payments stuck in ``processing`` against their gateway.

    Covers buyers who paid but never came back through the verify call.
    Returns the number of payments that settled as completed.
    """
    cutoff = minutes_ago(STALE_AFTER_MINUTES)

    async with session_factory() as db:
        result = await db.execute(
            select(Payment.id, Payment.reference)
            .where(
                Payment.status == PaymentStatus.PROCESSING,
                Payment.reference.is_not(None),
                Payment.updated_at <= cutoff,
            )
            .order_by(Payment.updated_at.asc())
            .limit(BATCH_SIZE)
        )
        stale = list(result.all())

    completed = 0
    for payment_id, reference in stale:
        async with session_factory() as db:
            try:
                payment, _ = await verify_payment(
                    db,
                    orchestrator,
                    payment_id=payment_id,
                    reference=reference,
                    events=events,
                )
            except ServiceError as exc:
                logger.warning(
                    "Reconciliation of payment %s failed: %s (%s)",
                    payment_id,
                    exc.message,
                    exc.code.value,
                )
                continue

            if payment.status is PaymentStatus.COMPLETED:
                completed += 1

    if stale:
        logger.info(
            "Reconciled %d processing payments (%d completed)", len(stale), completed
        )
    return completed
