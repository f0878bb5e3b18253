"""Payments router: initiation, verification, refunds and gateway discovery."""

import uuid

from fastapi import APIRouter, Depends, Request, status
from libs.common.dependencies import get_event_bus
from libs.common.events import EventBus
from libs.common.rate_limit import payment_limit, read_limit
from libs.db.session import get_async_db
from services.payments_service.dependencies import get_orchestrator
from services.payments_service.schemas import (
    GatewayOption,
    PaymentCreate,
    PaymentInitiationResponse,
    PaymentRefundResponse,
    PaymentResponse,
    PaymentVerificationResponse,
    RefundPaymentRequest,
    VerifyPaymentRequest,
)
from services.payments_service.services import payment_ops
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.store_service.services.order_ops import require_order
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/gateways", response_model=list[GatewayOption])
async def list_gateways(
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Gateways that are enabled in configuration."""
    return payment_ops.list_available_gateways(orchestrator)


@router.post(
    "",
    response_model=PaymentInitiationResponse,
    status_code=status.HTTP_201_CREATED,
)
@payment_limit
async def create_payment(
    request: Request,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_async_db),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    payment, result = await payment_ops.initiate_payment(
        db,
        orchestrator,
        order_id=payload.order_id,
        gateway=payload.gateway or orchestrator.config.default_gateway,
        amount=payload.amount,
        currency=payload.currency,
    )
    return PaymentInitiationResponse(
        payment=PaymentResponse.from_payment(payment),
        reference=result.reference,
        details=result.details,
    )


@router.get("/order/{order_id}", response_model=list[PaymentResponse])
@read_limit
async def list_order_payments(
    request: Request,
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    await require_order(db, order_id)
    payments = await payment_ops.list_payments_for_order(db, order_id)
    return [PaymentResponse.from_payment(payment) for payment in payments]


@router.get("/{payment_id}", response_model=PaymentResponse)
@read_limit
async def get_payment(
    request: Request,
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    payment = await payment_ops.require_payment(db, payment_id)
    return PaymentResponse.from_payment(payment)


@router.post("/{payment_id}/verify", response_model=PaymentVerificationResponse)
@payment_limit
async def verify_payment(
    request: Request,
    payment_id: uuid.UUID,
    payload: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_async_db),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    events: EventBus = Depends(get_event_bus),
):
    payment, result = await payment_ops.verify_payment(
        db,
        orchestrator,
        payment_id=payment_id,
        reference=payload.reference,
        events=events,
    )
    return PaymentVerificationResponse(
        payment=PaymentResponse.from_payment(payment),
        status=payment.status,
        message=result.message,
    )


@router.post("/{payment_id}/refund", response_model=PaymentRefundResponse)
@payment_limit
async def refund_payment(
    request: Request,
    payment_id: uuid.UUID,
    payload: RefundPaymentRequest,
    db: AsyncSession = Depends(get_async_db),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    payment, result = await payment_ops.refund_payment(
        db, orchestrator, payment_id=payment_id, amount=payload.amount
    )
    return PaymentRefundResponse(
        payment=PaymentResponse.from_payment(payment),
        refund_id=result.refund_id,
        amount=result.amount,
        status=result.status,
    )
