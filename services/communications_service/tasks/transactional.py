"""Transactional emails triggered by order and payment events."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from libs.common.logging import get_logger
from services.communications_service.templates.orders import (
    send_order_confirmation_email,
)
from services.communications_service.templates.payments import (
    send_payment_success_email,
)
from services.payments_service.models import Payment
from services.store_service.models import Order, OrderItem

logger = get_logger(__name__)


def _format_datetime(value) -> str:
    return value.strftime("%B %d, %Y %I:%M %p") if value else ""


async def send_order_confirmation(
    session_factory: async_sessionmaker[AsyncSession], order_id: str
) -> bool:
    """Email the customer a summary of a newly placed order."""
    async with session_factory() as db:
        result = await db.execute(
            select(Order)
            .where(Order.id == uuid.UUID(order_id))
            .options(
                selectinload(Order.customer),
                selectinload(Order.items).selectinload(OrderItem.product),
            )
        )
        order = result.scalar_one_or_none()

    if order is None:
        logger.warning("Order %s not found; confirmation email skipped", order_id)
        return False

    items = [
        {
            "name": item.product.name if item.product else "Product",
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "subtotal": item.subtotal,
        }
        for item in order.items
    ]
    return await send_order_confirmation_email(
        to_email=order.customer.email,
        customer_name=order.customer.name,
        order_id=str(order.id),
        order_date=_format_datetime(order.created_at),
        status=order.status.label,
        items=items,
        total=order.total_amount,
    )


async def send_payment_success(
    session_factory: async_sessionmaker[AsyncSession], payment_id: str
) -> bool:
    """Email the customer a receipt for a completed payment."""
    async with session_factory() as db:
        result = await db.execute(
            select(Payment)
            .where(Payment.id == uuid.UUID(payment_id))
            .options(selectinload(Payment.order).selectinload(Order.customer))
        )
        payment = result.scalar_one_or_none()

    if payment is None:
        logger.warning("Payment %s not found; receipt email skipped", payment_id)
        return False

    customer = payment.order.customer
    return await send_payment_success_email(
        to_email=customer.email,
        customer_name=customer.name,
        order_id=str(payment.order_id),
        transaction_id=payment.transaction_id or "",
        gateway=payment.gateway.label,
        amount=payment.amount,
        currency=payment.currency,
        paid_at=_format_datetime(payment.paid_at),
    )
