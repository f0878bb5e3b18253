"""Order lookups and status changes."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from libs.common.errors import InvalidStateTransitionError, NotFoundError
from libs.common.logging import get_logger
from services.store_service.models import Order, OrderItem, OrderStatus

logger = get_logger(__name__)


def _order_query():
    return (
        select(Order)
        .where(Order.deleted_at.is_(None))
        .options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.customer),
        )
    )


async def get_order(
    db: AsyncSession, order_id: uuid.UUID, *, for_update: bool = False
) -> Optional[Order]:
    """Load an order with its items, their products and the customer."""
    query = _order_query().where(Order.id == order_id)
    if for_update:
        query = query.with_for_update(of=Order)
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def require_order(
    db: AsyncSession, order_id: uuid.UUID, *, for_update: bool = False
) -> Order:
    order = await get_order(db, order_id, for_update=for_update)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": str(order_id)})
    return order


async def list_orders(
    db: AsyncSession,
    *,
    customer_id: Optional[uuid.UUID] = None,
    status: Optional[OrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    query = _order_query()
    if customer_id is not None:
        query = query.where(Order.customer_id == customer_id)
    if status is not None:
        query = query.where(Order.status == status)
    query = query.order_by(Order.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_order_status(
    db: AsyncSession, order_id: uuid.UUID, status: OrderStatus
) -> Order:
    """Move an order to ``status``.

    Orders in a final state cannot be changed through this path; refunds of
    completed orders go through the payment refund flow instead.
    """
    order = await require_order(db, order_id, for_update=True)
    previous = order.status

    try:
        if previous.is_final():
            raise InvalidStateTransitionError(
                f"Cannot update order in final state: {previous.value}",
                details={"order_id": str(order.id), "current_status": previous.value},
            )
        order.update_status(status)
    except InvalidStateTransitionError:
        await db.rollback()
        raise

    await db.commit()
    logger.info("Order %s status %s -> %s", order.id, previous.value, order.status.value)
    return order
