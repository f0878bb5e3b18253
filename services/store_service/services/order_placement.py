"""Order placement: validate every line, then write order, items and stock atomically.

Flow:
1. Reject malformed input (no lines, non-positive quantities).
2. Validation pass: load and lock each product, check stock for the
   cumulative quantity requested per product.
3. Mutation pass in the same transaction: create the pending order, its
   items with snapshotted prices, set the total, then decrement stock.
4. Commit. Any failure before this point rolls everything back.
5. Publish ``OrderPlaced`` to post-commit subscribers.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.currency import to_money
from libs.common.errors import (
    InsufficientStockError,
    NotFoundError,
    OrderCreationError,
    ServiceError,
    ValidationError,
)
from libs.common.events import EventBus, OrderPlaced
from libs.common.logging import get_logger
from services.store_service.models import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    Product,
)
from services.store_service.services.inventory_ledger import decrease_stock, has_stock
from services.store_service.services.order_ops import get_order

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: int


def _insufficient_stock(product: Product) -> InsufficientStockError:
    return InsufficientStockError(
        f"Insufficient stock for product: {product.name}. "
        f"Available: {product.stock_quantity}",
        details={
            "product_id": str(product.id),
            "available": product.stock_quantity,
        },
    )


async def _load_product_for_update(
    db: AsyncSession, product_id: uuid.UUID
) -> Optional[Product]:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id, Product.deleted_at.is_(None))
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def _validate_lines(
    db: AsyncSession, lines: list[OrderLine]
) -> dict[uuid.UUID, Product]:
    products: dict[uuid.UUID, Product] = {}
    requested: dict[uuid.UUID, int] = {}

    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            product = await _load_product_for_update(db, line.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product with ID {line.product_id} not found",
                    details={"product_id": str(line.product_id)},
                )
            products[line.product_id] = product

        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
        if not has_stock(product, requested[line.product_id]):
            raise _insufficient_stock(product)

    return products


async def place_order(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID,
    items: Iterable[OrderLine],
    events: Optional[EventBus] = None,
) -> Order:
    """Place an order for ``customer_id``.

    Returns the committed order with items, products and customer loaded.
    Raises ``ValidationError``, ``NotFoundError``, ``InsufficientStockError``
    or ``OrderCreationError``; in every failure case nothing is persisted.
    """
    lines = list(items)
    if not lines:
        raise ValidationError("An order must contain at least one item")
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(
                f"Quantity must be at least 1 for product {line.product_id}",
                details={"product_id": str(line.product_id), "quantity": line.quantity},
            )

    try:
        customer = await db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(
                "Customer not found", details={"customer_id": str(customer_id)}
            )

        products = await _validate_lines(db, lines)

        order = Order(
            customer_id=customer_id,
            status=OrderStatus.PENDING,
            total_amount=Decimal("0.00"),
        )
        db.add(order)

        total = Decimal("0.00")
        for position, line in enumerate(lines):
            item = OrderItem.for_product(
                products[line.product_id], line.quantity, position=position
            )
            order.items.append(item)
            total += item.subtotal
        order.total_amount = to_money(total)
        await db.flush()

        for line in lines:
            product = products[line.product_id]
            if not await decrease_stock(db, product, line.quantity):
                raise _insufficient_stock(product)

        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Order creation failed for customer %s", customer_id)
        raise OrderCreationError(
            "Failed to create order", details={"customer_id": str(customer_id)}
        ) from exc
    except Exception as exc:
        await db.rollback()
        logger.exception(
            "Unexpected error creating order for customer %s", customer_id
        )
        raise OrderCreationError(
            "Failed to create order", details={"customer_id": str(customer_id)}
        ) from exc

    order = await get_order(db, order.id)
    logger.info(
        "Placed order %s for customer %s (items=%d, total=%s)",
        order.id,
        customer_id,
        len(order.items),
        order.total_amount,
    )

    if events is not None:
        await events.publish(OrderPlaced(order=order))
    return order
