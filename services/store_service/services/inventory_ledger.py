"""Inventory ledger: the only code allowed to change ``Product.stock_quantity``.

Every mutation is a single conditional UPDATE evaluated by the database, so
the stock check and the write cannot be interleaved by another transaction.
Changes are flushed into the caller's transaction; committing is the
caller's job.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.errors import ValidationError
from libs.common.logging import get_logger
from services.store_service.models import Product

logger = get_logger(__name__)


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError(
            f"Quantity must be a positive integer, got {quantity}",
            details={"quantity": quantity},
        )


def has_stock(product: Product, quantity: int) -> bool:
    """True iff the product currently holds at least ``quantity`` units."""
    return product.stock_quantity >= quantity


async def decrease_stock(db: AsyncSession, product: Product, quantity: int) -> bool:
    """Take ``quantity`` units out of stock.

    Returns False, changing nothing, when the product does not hold enough
    stock at the moment the UPDATE runs. Callers must check the result.
    """
    _require_positive(quantity)

    result = await db.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(
            "Stock decrease refused for product %s (requested=%d)",
            product.id,
            quantity,
        )
        return False

    await db.refresh(product, attribute_names=["stock_quantity", "updated_at"])
    logger.debug(
        "Decreased stock for product %s by %d (now %d)",
        product.id,
        quantity,
        product.stock_quantity,
    )
    return True


async def increase_stock(db: AsyncSession, product: Product, quantity: int) -> None:
    """Add ``quantity`` units to stock (restocks, returns)."""
    _require_positive(quantity)

    await db.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(stock_quantity=Product.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(product, attribute_names=["stock_quantity", "updated_at"])
    logger.info(
        "Increased stock for product %s by %d (now %d)",
        product.id,
        quantity,
        product.stock_quantity,
    )


async def low_stock(db: AsyncSession, threshold: int = 10) -> list[Product]:
    """Active products with ``stock_quantity`` at or below ``threshold``."""
    result = await db.execute(
        select(Product)
        .where(Product.deleted_at.is_(None), Product.stock_quantity <= threshold)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
    )
    return list(result.scalars().all())
