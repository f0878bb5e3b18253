"""Product catalogue operations.

Stock levels are never written here directly: creation sets the opening
balance and every later change goes through the inventory ledger.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import ConflictError, NotFoundError, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import Product
from services.store_service.services.inventory_ledger import increase_stock

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "description", "price")


async def list_products(
    db: AsyncSession, *, search: Optional[str] = None, limit: int = 50, offset: int = 0
) -> list[Product]:
    query = select(Product).where(Product.deleted_at.is_(None))
    if search:
        pattern = f"%{search}%"
        query = query.where(Product.name.ilike(pattern) | Product.sku.ilike(pattern))
    query = query.order_by(Product.name.asc()).limit(limit).offset(offset)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Optional[Product]:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def require_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await get_product(db, product_id)
    if product is None:
        raise NotFoundError(
            f"Product with ID {product_id} not found",
            details={"product_id": str(product_id)},
        )
    return product


async def get_product_by_sku(db: AsyncSession, sku: str) -> Optional[Product]:
    result = await db.execute(
        select(Product).where(Product.sku == sku, Product.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    sku: str,
    price: Decimal,
    stock_quantity: int = 0,
    description: Optional[str] = None,
) -> Product:
    if stock_quantity < 0:
        raise ValidationError("Stock quantity cannot be negative")

    existing = await db.execute(select(Product.id).where(Product.sku == sku))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(
            f"A product with SKU {sku} already exists", details={"sku": sku}
        )

    product = Product(
        name=name,
        sku=sku,
        price=to_money(price),
        stock_quantity=stock_quantity,
        description=description,
    )
    db.add(product)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            f"A product with SKU {sku} already exists", details={"sku": sku}
        ) from exc
    await db.refresh(product)

    logger.info("Created product %s (sku=%s, stock=%d)", product.id, sku, stock_quantity)
    return product


async def update_product(
    db: AsyncSession, product_id: uuid.UUID, **changes
) -> Product:
    """Update descriptive fields and price. Existing order items keep their price."""
    product = await require_product(db, product_id)
    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            raise ValidationError(
                f"Field '{field}' cannot be updated", details={"field": field}
            )
        if field == "price":
            value = to_money(value)
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return product


async def delete_product(db: AsyncSession, product_id: uuid.UUID) -> None:
    """Soft-delete a product. Historical order items still reference it."""
    product = await require_product(db, product_id)
    product.deleted_at = utc_now()
    await db.commit()
    logger.info("Soft-deleted product %s", product_id)


async def restock_product(
    db: AsyncSession, product_id: uuid.UUID, quantity: int
) -> Product:
    product = await require_product(db, product_id)
    await increase_stock(db, product, quantity)
    await db.commit()
    return product
