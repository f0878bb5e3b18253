"""Customer operations.

Customers are referenced by orders; the order core only reads them. A
customer with orders cannot be deleted.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.errors import ConflictError, NotFoundError, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import Customer, Order

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "email", "phone")


async def list_customers(
    db: AsyncSession, *, search: Optional[str] = None, limit: int = 50, offset: int = 0
) -> list[Customer]:
    query = select(Customer)
    if search:
        pattern = f"%{search}%"
        query = query.where(Customer.name.ilike(pattern) | Customer.email.ilike(pattern))
    query = query.order_by(Customer.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_customer(db: AsyncSession, customer_id: uuid.UUID) -> Optional[Customer]:
    result = await db.execute(select(Customer).where(Customer.id == customer_id))
    return result.scalar_one_or_none()


async def require_customer(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await get_customer(db, customer_id)
    if customer is None:
        raise NotFoundError(
            f"Customer with ID {customer_id} not found",
            details={"customer_id": str(customer_id)},
        )
    return customer


async def _ensure_email_free(
    db: AsyncSession, email: str, exclude_id: Optional[uuid.UUID] = None
) -> None:
    query = select(Customer.id).where(func.lower(Customer.email) == email.lower())
    if exclude_id is not None:
        query = query.where(Customer.id != exclude_id)
    existing = await db.execute(query)
    if existing.first() is not None:
        raise ConflictError(
            f"A customer with email {email} already exists", details={"email": email}
        )


async def _commit_or_conflict(db: AsyncSession, email: str) -> None:
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            f"A customer with email {email} already exists", details={"email": email}
        ) from exc


async def create_customer(
    db: AsyncSession, *, name: str, email: str, phone: Optional[str] = None
) -> Customer:
    email = email.lower()
    await _ensure_email_free(db, email)

    customer = Customer(name=name, email=email, phone=phone)
    db.add(customer)
    await _commit_or_conflict(db, email)
    await db.refresh(customer)

    logger.info("Created customer %s", customer.id)
    return customer


async def update_customer(
    db: AsyncSession, customer_id: uuid.UUID, **changes
) -> Customer:
    customer = await require_customer(db, customer_id)
    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            raise ValidationError(
                f"Field '{field}' cannot be updated", details={"field": field}
            )
        if field == "email":
            value = value.lower()
            await _ensure_email_free(db, value, exclude_id=customer.id)
        setattr(customer, field, value)

    await _commit_or_conflict(db, customer.email)
    await db.refresh(customer)
    return customer


async def delete_customer(db: AsyncSession, customer_id: uuid.UUID) -> None:
    customer = await require_customer(db, customer_id)
    orders = await db.execute(
        select(func.count()).select_from(Order).where(Order.customer_id == customer.id)
    )
    if orders.scalar_one() > 0:
        raise ConflictError(
            "Customer has orders and cannot be deleted",
            details={"customer_id": str(customer.id)},
        )

    await db.delete(customer)
    await db.commit()
    logger.info("Deleted customer %s", customer_id)
