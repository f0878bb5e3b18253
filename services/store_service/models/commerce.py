"""Store commerce models: orders and their line items."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import InvalidStateTransitionError
from libs.db.base import Base
from services.store_service.models.enums import OrderStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Orders.

    ``total_amount`` is written once at placement from the item subtotals.
    Status changes go through ``update_status``, which enforces the
    transition rules.
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id"), nullable=False, index=True
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="order_status_enum",
        ),
        default=OrderStatus.PENDING,
        server_default="pending",
        nullable=False,
    )

    # Soft delete
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="non_negative_total"),
        Index("ix_orders_customer_id_status", "customer_id", "status"),
    )

    # Relationships
    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    def calculate_total(self) -> Decimal:
        """Sum of item subtotals. Used to verify ``total_amount``."""
        return to_money(sum((item.subtotal for item in self.items), Decimal("0")))

    def can_transition_to(self, status: OrderStatus) -> bool:
        """Whether the order may move from its current status to ``status``.

        Orders never return to pending or "move" to the status they already
        have. A non-final order may move to any other status; a final order
        only along its declared next statuses (completed -> refunded).
        """
        current = self.status
        if status is OrderStatus.PENDING or status is current:
            return False
        if current.is_final():
            return status in current.next_statuses()
        return True

    def update_status(self, status: OrderStatus) -> None:
        status = OrderStatus(status)
        if not self.can_transition_to(status):
            raise InvalidStateTransitionError(
                f"Cannot change order status from {self.status.value} to {status.value}",
                details={
                    "order_id": str(self.id),
                    "current_status": self.status.value,
                    "requested_status": status.value,
                },
            )
        self.status = status

    def __repr__(self):
        return f"<Order {self.id} status={self.status} total={self.total_amount}>"


class OrderItem(Base):
    """Order line items. ``unit_price`` is a snapshot taken at placement."""

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (CheckConstraint("quantity > 0", name="positive_quantity"),)

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @classmethod
    def for_product(cls, product, quantity: int, position: int = 0) -> "OrderItem":
        """Build a line item priced at the product's current price."""
        unit_price = to_money(product.price)
        return cls(
            product_id=product.id,
            position=position,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=to_money(unit_price * quantity),
        )

    def __repr__(self):
        return f"<OrderItem product={self.product_id} qty={self.quantity}>"
