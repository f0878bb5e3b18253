"""Enum definitions for store service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def can_be_cancelled(self) -> bool:
        return self in (OrderStatus.PENDING, OrderStatus.PROCESSING)

    def can_be_refunded(self) -> bool:
        return self is OrderStatus.COMPLETED

    def is_final(self) -> bool:
        return self in _FINAL_ORDER_STATUSES

    def next_statuses(self) -> tuple["OrderStatus", ...]:
        return _ORDER_TRANSITIONS[self]


_FINAL_ORDER_STATUSES = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
        OrderStatus.REFUNDED,
    }
)

_ORDER_TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (
        OrderStatus.COMPLETED,
        OrderStatus.FAILED,
        OrderStatus.CANCELLED,
    ),
    OrderStatus.COMPLETED: (OrderStatus.REFUNDED,),
    OrderStatus.CANCELLED: (),
    OrderStatus.FAILED: (),
    OrderStatus.REFUNDED: (),
}
