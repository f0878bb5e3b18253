"""Communications service tasks package."""

from services.communications_service.tasks.transactional import (
    send_order_confirmation,
    send_payment_success,
)

__all__ = [
    "send_order_confirmation",
    "send_payment_success",
]
