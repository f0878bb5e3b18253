"""Post-commit subscribers for order events."""

from libs.common.events import EventBus, OrderPlaced
from libs.common.logging import get_logger
from libs.common.notifications import Notifier

logger = get_logger(__name__)


def log_order_placed(event: OrderPlaced) -> None:
    order = event.order
    logger.info(
        "Order placed event handled: order=%s customer=%s total=%s items=%d",
        order.id,
        order.customer_id,
        order.total_amount,
        len(order.items),
    )


def register_order_handlers(bus: EventBus, notifier: Notifier) -> None:
    async def queue_order_confirmation(event: OrderPlaced) -> None:
        await notifier.enqueue_order_confirmation(event.order)

    bus.subscribe(OrderPlaced, log_order_placed)
    bus.subscribe(OrderPlaced, queue_order_confirmation)
