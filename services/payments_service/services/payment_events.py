"""Post-commit subscribers for payment events."""

from libs.common.events import EventBus, PaymentCompleted
from libs.common.notifications import Notifier


def register_payment_handlers(bus: EventBus, notifier: Notifier) -> None:
    async def queue_payment_success(event: PaymentCompleted) -> None:
        await notifier.enqueue_payment_success(event.payment)

    bus.subscribe(PaymentCompleted, queue_payment_success)
