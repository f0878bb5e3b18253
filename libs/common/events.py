"""In-process publish/subscribe for post-commit side effects.

Events are plain dataclasses recording facts that already happened. They
are published only after the transaction that produced them has committed,
so a rolled-back write never reaches a subscriber.

Usage:
    bus = EventBus()
    bus.subscribe(OrderPlaced, log_order_placed)
    await db.commit()
    await bus.publish(OrderPlaced(...))
"""

import inspect
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Union

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[..., Union[None, Awaitable[None]]]


@dataclass
class DomainEvent:
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    occurred_at: datetime = field(default_factory=utc_now, kw_only=True)


@dataclass
class OrderPlaced(DomainEvent):
    """A new order and its stock decrements were committed."""

    order: Any


@dataclass
class PaymentCompleted(DomainEvent):
    """A payment was verified as completed and its order advanced."""

    payment: Any


class EventBus:
    """Dispatches events to subscribers registered per event type.

    Subscriber failures are logged and swallowed: a published event is a
    committed fact, and a broken listener must not turn it into an error.
    """

    def __init__(self):
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event: DomainEvent) -> None:
        for handler in self.handlers_for(type(event)):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s %s",
                    getattr(handler, "__name__", repr(handler)),
                    type(event).__name__,
                    event.event_id,
                )
