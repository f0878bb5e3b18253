"""Fire-and-forget notification interface.

The core calls a ``Notifier`` after state has been committed. Implementations
must never raise into the caller: a notification that cannot be queued is
logged and dropped.
"""

import abc
from typing import Optional

from arq.connections import ArqRedis, create_pool

from libs.common.arq_config import COMMUNICATIONS_QUEUE, get_redis_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

ORDER_CONFIRMATION_JOB = "task_send_order_confirmation"
PAYMENT_SUCCESS_JOB = "task_send_payment_success"


class Notifier(abc.ABC):
    """Base notifier. Subclasses implement ``_enqueue``."""

    async def enqueue_order_confirmation(self, order) -> bool:
        return await self._safe_enqueue(ORDER_CONFIRMATION_JOB, str(order.id))

    async def enqueue_payment_success(self, payment) -> bool:
        return await self._safe_enqueue(PAYMENT_SUCCESS_JOB, str(payment.id))

    async def _safe_enqueue(self, job_name: str, entity_id: str) -> bool:
        try:
            await self._enqueue(job_name, entity_id)
        except Exception as e:
            logger.error(f"Failed to enqueue {job_name} for {entity_id}: {e}")
            return False
        return True

    @abc.abstractmethod
    async def _enqueue(self, job_name: str, entity_id: str) -> None: ...


class NullNotifier(Notifier):
    """Logs instead of queueing. Used when no queue is configured."""

    async def _enqueue(self, job_name: str, entity_id: str) -> None:
        logger.info("Notification %s for %s not queued (no queue)", job_name, entity_id)


class ArqNotifier(Notifier):
    """Queues notification jobs on the communications worker's arq queue.

    The Redis pool is created lazily on first use and shared afterwards.
    """

    def __init__(
        self, pool: Optional[ArqRedis] = None, queue_name: str = COMMUNICATIONS_QUEUE
    ):
        self._pool = pool
        self.queue_name = queue_name

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(get_redis_settings())
        return self._pool

    async def _enqueue(self, job_name: str, entity_id: str) -> None:
        pool = await self._get_pool()
        job = await pool.enqueue_job(job_name, entity_id, _queue_name=self.queue_name)
        logger.info(
            "Queued %s for %s on %s (job=%s)",
            job_name,
            entity_id,
            self.queue_name,
            job.job_id if job else "duplicate",
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
