"""ARQ worker for transactional emails.

Jobs are queued by libs.common.notifications.ArqNotifier.
Run with: arq services.communications_service.worker.WorkerSettings
"""

from libs.common.arq_config import COMMUNICATIONS_QUEUE, get_redis_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_send_order_confirmation(ctx: dict, order_id: str):
    """Send the order confirmation email."""
    from libs.db.config import AsyncSessionLocal
    from services.communications_service.tasks import send_order_confirmation

    logger.info("Running: send_order_confirmation for %s", order_id)
    return await send_order_confirmation(AsyncSessionLocal, order_id)


async def task_send_payment_success(ctx: dict, payment_id: str):
    """Send the payment receipt email."""
    from libs.db.config import AsyncSessionLocal
    from services.communications_service.tasks import send_payment_success

    logger.info("Running: send_payment_success for %s", payment_id)
    return await send_payment_success(AsyncSessionLocal, payment_id)


async def startup(ctx: dict):
    configure_logging()


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings."""

    redis_settings = get_redis_settings()
    queue_name = COMMUNICATIONS_QUEUE
    on_startup = startup

    functions = [
        task_send_order_confirmation,
        task_send_payment_success,
    ]
    max_tries = 3
