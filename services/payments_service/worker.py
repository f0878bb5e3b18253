"""ARQ worker for payments reconciliation."""

from arq import cron
from libs.common.arq_config import PAYMENTS_QUEUE, get_redis_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def startup(ctx: dict):
    from libs.common.events import EventBus
    from libs.common.notifications import ArqNotifier
    from services.payments_service.config import PaymentsConfig
    from services.payments_service.services.orchestrator import PaymentOrchestrator
    from services.payments_service.services.payment_events import (
        register_payment_handlers,
    )

    configure_logging()
    notifier = ArqNotifier(pool=ctx["redis"])
    events = EventBus()
    register_payment_handlers(events, notifier)

    ctx["orchestrator"] = PaymentOrchestrator(PaymentsConfig.from_settings())
    ctx["events"] = events


async def task_reconcile_processing_payments(ctx: dict):
    from libs.db.config import AsyncSessionLocal
    from services.payments_service.tasks import reconcile_processing_payments

    logger.info("Running: reconcile_processing_payments")
    return await reconcile_processing_payments(
        AsyncSessionLocal, ctx["orchestrator"], ctx["events"]
    )


class WorkerSettings:
    redis_settings = get_redis_settings()
    queue_name = PAYMENTS_QUEUE
    on_startup = startup

    functions = [task_reconcile_processing_payments]

    cron_jobs = [
        cron(
            task_reconcile_processing_payments,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
            run_at_startup=True,
        ),
    ]
