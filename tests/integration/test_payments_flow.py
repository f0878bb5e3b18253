"""Integration tests for payment operations across payments and orders.

Exercises ``payment_ops`` end to end with ``FakeGateway`` providers.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from libs.common.errors import (
    ConflictError,
    GatewayError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from libs.common.notifications import PAYMENT_SUCCESS_JOB
from services.payments_service.config import GatewayConfig, PaymentsConfig
from services.payments_service.gateways import GatewayAPIError
from services.payments_service.models import PaymentGateway, PaymentStatus
from services.payments_service.services import payment_ops
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.store_service.models import OrderStatus
from services.store_service.services.order_ops import get_order
from services.store_service.services.order_placement import OrderLine, place_order
from tests.factories import CustomerFactory, PaymentFactory, ProductFactory


async def _placed_order(db, price="50.00", quantity=2):
    customer = CustomerFactory.create()
    product = ProductFactory.create(price=Decimal(price), stock_quantity=10)
    db.add_all([customer, product])
    await db.commit()
    return await place_order(
        db, customer_id=customer.id, items=[OrderLine(product.id, quantity)]
    )


async def _initiated(db, orchestrator, order, gateway=PaymentGateway.STRIPE):
    payment, _ = await payment_ops.initiate_payment(
        db,
        orchestrator,
        order_id=order.id,
        gateway=gateway,
        amount=order.total_amount,
    )
    return payment


async def _set_order_status(db, order, status):
    order.status = status
    await db.commit()


# ---------------------------------------------------------------------------
# Initiation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_payment(db_session, orchestrator):
    order = await _placed_order(db_session)

    payment, result = await payment_ops.initiate_payment(
        db_session,
        orchestrator,
        order_id=order.id,
        gateway=PaymentGateway.STRIPE,
        amount=Decimal("100.00"),
    )

    assert result.success
    assert payment.status is PaymentStatus.PROCESSING
    assert payment.reference == result.reference
    assert payment.currency == "USD"
    assert payment.order_id == order.id


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_uses_gateway_currency(db_session, orchestrator):
    order = await _placed_order(db_session)

    payment = await _initiated(
        db_session, orchestrator, order, gateway=PaymentGateway.PAYSTACK
    )

    assert payment.currency == "NGN"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiation_failure_persists_failed_payment(
    db_session, orchestrator, fake_gateways
):
    fake_gateways[PaymentGateway.STRIPE].fail_next_initiation("Card declined")
    order = await _placed_order(db_session)

    with pytest.raises(GatewayError) as exc_info:
        await _initiated(db_session, orchestrator, order)

    payments = await payment_ops.list_payments_for_order(db_session, order.id)
    assert len(payments) == 1
    assert payments[0].status is PaymentStatus.FAILED
    assert payments[0].failure_reason == "Card declined"
    assert exc_info.value.details["payment_id"] == str(payments[0].id)

    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_rejects_bad_input(db_session, orchestrator):
    order = await _placed_order(db_session)

    with pytest.raises(ValidationError):
        await payment_ops.initiate_payment(
            db_session,
            orchestrator,
            order_id=order.id,
            gateway=PaymentGateway.STRIPE,
            amount=Decimal("0"),
        )

    with pytest.raises(NotFoundError):
        await payment_ops.initiate_payment(
            db_session,
            orchestrator,
            order_id=uuid.uuid4(),
            gateway=PaymentGateway.STRIPE,
            amount=Decimal("10.00"),
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_rejects_disabled_gateway(db_session, fake_gateways):
    orchestrator = PaymentOrchestrator(
        PaymentsConfig(stripe=GatewayConfig(enabled=False)), gateways=fake_gateways
    )
    order = await _placed_order(db_session)

    with pytest.raises(ValidationError):
        await _initiated(db_session, orchestrator, order)

    assert fake_gateways[PaymentGateway.STRIPE].calls == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_rejects_already_paid_order(db_session, orchestrator):
    order = await _placed_order(db_session)
    db_session.add(
        PaymentFactory.create(order_id=order.id, status=PaymentStatus.COMPLETED)
    )
    await db_session.commit()

    with pytest.raises(ConflictError) as exc_info:
        await _initiated(db_session, orchestrator, order)

    assert exc_info.value.details["reason"] == "PAYMENT_ALREADY_PROCESSED"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_rejects_closed_order(db_session, orchestrator):
    order = await _placed_order(db_session)
    await _set_order_status(db_session, order, OrderStatus.CANCELLED)

    with pytest.raises(InvalidStateTransitionError):
        await _initiated(db_session, orchestrator, order)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_initiate_rejects_completed_order_without_completed_payment(
    db_session, orchestrator
):
    order = await _placed_order(db_session)
    db_session.add(
        PaymentFactory.create(
            order_id=order.id, status=PaymentStatus.PARTIALLY_REFUNDED
        )
    )
    await _set_order_status(db_session, order, OrderStatus.COMPLETED)

    with pytest.raises(InvalidStateTransitionError):
        await _initiated(db_session, orchestrator, order)


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_completes_payment_and_advances_order(
    db_session, orchestrator, fake_gateways, event_bus, notifier
):
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)
    fake_gateways[PaymentGateway.STRIPE].verify_amount = Decimal("100.00")

    payment, result = await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )

    assert result.status is PaymentStatus.COMPLETED
    assert payment.status is PaymentStatus.COMPLETED
    assert payment.paid_at is not None
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PROCESSING
    assert notifier.jobs == [(PAYMENT_SUCCESS_JOB, str(payment.id))]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_pending_leaves_order_alone(
    db_session, orchestrator, fake_gateways, event_bus, notifier
):
    fake_gateways[PaymentGateway.STRIPE].verify_status = PaymentStatus.PENDING
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)

    payment, _ = await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )

    assert payment.status is PaymentStatus.PENDING
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PENDING
    assert notifier.jobs == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_amount_mismatch_fails_payment(
    db_session, orchestrator, fake_gateways, event_bus, notifier
):
    fake_gateways[PaymentGateway.STRIPE].verify_amount = Decimal("99.99")
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)

    payment, result = await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )

    assert result.status is PaymentStatus.FAILED
    assert payment.status is PaymentStatus.FAILED
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PENDING
    assert notifier.jobs == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_is_idempotent_once_settled(
    db_session, orchestrator, fake_gateways, event_bus, notifier
):
    gateway = fake_gateways[PaymentGateway.STRIPE]
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)

    await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )
    verify_calls = [call for call in gateway.calls if call[0] == "verify"]

    payment, result = await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )

    assert result.success
    assert result.message == "Payment already verified"
    assert payment.status is PaymentStatus.COMPLETED
    assert [call for call in gateway.calls if call[0] == "verify"] == verify_calls
    assert len(notifier.jobs) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_gateway_error_raises(db_session, orchestrator, fake_gateways):
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)
    fake_gateways[PaymentGateway.STRIPE].verify_error = GatewayAPIError("down")

    with pytest.raises(GatewayError):
        await payment_ops.verify_payment(
            db_session,
            orchestrator,
            payment_id=payment.id,
            reference=payment.reference,
        )

    payment = await payment_ops.require_payment(db_session, payment.id)
    assert payment.status is PaymentStatus.PROCESSING


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


async def _completed_payment(db, orchestrator, order):
    payment = await _initiated(db, orchestrator, order)
    payment, _ = await payment_ops.verify_payment(
        db, orchestrator, payment_id=payment.id, reference=payment.reference
    )
    return payment


@pytest.mark.asyncio
@pytest.mark.integration
async def test_full_refund_refunds_completed_order(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)
    order = await get_order(db_session, order.id)
    await _set_order_status(db_session, order, OrderStatus.COMPLETED)

    payment, result = await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id
    )

    assert result.success
    assert payment.status is PaymentStatus.REFUNDED
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.integration
async def test_partial_refund_leaves_order(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)

    payment, result = await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id, amount=Decimal("30.00")
    )

    assert result.amount == Decimal("30.00")
    assert payment.status is PaymentStatus.PARTIALLY_REFUNDED
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_full_refund_of_processing_order_refunds_order(
    db_session, orchestrator, event_bus
):
    """place -> initiate -> verify leaves the order processing; a full refund
    then refunds both the payment and the order."""
    customer = CustomerFactory.create()
    product = ProductFactory.create(price=Decimal("100.00"), stock_quantity=50)
    db_session.add_all([customer, product])
    await db_session.commit()

    order = await place_order(
        db_session, customer_id=customer.id, items=[OrderLine(product.id, 2)]
    )
    assert order.total_amount == Decimal("200.00")

    payment, _ = await payment_ops.initiate_payment(
        db_session,
        orchestrator,
        order_id=order.id,
        gateway=PaymentGateway.STRIPE,
        amount=Decimal("200.00"),
    )
    assert payment.status is PaymentStatus.PROCESSING
    assert "gateway_response" in payment.metadata_dict

    payment, _ = await payment_ops.verify_payment(
        db_session,
        orchestrator,
        payment_id=payment.id,
        reference=payment.reference,
        events=event_bus,
    )
    assert payment.status is PaymentStatus.COMPLETED
    assert payment.paid_at is not None
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PROCESSING

    payment, _ = await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id
    )

    assert payment.status is PaymentStatus.REFUNDED
    assert payment.refunded_at is not None
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.REFUNDED
    assert payment.claimed_at is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_rejects_unsettled_payment(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)

    with pytest.raises(ConflictError):
        await payment_ops.refund_payment(
            db_session, orchestrator, payment_id=payment.id
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_rejects_non_positive_amount(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)

    with pytest.raises(ValidationError):
        await payment_ops.refund_payment(
            db_session, orchestrator, payment_id=payment.id, amount=Decimal("-1")
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_partial_refunds_adding_up_refund_the_order(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)

    await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id, amount=Decimal("60.00")
    )
    payment, _ = await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id, amount=Decimal("40.00")
    )

    assert payment.status is PaymentStatus.REFUNDED
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_above_remaining_balance_is_rejected(
    db_session, orchestrator, fake_gateways
):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)
    await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id, amount=Decimal("60.00")
    )

    with pytest.raises(ValidationError) as exc_info:
        await payment_ops.refund_payment(
            db_session, orchestrator, payment_id=payment.id, amount=Decimal("60.00")
        )

    assert exc_info.value.details["refundable"] == "40.00"
    payment = await payment_ops.require_payment(db_session, payment.id)
    assert payment.status is PaymentStatus.PARTIALLY_REFUNDED
    assert payment.refunded_amount == Decimal("60.00")
    assert len(fake_gateways[PaymentGateway.STRIPE].refund_amounts) == 1


# ---------------------------------------------------------------------------
# Concurrent settlement
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_concurrent_refunds_reach_gateway_once(
    db_session, session_factory, orchestrator, fake_gateways
):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)
    gateway = fake_gateways[PaymentGateway.STRIPE]
    gateway.delay = 0.05

    async def attempt():
        async with session_factory() as session:
            return await payment_ops.refund_payment(
                session, orchestrator, payment_id=payment.id
            )

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    refunded = [r for r in results if isinstance(r, tuple)]
    rejected = [r for r in results if isinstance(r, ConflictError)]
    assert len(refunded) == 1
    assert len(rejected) == 1
    assert len(gateway.refund_amounts) == 1

    payment = await payment_ops.require_payment(db_session, payment.id)
    assert payment.status is PaymentStatus.REFUNDED
    assert len(payment.metadata_dict["refunds"]) == 1
    assert payment.claimed_at is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_concurrent_verifies_settle_once(
    db_session, session_factory, orchestrator, fake_gateways, event_bus, notifier
):
    order = await _placed_order(db_session)
    payment = await _initiated(db_session, orchestrator, order)
    gateway = fake_gateways[PaymentGateway.STRIPE]
    gateway.delay = 0.05

    async def attempt():
        async with session_factory() as session:
            return await payment_ops.verify_payment(
                session,
                orchestrator,
                payment_id=payment.id,
                reference=payment.reference,
                events=event_bus,
            )

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    assert all(
        isinstance(r, (tuple, ConflictError)) for r in results
    ), results
    assert len([call for call in gateway.calls if call[0] == "verify"]) == 1
    assert notifier.jobs == [(PAYMENT_SUCCESS_JOB, str(payment.id))]

    payment = await payment_ops.require_payment(db_session, payment.id)
    assert payment.status is PaymentStatus.COMPLETED
    assert payment.claimed_at is None
    order = await get_order(db_session, order.id)
    assert order.status is OrderStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stale_claim_does_not_block_refund(db_session, orchestrator):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)
    payment.claimed_at = datetime.now(timezone.utc) - timedelta(
        minutes=payment_ops.CLAIM_TTL_MINUTES + 1
    )
    await db_session.commit()

    payment, _ = await payment_ops.refund_payment(
        db_session, orchestrator, payment_id=payment.id
    )

    assert payment.status is PaymentStatus.REFUNDED
    assert payment.claimed_at is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_live_claim_blocks_refund(db_session, orchestrator, fake_gateways):
    order = await _placed_order(db_session)
    payment = await _completed_payment(db_session, orchestrator, order)
    payment.claimed_at = datetime.now(timezone.utc)
    await db_session.commit()

    with pytest.raises(ConflictError):
        await payment_ops.refund_payment(
            db_session, orchestrator, payment_id=payment.id
        )

    assert fake_gateways[PaymentGateway.STRIPE].refund_amounts == []
