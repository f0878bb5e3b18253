"""Payment orchestrator: drives a Payment through its gateway.

The orchestrator owns Payment state only. Advancing the linked Order and
sending notifications is left to the calling operation
(services.payments_service.services.payment_ops).
"""

from decimal import Decimal
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.config import PaymentsConfig
from services.payments_service.gateways import (
    InitiationResult,
    PaymentGatewayClient,
    RefundResult,
    VerificationResult,
    build_gateway_registry,
)
from services.payments_service.models import Payment, PaymentGateway, PaymentStatus

logger = get_logger(__name__)


class PaymentOrchestrator:
    def __init__(
        self,
        config: PaymentsConfig,
        gateways: Optional[Mapping[PaymentGateway, PaymentGatewayClient]] = None,
    ):
        self.config = config
        self._gateways = dict(gateways) if gateways is not None else build_gateway_registry(config)

    def gateway_for(self, gateway: PaymentGateway) -> PaymentGatewayClient:
        """Registry lookup. A missing entry is a wiring bug and raises KeyError."""
        return self._gateways[PaymentGateway(gateway)]

    def is_enabled(self, gateway: PaymentGateway) -> bool:
        return self.config.for_gateway(gateway).enabled

    def currency_for(self, gateway: PaymentGateway) -> str:
        return self.config.for_gateway(gateway).currency or self.config.default_currency

    def get_available_gateways(self) -> list[dict]:
        return [
            {
                "value": gateway.value,
                "label": gateway.label,
                "currency": self.currency_for(gateway),
            }
            for gateway in PaymentGateway
            if self.is_enabled(gateway)
        ]

    async def _commit(self, db: AsyncSession, payment: Payment, operation: str) -> bool:
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(
                "Failed to persist payment %s after %s", payment.id, operation
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    async def process_payment(
        self, db: AsyncSession, payment: Payment
    ) -> InitiationResult:
        """Start the payment with its gateway. Gateway and storage failures
        come back as a failed result.

        Success leaves the payment ``processing`` with the gateway response
        stored under ``gateway_response``; failure marks it ``failed``.
        """
        payment_id = payment.id
        try:
            payment.mark_as_processing()
            await db.commit()

            result = await self.gateway_for(payment.gateway).initiate(payment)

            if result.success:
                payment.reference = result.reference
                payment.merge_metadata(gateway_response=result.to_dict())
                logger.info(
                    "Payment %s initiated with %s (reference=%s)",
                    payment.id,
                    payment.gateway.value,
                    result.reference,
                )
            else:
                payment.mark_as_failed(result.error or result.message)
                logger.warning(
                    "Payment %s initiation failed: %s", payment.id, result.error
                )
            await db.commit()
            return result

        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Failed to persist payment %s during initiation", payment_id)
            return InitiationResult.failed(
                "Payment processing failed", "Could not record payment state"
            )
        except Exception as e:
            logger.exception("Unexpected error initiating payment %s", payment_id)
            await db.rollback()
            try:
                await db.refresh(payment)
                payment.mark_as_failed(f"Unexpected error: {e}")
            except SQLAlchemyError:
                logger.exception("Could not reload payment %s", payment_id)
            else:
                await self._commit(db, payment, "initiation")
            return InitiationResult.failed("Payment processing failed", str(e))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_payment(
        self, db: AsyncSession, payment: Payment, reference: str
    ) -> VerificationResult:
        """Apply the gateway's canonical status to the payment.

        Only a successful verification changes state. A completed result whose
        amount disagrees with the payment is recorded as a failure.
        """
        result = await self.gateway_for(payment.gateway).verify(reference)
        if not result.success:
            logger.warning(
                "Verification of payment %s failed: %s", payment.id, result.error
            )
            return result

        if result.status is PaymentStatus.COMPLETED:
            if result.amount is not None and to_money(result.amount) != to_money(payment.amount):
                reason = (
                    f"Amount mismatch: expected {to_money(payment.amount)}, "
                    f"gateway reported {to_money(result.amount)}"
                )
                payment.mark_as_failed(reason)
                logger.error("Payment %s: %s", payment.id, reason)
                result.status = PaymentStatus.FAILED
            else:
                payment.mark_as_completed(result.transaction_id)
                capture_id = result.metadata.get("capture_id")
                if capture_id:
                    payment.merge_metadata(capture_id=capture_id)
                logger.info(
                    "Payment %s completed (transaction=%s)",
                    payment.id,
                    result.transaction_id,
                )
        elif result.status is PaymentStatus.FAILED:
            payment.mark_as_failed(result.message or "Payment failed at gateway")
        else:
            payment.status = result.status

        if not await self._commit(db, payment, "verification"):
            return VerificationResult.failed(
                "Payment verification failed", "Could not record payment state"
            )
        return result

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def refund_payment(
        self, db: AsyncSession, payment: Payment, amount: Optional[Decimal] = None
    ) -> RefundResult:
        """Refund ``amount``, or whatever is left of the payment when omitted.

        Earlier refunds under ``metadata.refunds`` count against the balance;
        the payment becomes ``refunded`` once they add up to its amount.
        """
        if not payment.can_be_refunded():
            return RefundResult.failed(
                "Payment cannot be refunded",
                f"Payment status {payment.status.value} is not refundable",
            )

        refundable = payment.refundable_amount
        refund_amount = to_money(amount) if amount is not None else refundable
        if refund_amount <= 0 or refund_amount > refundable:
            return RefundResult.failed(
                "Refund amount exceeds the refundable balance",
                f"Requested {refund_amount}, refundable {refundable}",
            )

        result = await self.gateway_for(payment.gateway).refund(payment, refund_amount)
        if not result.success:
            logger.warning("Refund of payment %s failed: %s", payment.id, result.error)
            return result

        refunded = to_money(result.amount) if result.amount is not None else refund_amount
        if payment.refunded_amount + refunded >= to_money(payment.amount):
            payment.mark_as_refunded()
        else:
            payment.mark_as_partially_refunded()

        refunds = list(payment.metadata_dict.get("refunds", []))
        refunds.append(
            {
                "refund_id": result.refund_id,
                "amount": str(refunded),
                "refunded_at": utc_now().isoformat(),
            }
        )
        payment.merge_metadata(refunds=refunds)
        if not await self._commit(db, payment, "refund"):
            return RefundResult.failed(
                "Refund recorded at gateway but not saved",
                f"Could not record refund {result.refund_id}",
            )

        logger.info(
            "Payment %s refunded (%s, refund=%s)",
            payment.id,
            payment.status.value,
            result.refund_id,
        )
        return result
