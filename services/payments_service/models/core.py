import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.payments_service.models.enums import (
    PaymentGateway,
    PaymentStatus,
    enum_values,
)
from services.store_service.models import Order
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Numeric, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Payment(Base):
    """A payment attempt against an order through one gateway.

    State changes go through the ``mark_as_*`` methods; the caller commits.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), index=True, nullable=False
    )

    # External reference returned by the provider once the payment settles
    transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    # Reference issued at initiation (intent id, PayPal order id, Paystack ref)
    reference: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )

    gateway: Mapped[PaymentGateway] = mapped_column(
        SAEnum(
            PaymentGateway,
            name="payment_gateway_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Set while a verify or refund call to the gateway is in flight
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # "metadata" is reserved by SQLAlchemy's Declarative API, so we map the DB column
    # named "metadata" onto a safe attribute name.
    payment_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("amount > 0", name="positive_payment_amount"),)

    order = relationship(Order)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def metadata_dict(self) -> dict[str, Any]:
        return dict(self.payment_metadata or {})

    @property
    def failure_reason(self) -> Optional[str]:
        return (self.payment_metadata or {}).get("failure_reason")

    @property
    def refunded_amount(self) -> Decimal:
        """Sum of the refunds recorded under ``metadata.refunds``."""
        total = Decimal("0.00")
        for refund in self.metadata_dict.get("refunds", []):
            if refund.get("amount") is not None:
                total += to_money(refund["amount"])
        return total

    @property
    def refundable_amount(self) -> Decimal:
        return to_money(self.amount) - self.refunded_amount

    def merge_metadata(self, **values: Any) -> None:
        """Merge keys into metadata. Reassigns so the JSON change is tracked."""
        self.payment_metadata = {**(self.payment_metadata or {}), **values}

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def is_successful(self) -> bool:
        return self.status.is_successful()

    def can_be_refunded(self) -> bool:
        return self.status.can_be_refunded()

    def mark_as_processing(self) -> None:
        self.status = PaymentStatus.PROCESSING

    def mark_as_completed(self, transaction_id: Optional[str]) -> None:
        self.status = PaymentStatus.COMPLETED
        if transaction_id:
            self.transaction_id = transaction_id
        self.paid_at = utc_now()

    def mark_as_failed(self, reason: Optional[str]) -> None:
        self.status = PaymentStatus.FAILED
        self.merge_metadata(failure_reason=reason)

    def mark_as_refunded(self) -> None:
        self.status = PaymentStatus.REFUNDED
        self.refunded_at = utc_now()

    def mark_as_partially_refunded(self) -> None:
        self.status = PaymentStatus.PARTIALLY_REFUNDED

    def __repr__(self):
        return f"<Payment {self.id} {self.gateway} status={self.status}>"
