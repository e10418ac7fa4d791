import enum
from sqlalchemy import Column, DateTime, Integer, String, ForeignKey, Numeric, Enum, Index, JSON, Text
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin


class PaymentMethod(str, enum.Enum):
    WAVE = "wave"
    ORANGE_MONEY = "orange_money"
    MTN_MONEY = "mtn_money"
    MOOV_MONEY = "moov_money"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(
        Enum(PaymentMethod, name="paymentmethod", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    payment_reference = Column(String(64), nullable=False)
    external_reference = Column(String(64), nullable=True)
    status = Column(
        Enum(PaymentStatus, name="paymentstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    status_notes = Column(Text, nullable=True)
    callback_data = Column(JSON, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


# Store-enforced guard for the idempotency key: live payments never share a reference.
Index(
    "uq_payments_reference_live",
    Payment.payment_reference,
    unique=True,
    postgresql_where=Payment.deleted_at.is_(None),
    sqlite_where=Payment.deleted_at.is_(None),
)
Index("ix_payments_order_created", Payment.order_id, Payment.created_at, Payment.id)
Index("ix_payments_status_method", Payment.status, Payment.payment_method)
