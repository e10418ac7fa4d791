from sqlalchemy import Column, Integer, String, ForeignKey, Index, Text
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin


class PaymentStatusHistory(Base, TimestampMixin):
    """Append-only log of payment status changes.

    Status columns are plain strings so the log survives enum evolution.
    """

    __tablename__ = "payment_status_history"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False)
    previous_status = Column(String(24), nullable=True)
    status = Column(String(24), nullable=False)
    notes = Column(Text, nullable=True)


Index("ix_payment_status_history_payment", PaymentStatusHistory.payment_id, PaymentStatusHistory.id)
