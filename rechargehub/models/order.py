import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin
from rechargehub.models.payment import PaymentMethod


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    phone_number = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        Enum(OrderStatus, name="orderstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_method = Column(
        Enum(PaymentMethod, name="paymentmethod", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    payment_reference = Column(String(64), nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)


Index("ix_orders_user_status", Order.user_id, Order.status)
Index("ix_orders_assigned_status", Order.assigned_to, Order.status)
Index("ix_orders_created_at", Order.created_at)
