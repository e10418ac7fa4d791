import enum
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Enum, ForeignKey, Index, Text
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin


class PlanType(str, enum.Enum):
    CREDIT = "credit"
    MINUTES = "minutes"
    INTERNET = "internet"


class Plan(Base, TimestampMixin):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    type = Column(
        Enum(PlanType, name="plantype", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    validity_days = Column(Integer, nullable=True)
    activation_code = Column(String(64), nullable=True)
    active = Column(Boolean, default=True, nullable=False)


Index("ix_plans_operator_active_price", Plan.operator_id, Plan.active, Plan.price)
