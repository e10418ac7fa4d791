from pydantic import BaseModel, Field
from decimal import Decimal
from datetime import datetime
from typing import Optional

from rechargehub.models.order import OrderStatus
from rechargehub.models.payment import PaymentMethod
from rechargehub.models.plan import PlanType
from rechargehub.schemas.common import Pagination
from rechargehub.schemas.user import UserSummary


class OrderCreate(BaseModel):
    plan_id: int = Field(..., gt=0)
    phone_number: str = Field(..., min_length=8, max_length=20)
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(default=None, max_length=64)


class OrderUpdate(BaseModel):
    """Partial update; only the fields the caller sends are applied."""

    phone_number: Optional[str] = Field(default=None, min_length=8, max_length=20)
    plan_id: Optional[int] = Field(default=None, gt=0)
    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    status: Optional[OrderStatus] = None
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = Field(default=None, max_length=64)
    assigned_to: Optional[int] = Field(default=None, gt=0)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderAssign(BaseModel):
    staff_id: int = Field(..., gt=0)


class OrderPlanOut(BaseModel):
    id: int
    operator_id: Optional[int] = None
    name: str
    price: Decimal
    type: PlanType
    validity_days: Optional[int] = None
    operator_name: Optional[str] = None
    operator_code: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    user_id: int
    plan_id: int
    phone_number: str
    amount: Decimal
    status: OrderStatus
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    assigned_to: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None
    plan: Optional[OrderPlanOut] = None
    assigned: Optional[UserSummary] = None


class OrderListResponse(BaseModel):
    items: list[OrderOut]
    pagination: Pagination


class PaymentCompleteOut(BaseModel):
    order_id: int
    complete: bool
