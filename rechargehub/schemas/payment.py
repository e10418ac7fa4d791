from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from datetime import datetime
from typing import Any, Optional

from rechargehub.models.order import OrderStatus
from rechargehub.models.payment import PaymentMethod, PaymentStatus
from rechargehub.schemas.common import Pagination
from rechargehub.schemas.order import OrderPlanOut
from rechargehub.schemas.user import UserSummary


class PaymentCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    payment_reference: str = Field(..., min_length=1, max_length=64)
    external_reference: Optional[str] = Field(default=None, max_length=64)
    callback_data: Optional[dict[str, Any]] = None


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    payment_method: Optional[PaymentMethod] = None
    external_reference: Optional[str] = Field(default=None, max_length=64)
    status: Optional[PaymentStatus] = None
    status_notes: Optional[str] = Field(default=None, max_length=1000)
    callback_data: Optional[dict[str, Any]] = None


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class PaymentRefundRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class PaymentOrderOut(BaseModel):
    id: int
    user_id: int
    plan_id: int
    phone_number: str
    amount: Decimal
    status: OrderStatus
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan: Optional[OrderPlanOut] = None
    user: Optional[UserSummary] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_reference: str
    external_reference: Optional[str] = None
    status: PaymentStatus
    status_notes: Optional[str] = None
    callback_data: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order: Optional[PaymentOrderOut] = None


class PaymentStatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payment_id: int
    previous_status: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class PaymentListResponse(BaseModel):
    items: list[PaymentOut]
    pagination: Pagination
