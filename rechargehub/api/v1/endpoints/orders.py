from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from rechargehub.core.database import get_db
from rechargehub.dependencies import get_current_actor
from rechargehub.middlewares.rate_limit import limiter
from rechargehub.models import OrderStatus
from rechargehub.schemas.common import Message
from rechargehub.schemas.order import (
    OrderAssign,
    OrderCreate,
    OrderListResponse,
    OrderOut,
    OrderStatusUpdate,
    OrderUpdate,
    PaymentCompleteOut,
)
from rechargehub.services.authorization import Actor
from rechargehub.services.orders import OrderManager

router = APIRouter()


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_order(
    request: Request,
    payload: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderManager(db).create_order(payload.model_dump(), actor)


@router.get("", response_model=OrderListResponse)
def list_orders(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    created_on: Optional[date] = Query(None, alias="date"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderManager(db).list_orders(
        actor,
        page=page,
        limit=limit,
        status=status_filter,
        user_id=user_id,
        created_on=created_on,
    )


@router.get("/statuses", response_model=list[str])
def list_order_statuses():
    return [member.value for member in OrderStatus]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return OrderManager(db).get_order_by_id(order_id, actor)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderManager(db).update_order(order_id, payload.model_dump(exclude_unset=True), actor)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderManager(db).update_order_status(order_id, payload.status, actor)


@router.post("/{order_id}/assign", response_model=OrderOut)
def assign_order(
    order_id: int,
    payload: OrderAssign,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderManager(db).assign_order(order_id, payload.staff_id, actor)


@router.delete("/{order_id}", response_model=Message)
def delete_order(order_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    OrderManager(db).delete_order(order_id, actor)
    return {"message": "Order deleted"}


@router.get("/{order_id}/payment-complete", response_model=PaymentCompleteOut)
def order_payment_complete(order_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    manager = OrderManager(db)
    manager.get_order_by_id(order_id, actor)
    return {"order_id": order_id, "complete": manager.is_payment_complete(order_id)}
