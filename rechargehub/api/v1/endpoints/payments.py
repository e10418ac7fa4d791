from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from rechargehub.core.database import get_db
from rechargehub.dependencies import get_current_actor
from rechargehub.middlewares.rate_limit import limiter
from rechargehub.models import PaymentMethod, PaymentStatus
from rechargehub.schemas.common import Message
from rechargehub.schemas.payment import (
    PaymentCreate,
    PaymentListResponse,
    PaymentOut,
    PaymentRefundRequest,
    PaymentStatusHistoryOut,
    PaymentStatusUpdate,
    PaymentUpdate,
)
from rechargehub.services.authorization import Actor
from rechargehub.services.payments import PaymentLedger

router = APIRouter()


@router.post("", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_payment(
    request: Request,
    payload: PaymentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return PaymentLedger(db).create_payment(payload.model_dump(), actor)


@router.get("", response_model=PaymentListResponse)
def list_payments(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_method: Optional[PaymentMethod] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    order_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    plan_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return PaymentLedger(db).get_payments(
        actor,
        page=page,
        limit=limit,
        status=status_filter,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        order_id=order_id,
        user_id=user_id,
        plan_id=plan_id,
    )


@router.get("/methods", response_model=list[str])
def list_payment_methods():
    return [member.value for member in PaymentMethod]


@router.get("/statuses", response_model=list[str])
def list_payment_statuses():
    return [member.value for member in PaymentStatus]


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return PaymentLedger(db).get_payment_by_id(payment_id, actor)


@router.get("/{payment_id}/history", response_model=list[PaymentStatusHistoryOut])
def get_payment_history(payment_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return PaymentLedger(db).get_payment_history(payment_id, actor)


@router.put("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return PaymentLedger(db).update_payment(payment_id, payload.model_dump(exclude_unset=True), actor)


@router.patch("/{payment_id}/status", response_model=PaymentOut)
def update_payment_status(
    payment_id: int,
    payload: PaymentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return PaymentLedger(db).update_payment_status(payment_id, payload.status, payload.notes, actor=actor)


@router.post("/{payment_id}/refund", response_model=PaymentOut)
def refund_payment(
    payment_id: int,
    payload: PaymentRefundRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return PaymentLedger(db).refund_payment(payment_id, payload.reason, actor)


@router.delete("/{payment_id}", response_model=Message)
def delete_payment(payment_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    PaymentLedger(db).delete_payment(payment_id, actor)
    return {"message": "Payment deleted"}
