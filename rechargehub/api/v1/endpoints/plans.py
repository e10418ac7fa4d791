from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rechargehub.core.config import get_settings
from rechargehub.core.database import get_db
from rechargehub.dependencies import get_current_user
from rechargehub.models import User
from rechargehub.schemas.plan import PlanOut, PlansForPhoneOut
from rechargehub.services.authorization import Action, can_transition
from rechargehub.services.plans import find_plans_for_phone_number, get_plan, list_active_plans, list_plans
from rechargehub.utils.cache import get_cached, set_cached

router = APIRouter()
settings = get_settings()


def _include_inactive(user: User, requested: bool) -> bool:
    return bool(requested) and can_transition(user.role, user.id, None, Action.PLAN_VIEW_INACTIVE)


@router.get("", response_model=list[PlanOut])
def all_plans(
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    include_inactive = _include_inactive(user, include_inactive)
    cache_key = f"plans:all:{int(include_inactive)}"
    cached = get_cached(cache_key)
    if cached is not None:
        return cached
    plans = [plan.model_dump() for plan in list_plans(db, include_inactive=include_inactive)]
    set_cached(cache_key, plans, ttl_seconds=settings.plans_cache_ttl_seconds)
    return plans


@router.get("/phone/{phone_number}", response_model=PlansForPhoneOut)
def plans_for_phone(phone_number: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return find_plans_for_phone_number(db, phone_number)


@router.get("/operator/{operator_id}", response_model=list[PlanOut])
def plans_for_operator(
    operator_id: int,
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    include_inactive = _include_inactive(user, include_inactive)
    cache_key = f"plans:operator:{operator_id}:{int(include_inactive)}"
    cached = get_cached(cache_key)
    if cached is not None:
        return cached
    plans = [plan.model_dump() for plan in list_active_plans(db, operator_id, include_inactive=include_inactive)]
    set_cached(cache_key, plans, ttl_seconds=settings.plans_cache_ttl_seconds)
    return plans


@router.get("/{plan_id}", response_model=PlanOut)
def plan_detail(plan_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_plan(db, plan_id)
