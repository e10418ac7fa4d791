import logging

from sqlalchemy.orm import Session

from rechargehub.core.errors import NotFoundError
from rechargehub.core.logging import mask_phone
from rechargehub.models import Operator, Plan
from rechargehub.schemas.plan import PlanOut, PlansForPhoneOut
from rechargehub.services.operators import resolve_operator
from rechargehub.services.projections import project_operator, project_plan


logger = logging.getLogger(__name__)


def _plans_query(db: Session):
    return db.query(Plan, Operator).outerjoin(Operator, Plan.operator_id == Operator.id)


def list_active_plans(db: Session, operator_id: int, *, include_inactive: bool = False) -> list[PlanOut]:
    query = _plans_query(db).filter(Plan.operator_id == operator_id)
    if not include_inactive:
        query = query.filter(Plan.active.is_(True))
    rows = query.order_by(Plan.price.asc(), Plan.id.asc()).all()
    return [project_plan(plan, operator) for plan, operator in rows]


def list_plans(db: Session, *, include_inactive: bool = False) -> list[PlanOut]:
    query = _plans_query(db)
    if not include_inactive:
        query = query.filter(Plan.active.is_(True))
    rows = query.order_by(Operator.name.asc(), Plan.price.asc(), Plan.id.asc()).all()
    return [project_plan(plan, operator) for plan, operator in rows]


def get_plan_row(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise NotFoundError("Plan not found")
    return plan


def get_plan(db: Session, plan_id: int) -> PlanOut:
    row = _plans_query(db).filter(Plan.id == plan_id).first()
    if not row:
        raise NotFoundError("Plan not found")
    plan, operator = row
    return project_plan(plan, operator)


def find_plans_for_phone_number(db: Session, phone_number: str) -> PlansForPhoneOut:
    """Active plans of the operator serving ``phone_number``.

    An unsupported number yields no operator and an empty plan list.
    """
    operator = resolve_operator(db, phone_number)
    if operator is None:
        logger.info("No plans available for %s", mask_phone(phone_number))
        return PlansForPhoneOut(operator=None, plans=[])
    return PlansForPhoneOut(
        operator=project_operator(operator),
        plans=list_active_plans(db, operator.id),
    )
