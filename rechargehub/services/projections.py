"""Typed projections that compose joined rows into response aggregates.

Each query in the order/payment services left-joins the referenced user,
plan, operator and assignee; any of them may be missing, which yields a
``None`` relation rather than an error.
"""
from rechargehub.models import Operator, Order, Payment, Plan, User
from rechargehub.schemas.order import OrderOut, OrderPlanOut
from rechargehub.schemas.payment import PaymentOrderOut, PaymentOut
from rechargehub.schemas.plan import OperatorSummary, PlanOut
from rechargehub.schemas.user import UserSummary


def project_user(user: User | None) -> UserSummary | None:
    if user is None:
        return None
    return UserSummary.model_validate(user)


def project_operator(operator: Operator | None) -> OperatorSummary | None:
    if operator is None:
        return None
    return OperatorSummary.model_validate(operator)


def project_order_plan(plan: Plan | None, operator: Operator | None) -> OrderPlanOut | None:
    if plan is None:
        return None
    return OrderPlanOut(
        id=plan.id,
        operator_id=plan.operator_id,
        name=plan.name,
        price=plan.price,
        type=plan.type,
        validity_days=plan.validity_days,
        operator_name=operator.name if operator else None,
        operator_code=operator.code if operator else None,
    )


def project_plan(plan: Plan, operator: Operator | None) -> PlanOut:
    return PlanOut(
        id=plan.id,
        operator_id=plan.operator_id,
        name=plan.name,
        description=plan.description,
        price=plan.price,
        type=plan.type,
        validity_days=plan.validity_days,
        activation_code=plan.activation_code,
        active=bool(plan.active),
        operator=project_operator(operator),
    )


def project_order(
    order: Order,
    user: User | None,
    plan: Plan | None,
    operator: Operator | None,
    assignee: User | None,
) -> OrderOut:
    return OrderOut(
        id=order.id,
        user_id=order.user_id,
        plan_id=order.plan_id,
        phone_number=order.phone_number,
        amount=order.amount,
        status=order.status,
        payment_method=order.payment_method,
        payment_reference=order.payment_reference,
        assigned_to=order.assigned_to,
        created_at=order.created_at,
        updated_at=order.updated_at,
        user=project_user(user),
        plan=project_order_plan(plan, operator),
        assigned=project_user(assignee),
    )


def project_payment_order(
    order: Order | None,
    plan: Plan | None,
    operator: Operator | None,
    user: User | None,
) -> PaymentOrderOut | None:
    if order is None:
        return None
    return PaymentOrderOut(
        id=order.id,
        user_id=order.user_id,
        plan_id=order.plan_id,
        phone_number=order.phone_number,
        amount=order.amount,
        status=order.status,
        payment_method=order.payment_method,
        payment_reference=order.payment_reference,
        created_at=order.created_at,
        updated_at=order.updated_at,
        plan=project_order_plan(plan, operator),
        user=project_user(user),
    )


def project_payment(
    payment: Payment,
    order: Order | None = None,
    plan: Plan | None = None,
    operator: Operator | None = None,
    user: User | None = None,
) -> PaymentOut:
    result = PaymentOut.model_validate(payment)
    result.order = project_payment_order(order, plan, operator, user)
    return result
