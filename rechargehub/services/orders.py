"""Order state machine: creation, status changes, staff assignment and deletion.

Reads left-join the owner, plan, operator and assignee and compose them into
an ``OrderOut``; writes lock the order row for the duration of their
transactional scope.
"""
import logging
from dataclasses import dataclass, field, fields as dataclass_fields
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from rechargehub.core.config import Settings, get_settings
from rechargehub.core.database import transaction
from rechargehub.core.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from rechargehub.core.logging import audit_event, mask_phone
from rechargehub.models import Operator, Order, OrderStatus, Payment, Plan, User
from rechargehub.schemas.order import OrderListResponse, OrderOut
from rechargehub.services import payments as payment_service
from rechargehub.services.authorization import STAFF_ROLES, Action, Actor, can_transition, ensure_allowed
from rechargehub.services.operators import normalize_phone_number, resolve_operator
from rechargehub.services.pagination import build_pagination, page_window
from rechargehub.services.payments import coerce_payment_method
from rechargehub.services.plans import get_plan_row
from rechargehub.services.projections import project_order
from rechargehub.utils.clock import utcnow


logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ASSIGNED, OrderStatus.CANCELLED}),
    OrderStatus.ASSIGNED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}
TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
ASSIGNMENT_STATES = frozenset({OrderStatus.ASSIGNED, OrderStatus.PROCESSING, OrderStatus.COMPLETED})
OWNER_PATCHABLE_FIELDS = frozenset({"phone_number"})

_Owner = aliased(User, name="owner")
_Assignee = aliased(User, name="assignee")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class OrderPatch:
    """Partial update of an order; fields left ``UNSET`` are not touched."""

    phone_number: Any = field(default=UNSET)
    plan_id: Any = field(default=UNSET)
    amount: Any = field(default=UNSET)
    status: Any = field(default=UNSET)
    payment_method: Any = field(default=UNSET)
    payment_reference: Any = field(default=UNSET)
    assigned_to: Any = field(default=UNSET)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrderPatch":
        known = {f.name for f in dataclass_fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def items(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclass_fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def restricted_to(self, allowed: frozenset[str]) -> "OrderPatch":
        return OrderPatch(**{key: value for key, value in self.items().items() if key in allowed})


def build_order_patch(data: Mapping[str, Any] | OrderPatch, actor: Actor) -> OrderPatch:
    """Filter a requested patch down to what ``actor`` may change.

    Staff and admins keep every field. Anyone else keeps ``phone_number`` only;
    the other fields are dropped silently.
    """
    patch = data if isinstance(data, OrderPatch) else OrderPatch.from_mapping(data)
    if actor.is_staff:
        return patch
    dropped = sorted(set(patch.items()) - OWNER_PATCHABLE_FIELDS)
    if dropped:
        logger.info("Dropping owner-supplied order fields: %s", ", ".join(dropped))
    return patch.restricted_to(OWNER_PATCHABLE_FIELDS)


def coerce_order_status(value) -> OrderStatus:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    try:
        return OrderStatus(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in OrderStatus)
        raise ValidationError(f"Invalid order status. Must be one of: {allowed}")


def check_order_transition(current: OrderStatus, target: OrderStatus) -> None:
    if target == OrderStatus.PENDING:
        raise InvalidTransitionError("Orders cannot move back to pending")
    if current in TERMINAL_STATES:
        raise InvalidTransitionError(f"Order is already {current.value}")
    if target not in ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move order from {current.value} to {target.value}")


def _amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid amount")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount.quantize(Decimal("0.01"))


class OrderManager:
    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] = utcnow,
        settings: Settings | None = None,
        payment_complete: Callable[[Session, int], bool] | None = None,
    ):
        self.db = db
        self.clock = clock
        self.settings = settings or get_settings()
        self.payment_complete = payment_complete or payment_service.is_payment_complete

    # Reads

    def _enriched_query(self):
        return (
            self.db.query(Order, _Owner, Plan, Operator, _Assignee)
            .outerjoin(_Owner, Order.user_id == _Owner.id)
            .outerjoin(Plan, Order.plan_id == Plan.id)
            .outerjoin(Operator, Plan.operator_id == Operator.id)
            .outerjoin(_Assignee, Order.assigned_to == _Assignee.id)
        )

    def _load_enriched(self, order_id: int) -> OrderOut:
        row = self._enriched_query().filter(Order.id == order_id).first()
        if not row:
            raise NotFoundError("Order not found")
        return project_order(*row)

    def _locked(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order_by_id(self, order_id: int, actor: Actor) -> OrderOut:
        order = self._load_enriched(order_id)
        ensure_allowed(actor, Action.ORDER_READ, resource_owner_id=order.user_id, message="You cannot view this order")
        return order

    def list_orders(
        self,
        actor: Actor,
        *,
        page: int = 1,
        limit: int | None = None,
        status=None,
        user_id: int | None = None,
        created_on: date | None = None,
    ) -> OrderListResponse:
        page, limit = page_window(page, limit)
        query = self._enriched_query()

        if can_transition(actor.role, actor.id, None, Action.ORDER_LIST_ALL):
            if user_id:
                query = query.filter(Order.user_id == user_id)
        elif can_transition(actor.role, actor.id, None, Action.ORDER_LIST_ASSIGNED):
            query = query.filter(or_(Order.user_id == actor.id, Order.assigned_to == actor.id))
        else:
            query = query.filter(Order.user_id == actor.id)

        if status:
            query = query.filter(Order.status == coerce_order_status(status))
        if created_on:
            start = datetime.combine(created_on, time.min).replace(tzinfo=timezone.utc)
            end = datetime.combine(created_on, time.max).replace(tzinfo=timezone.utc)
            query = query.filter(Order.created_at >= start, Order.created_at <= end)

        total = query.count()
        rows = query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return OrderListResponse(
            items=[project_order(*row) for row in rows],
            pagination=build_pagination(total, page, limit),
        )

    def is_payment_complete(self, order_id: int) -> bool:
        return self.payment_complete(self.db, order_id)

    # Writes

    def _resolve_for_plan(self, phone_number: str, plan: Plan) -> str:
        local = normalize_phone_number(phone_number, self.settings.country_calling_code)
        operator = resolve_operator(self.db, local)
        if operator is None:
            raise ValidationError("Unsupported phone number")
        if operator.id != plan.operator_id:
            raise ValidationError("Phone number does not belong to the plan's operator")
        return local

    def create_order(self, data: Mapping[str, Any], actor: Actor) -> OrderOut:
        ensure_allowed(actor, Action.ORDER_CREATE)
        plan_id = data.get("plan_id")
        phone_number = str(data.get("phone_number") or "").strip()
        if not plan_id:
            raise ValidationError("plan_id is required")
        if not phone_number:
            raise ValidationError("phone_number is required")
        method = coerce_payment_method(data.get("payment_method"))
        reference = str(data.get("payment_reference") or "").strip() or None

        with transaction(self.db):
            plan = get_plan_row(self.db, plan_id)
            if not plan.active:
                raise ValidationError("Plan is not available")
            local = self._resolve_for_plan(phone_number, plan)

            now = self.clock()
            order = Order(
                user_id=actor.id,
                plan_id=plan.id,
                phone_number=local,
                amount=Decimal(plan.price),
                status=OrderStatus.PENDING,
                payment_method=method,
                payment_reference=reference,
                created_at=now,
                updated_at=now,
            )
            self.db.add(order)
            self.db.flush()
            order_id = order.id
            amount = order.amount

        audit_event(
            "order.created",
            order_id=order_id,
            user_id=actor.id,
            plan_id=plan_id,
            phone_number=local,
            amount=str(amount),
        )
        return self._load_enriched(order_id)

    def _apply_patch(self, order: Order, patch: OrderPatch) -> OrderStatus:
        current = OrderStatus(getattr(order.status, "value", order.status))
        values = patch.items()
        for name in ("phone_number", "plan_id", "amount", "status", "payment_method"):
            if name in values and values[name] is None:
                raise ValidationError(f"{name} cannot be null")

        target = current
        if patch.is_set("status"):
            target = coerce_order_status(patch.status)
            if target != current:
                check_order_transition(current, target)

        plan = None
        if patch.is_set("plan_id") and patch.plan_id != order.plan_id:
            plan = get_plan_row(self.db, patch.plan_id)
            if not plan.active:
                raise ValidationError("Plan is not available")
            order.plan_id = plan.id
            if not patch.is_set("amount"):
                order.amount = Decimal(plan.price)

        if patch.is_set("phone_number") or plan is not None:
            plan = plan or get_plan_row(self.db, order.plan_id)
            phone_number = patch.phone_number if patch.is_set("phone_number") else order.phone_number
            order.phone_number = self._resolve_for_plan(str(phone_number), plan)

        if patch.is_set("amount"):
            order.amount = _amount(patch.amount)
        if patch.is_set("payment_method"):
            order.payment_method = coerce_payment_method(patch.payment_method)
        if patch.is_set("payment_reference"):
            order.payment_reference = str(patch.payment_reference or "").strip() or None

        if patch.is_set("assigned_to"):
            if patch.assigned_to is not None:
                self._require_staff_user(patch.assigned_to)
            order.assigned_to = patch.assigned_to
        elif target == OrderStatus.CANCELLED:
            order.assigned_to = None

        if target == OrderStatus.COMPLETED and target != current:
            self._require_paid(order.id)

        order.status = target
        has_assignee = order.assigned_to is not None
        if has_assignee != (target in ASSIGNMENT_STATES):
            if has_assignee:
                raise ValidationError(f"An order in {target.value} state cannot have an assignee")
            raise ValidationError(f"An order in {target.value} state requires an assignee")
        order.updated_at = self.clock()
        return current

    def _require_staff_user(self, staff_id: int) -> User:
        staff = self.db.query(User).filter(User.id == staff_id).first()
        if not staff:
            raise NotFoundError("Staff user not found")
        if staff.role not in STAFF_ROLES or not staff.is_active:
            raise ValidationError("Orders can only be assigned to active staff")
        return staff

    def _require_paid(self, order_id: int) -> None:
        if self.settings.orders_require_payment_to_complete and not self.is_payment_complete(order_id):
            raise InvalidStateError("Order cannot be completed before its payment succeeds")

    def update_order(self, order_id: int, data: Mapping[str, Any] | OrderPatch, actor: Actor) -> OrderOut:
        with transaction(self.db):
            order = self._locked(order_id)
            ensure_allowed(
                actor,
                Action.ORDER_UPDATE if actor.is_staff else Action.ORDER_UPDATE_PHONE,
                resource_owner_id=order.user_id,
                resource_status=order.status,
                message="You cannot modify this order",
            )
            patch = build_order_patch(data, actor)
            if not patch.items():
                raise ValidationError("No updatable fields supplied")
            previous = self._apply_patch(order, patch)
            status = order.status

        audit_event(
            "order.updated",
            order_id=order_id,
            fields=sorted(patch.items()),
            previous_status=previous.value,
            status=getattr(status, "value", status),
            actor_id=actor.id,
        )
        return self._load_enriched(order_id)

    def update_order_status(self, order_id: int, status, actor: Actor) -> OrderOut:
        ensure_allowed(actor, Action.ORDER_UPDATE_STATUS, message="Staff access required")
        target = coerce_order_status(status)
        if target == OrderStatus.ASSIGNED:
            raise InvalidTransitionError("Use order assignment to move an order to assigned")

        with transaction(self.db):
            order = self._locked(order_id)
            current = OrderStatus(getattr(order.status, "value", order.status))
            check_order_transition(current, target)
            if target == OrderStatus.COMPLETED:
                self._require_paid(order.id)
            if target == OrderStatus.CANCELLED:
                order.assigned_to = None
            order.status = target
            order.updated_at = self.clock()

        audit_event(
            "order.status_changed",
            order_id=order_id,
            previous_status=current.value,
            status=target.value,
            actor_id=actor.id,
        )
        return self._load_enriched(order_id)

    def assign_order(self, order_id: int, staff_id: int, actor: Actor) -> OrderOut:
        ensure_allowed(actor, Action.ORDER_ASSIGN, message="Staff access required")
        with transaction(self.db):
            order = self._locked(order_id)
            current = OrderStatus(getattr(order.status, "value", order.status))
            if current not in (OrderStatus.PENDING, OrderStatus.ASSIGNED):
                raise InvalidTransitionError(f"Cannot assign an order in {current.value} state")
            self._require_staff_user(staff_id)
            order.assigned_to = staff_id
            order.status = OrderStatus.ASSIGNED
            order.updated_at = self.clock()

        audit_event(
            "order.assigned",
            order_id=order_id,
            previous_status=current.value,
            assigned_to=staff_id,
            actor_id=actor.id,
        )
        return self._load_enriched(order_id)

    def delete_order(self, order_id: int, actor: Actor) -> None:
        ensure_allowed(actor, Action.ORDER_DELETE, message="Admin access required")
        with transaction(self.db):
            order = self._locked(order_id)
            # Soft-deleted payments still reference the order.
            linked = self.db.query(Payment.id).filter(Payment.order_id == order_id).first()
            if linked is not None:
                raise ConflictError("Cannot delete order: linked payments exist")
            phone_number = order.phone_number
            self.db.delete(order)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise ConflictError("Cannot delete order: linked payments exist") from exc

        logger.info("Order %s (%s) deleted by %s", order_id, mask_phone(phone_number), actor.id)
        audit_event("order.deleted", order_id=order_id, actor_id=actor.id)
