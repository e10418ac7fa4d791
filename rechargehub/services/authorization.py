"""Role-based decisions for order, payment and user mutations.

Everything here is a pure function of the actor, the resource owner and
(optionally) the resource's current status. Services call these before any
write; nothing in this module touches the database.
"""
import enum
from dataclasses import dataclass

from rechargehub.core.errors import ForbiddenError
from rechargehub.models.order import OrderStatus
from rechargehub.models.payment import PaymentStatus
from rechargehub.models.user import UserRole


class Action(str, enum.Enum):
    ORDER_CREATE = "order:create"
    ORDER_READ = "order:read"
    ORDER_LIST_ALL = "order:list_all"
    ORDER_LIST_ASSIGNED = "order:list_assigned"
    ORDER_UPDATE_PHONE = "order:update_phone"
    ORDER_UPDATE = "order:update"
    ORDER_UPDATE_STATUS = "order:update_status"
    ORDER_ASSIGN = "order:assign"
    ORDER_DELETE = "order:delete"
    PAYMENT_CREATE = "payment:create"
    PAYMENT_READ = "payment:read"
    PAYMENT_LIST = "payment:list"
    PAYMENT_UPDATE = "payment:update"
    PAYMENT_UPDATE_STATUS = "payment:update_status"
    PAYMENT_REFUND = "payment:refund"
    PAYMENT_DELETE = "payment:delete"
    USER_DELETE = "user:delete"
    PLAN_VIEW_INACTIVE = "plan:view_inactive"


@dataclass(frozen=True)
class Actor:
    id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


STAFF_ROLES = frozenset({UserRole.STAFF, UserRole.ADMIN})
OWNER_EDITABLE_ORDER_STATES = frozenset({OrderStatus.PENDING, OrderStatus.ASSIGNED})

_STAFF_ONLY = frozenset(
    {
        Action.ORDER_UPDATE,
        Action.ORDER_UPDATE_STATUS,
        Action.ORDER_ASSIGN,
        Action.ORDER_LIST_ASSIGNED,
        Action.PAYMENT_LIST,
        Action.PAYMENT_UPDATE,
        Action.PAYMENT_UPDATE_STATUS,
        Action.PAYMENT_REFUND,
        Action.PAYMENT_DELETE,
    }
)
_OWNER_OR_STAFF = frozenset({Action.ORDER_READ, Action.PAYMENT_CREATE, Action.PAYMENT_READ})


def _coerce_role(role) -> UserRole | None:
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(str(role or "").strip().lower())
    except ValueError:
        return None


def can_transition(
    actor_role,
    actor_id: int | None,
    resource_owner_id: int | None,
    action: Action,
    *,
    resource_status=None,
) -> bool:
    role = _coerce_role(actor_role)
    if role is None or actor_id is None:
        return False
    is_owner = resource_owner_id is not None and resource_owner_id == actor_id

    if action == Action.ORDER_CREATE:
        return True
    if action in (Action.ORDER_LIST_ALL, Action.PLAN_VIEW_INACTIVE):
        return role == UserRole.ADMIN
    if action == Action.ORDER_DELETE:
        return role == UserRole.ADMIN
    if action == Action.USER_DELETE:
        return role == UserRole.ADMIN and not is_owner
    if action == Action.ORDER_UPDATE_PHONE:
        if role in STAFF_ROLES:
            return True
        status = _coerce_order_status(resource_status)
        return is_owner and status in OWNER_EDITABLE_ORDER_STATES
    if action in _STAFF_ONLY:
        return role in STAFF_ROLES
    if action in _OWNER_OR_STAFF:
        return role in STAFF_ROLES or is_owner
    return False


def _coerce_order_status(value) -> OrderStatus | None:
    if value is None:
        return None
    try:
        return OrderStatus(getattr(value, "value", value))
    except ValueError:
        return None


def can_refund(payment_status) -> bool:
    return getattr(payment_status, "value", payment_status) == PaymentStatus.SUCCESS.value


def ensure_allowed(
    actor: Actor,
    action: Action,
    *,
    resource_owner_id: int | None = None,
    resource_status=None,
    message: str = "You are not allowed to perform this action",
) -> None:
    if not can_transition(actor.role, actor.id, resource_owner_id, action, resource_status=resource_status):
        raise ForbiddenError(message)
