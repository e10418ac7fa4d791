from rechargehub.models.user import User, UserRole
from rechargehub.models.operator import Operator
from rechargehub.models.plan import Plan, PlanType
from rechargehub.models.payment import Payment, PaymentMethod, PaymentStatus
from rechargehub.models.payment_status_history import PaymentStatusHistory
from rechargehub.models.order import Order, OrderStatus

__all__ = [
    "User",
    "UserRole",
    "Operator",
    "Plan",
    "PlanType",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentStatusHistory",
]
