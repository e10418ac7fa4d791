"""Payment ledger: creation, status changes, refunds and soft deletes.

Every mutation runs in one transactional scope. The payment_reference
uniqueness check happens inside that scope and is backed by the partial
unique index on live rows, so two racing creates with the same reference
cannot both commit.
"""
import logging
import secrets
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rechargehub.core.database import transaction
from rechargehub.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from rechargehub.core.logging import audit_event
from rechargehub.models import (
    Operator,
    Order,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentStatusHistory,
    Plan,
    User,
)
from rechargehub.schemas.payment import PaymentListResponse, PaymentOut
from rechargehub.services.authorization import Action, Actor, can_refund, ensure_allowed
from rechargehub.services.pagination import build_pagination, page_window
from rechargehub.services.projections import project_payment
from rechargehub.services.reversals import MockReversalProvider
from rechargehub.utils.clock import utcnow


logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED}),
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}
ACTIVE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.SUCCESS})
PAYMENT_PATCHABLE_FIELDS = ("amount", "payment_method", "external_reference", "status", "status_notes", "callback_data")


def new_external_reference() -> str:
    return f"PAY_{secrets.token_hex(8)}"


def coerce_payment_method(value) -> PaymentMethod:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    try:
        return PaymentMethod(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in PaymentMethod)
        raise ValidationError(f"Invalid payment method. Must be one of: {allowed}")


def coerce_payment_status(value) -> PaymentStatus:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    try:
        return PaymentStatus(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in PaymentStatus)
        raise ValidationError(f"Invalid payment status. Must be one of: {allowed}")


def _require_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid amount")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount.quantize(Decimal("0.01"))


def _require_id(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if number <= 0:
        raise ValidationError(f"Invalid {field}")
    return number


def _as_utc_start(d: date) -> datetime:
    return datetime.combine(d, time.min).replace(tzinfo=timezone.utc)


def _as_utc_end(d: date) -> datetime:
    return datetime.combine(d, time.max).replace(tzinfo=timezone.utc)


def is_payment_complete(db: Session, order_id: int) -> bool:
    """True iff the most recent live payment of the order succeeded.

    Ties on created_at go to the higher id.
    """
    latest = (
        db.query(Payment.status)
        .filter(Payment.order_id == order_id, Payment.deleted_at.is_(None))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )
    return latest is not None and latest[0] == PaymentStatus.SUCCESS


class PaymentLedger:
    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] = utcnow,
        reference_factory: Callable[[], str] = new_external_reference,
        reversal_provider=None,
    ):
        self.db = db
        self.clock = clock
        self.reference_factory = reference_factory
        self.reversal_provider = reversal_provider or MockReversalProvider()

    # Reads

    def _enriched_query(self):
        return (
            self.db.query(Payment, Order, Plan, Operator, User)
            .outerjoin(Order, Payment.order_id == Order.id)
            .outerjoin(Plan, Order.plan_id == Plan.id)
            .outerjoin(Operator, Plan.operator_id == Operator.id)
            .outerjoin(User, Order.user_id == User.id)
            .filter(Payment.deleted_at.is_(None))
        )

    def _load_enriched(self, payment_id: int) -> PaymentOut:
        row = self._enriched_query().filter(Payment.id == payment_id).first()
        if not row:
            raise NotFoundError("Payment not found")
        return project_payment(*row)

    def _live(self, payment_id: int, *, lock: bool = False) -> Payment | None:
        query = self.db.query(Payment).filter(Payment.id == payment_id, Payment.deleted_at.is_(None))
        if lock:
            query = query.with_for_update()
        return query.first()

    def _find_live_by_reference(self, payment_reference: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.payment_reference == payment_reference, Payment.deleted_at.is_(None))
            .first()
        )

    def get_payment_by_id(self, payment_id: int, actor: Actor) -> PaymentOut:
        payment = self._load_enriched(payment_id)
        owner_id = payment.order.user_id if payment.order else None
        ensure_allowed(actor, Action.PAYMENT_READ, resource_owner_id=owner_id, message="You cannot view this payment")
        return payment

    def get_payments(
        self,
        actor: Actor,
        *,
        page: int = 1,
        limit: int | None = None,
        status=None,
        payment_method=None,
        start_date: date | None = None,
        end_date: date | None = None,
        order_id: int | None = None,
        user_id: int | None = None,
        plan_id: int | None = None,
    ) -> PaymentListResponse:
        ensure_allowed(actor, Action.PAYMENT_LIST, message="Staff access required")
        page, limit = page_window(page, limit)

        query = self._enriched_query()
        if status:
            query = query.filter(Payment.status == coerce_payment_status(status))
        if payment_method:
            query = query.filter(Payment.payment_method == coerce_payment_method(payment_method))
        if start_date:
            query = query.filter(Payment.created_at >= _as_utc_start(start_date))
        if end_date:
            query = query.filter(Payment.created_at <= _as_utc_end(end_date))
        if order_id:
            query = query.filter(Payment.order_id == order_id)
        if user_id:
            query = query.filter(Order.user_id == user_id)
        if plan_id:
            query = query.filter(Order.plan_id == plan_id)

        total = query.count()
        rows = (
            query.order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return PaymentListResponse(
            items=[project_payment(*row) for row in rows],
            pagination=build_pagination(total, page, limit),
        )

    def get_payment_history(self, payment_id: int, actor: Actor) -> list[PaymentStatusHistory]:
        ensure_allowed(actor, Action.PAYMENT_LIST, message="Staff access required")
        if self._live(payment_id) is None:
            raise NotFoundError("Payment not found")
        return (
            self.db.query(PaymentStatusHistory)
            .filter(PaymentStatusHistory.payment_id == payment_id)
            .order_by(PaymentStatusHistory.id.asc())
            .all()
        )

    def is_payment_complete(self, order_id: int) -> bool:
        return is_payment_complete(self.db, order_id)

    # Writes

    def _record_history(self, payment_id: int, previous, status, notes: str | None, at: datetime) -> None:
        self.db.add(
            PaymentStatusHistory(
                payment_id=payment_id,
                previous_status=getattr(previous, "value", previous),
                status=getattr(status, "value", status),
                notes=notes,
                created_at=at,
                updated_at=at,
            )
        )

    def create_payment(self, data: Mapping[str, Any], actor: Actor) -> PaymentOut:
        order_id = _require_id(data.get("order_id"), "order_id")
        amount = _require_amount(data.get("amount"))
        method = coerce_payment_method(data.get("payment_method"))
        reference = str(data.get("payment_reference") or "").strip()
        if not reference:
            raise ValidationError("payment_reference is required")
        callback_data = data.get("callback_data")
        if callback_data is not None and not isinstance(callback_data, dict):
            raise ValidationError("callback_data must be an object")
        external_reference = str(data.get("external_reference") or "").strip() or self.reference_factory()

        with transaction(self.db):
            # Locking the order serializes concurrent payment attempts against it.
            order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
            if not order:
                raise NotFoundError("Order not found")
            ensure_allowed(
                actor,
                Action.PAYMENT_CREATE,
                resource_owner_id=order.user_id,
                message="You cannot pay for this order",
            )
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("Cannot pay for a cancelled order")
            if self._find_live_by_reference(reference) is not None:
                raise ConflictError("A payment with this reference already exists")
            active = (
                self.db.query(Payment.id)
                .filter(
                    Payment.order_id == order_id,
                    Payment.deleted_at.is_(None),
                    Payment.status.in_(ACTIVE_STATUSES),
                )
                .first()
            )
            if active is not None:
                raise ConflictError("This order already has an active payment")

            now = self.clock()
            payment = Payment(
                order_id=order_id,
                amount=amount,
                payment_method=method,
                payment_reference=reference,
                external_reference=external_reference,
                status=PaymentStatus.PENDING,
                callback_data=callback_data,
                created_at=now,
                updated_at=now,
            )
            self.db.add(payment)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise ConflictError("A payment with this reference already exists") from exc
            self._record_history(payment.id, None, PaymentStatus.PENDING, "Payment created", now)
            payment_id = payment.id

        audit_event(
            "payment.created",
            payment_id=payment_id,
            order_id=order_id,
            amount=str(amount),
            payment_method=method.value,
            actor_id=actor.id,
        )
        return self._load_enriched(payment_id)

    def _apply_patch(
        self, payment: Payment, patch: Mapping[str, Any], *, refunding: bool = False
    ) -> tuple[PaymentStatus, PaymentStatus]:
        fields = {key: patch[key] for key in PAYMENT_PATCHABLE_FIELDS if key in patch}
        if not fields:
            raise ValidationError("No updatable fields supplied")

        previous = PaymentStatus(getattr(payment.status, "value", payment.status))
        target = previous
        if "status" in fields:
            target = coerce_payment_status(fields["status"])
            if target != previous and target not in PAYMENT_TRANSITIONS[previous]:
                raise InvalidStateError(f"Cannot move payment from {previous.value} to {target.value}")
            if target == PaymentStatus.REFUNDED and target != previous and not refunding:
                raise InvalidStateError("Use the refund operation to refund a payment")

        if "amount" in fields:
            payment.amount = _require_amount(fields["amount"])
        if "payment_method" in fields:
            payment.payment_method = coerce_payment_method(fields["payment_method"])
        if "external_reference" in fields:
            payment.external_reference = str(fields["external_reference"] or "").strip() or None
        if "callback_data" in fields:
            value = fields["callback_data"]
            if value is not None and not isinstance(value, dict):
                raise ValidationError("callback_data must be an object")
            payment.callback_data = value
        if "status_notes" in fields:
            payment.status_notes = fields["status_notes"]

        now = self.clock()
        payment.updated_at = now
        if target != previous:
            payment.status = target
            self._record_history(payment.id, previous, target, fields.get("status_notes"), now)
        return previous, target

    def update_payment(self, payment_id: int, patch: Mapping[str, Any], actor: Actor) -> PaymentOut:
        ensure_allowed(actor, Action.PAYMENT_UPDATE, message="Staff access required")
        with transaction(self.db):
            payment = self._live(payment_id, lock=True)
            if payment is None:
                raise NotFoundError("Payment not found")
            previous, target = self._apply_patch(payment, patch)

        audit_event(
            "payment.updated",
            payment_id=payment_id,
            fields=sorted(key for key in patch if key in PAYMENT_PATCHABLE_FIELDS),
            previous_status=previous.value,
            status=target.value,
            actor_id=actor.id,
        )
        return self._load_enriched(payment_id)

    def update_payment_status(self, payment_id: int, status, notes: str | None = None, *, actor: Actor) -> PaymentOut:
        ensure_allowed(actor, Action.PAYMENT_UPDATE_STATUS, message="Staff access required")
        patch: dict[str, Any] = {"status": coerce_payment_status(status)}
        if notes:
            patch["status_notes"] = notes
        return self.update_payment(payment_id, patch, actor)

    def refund_payment(self, payment_id: int, reason: str, actor: Actor) -> PaymentOut:
        ensure_allowed(actor, Action.PAYMENT_REFUND, message="Staff access required")
        reason = str(reason or "").strip()
        if not reason:
            raise ValidationError("A refund reason is required")

        with transaction(self.db):
            payment = self._live(payment_id, lock=True)
            if payment is None:
                raise NotFoundError("Payment not found")
            if not can_refund(payment.status):
                raise InvalidStateError("Only successful payments can be refunded")

            callback_data = dict(payment.callback_data or {})
            callback_data["refund_reason"] = reason
            callback_data["refunded_at"] = self.clock().isoformat()
            self._apply_patch(
                payment,
                {
                    "status": PaymentStatus.REFUNDED,
                    "status_notes": f"Refunded: {reason}",
                    "callback_data": callback_data,
                },
                refunding=True,
            )
            reversal = {
                "payment_reference": payment.payment_reference,
                "external_reference": payment.external_reference,
                "amount": Decimal(payment.amount),
                "payment_method": getattr(payment.payment_method, "value", payment.payment_method),
                "reason": reason,
            }

        audit_event("payment.refunded", payment_id=payment_id, reason=reason, actor_id=actor.id)
        self._request_reversal(payment_id, reversal)
        return self._load_enriched(payment_id)

    def _request_reversal(self, payment_id: int, reversal: dict) -> None:
        # The local record stays refunded whatever the provider says; failed
        # reversals are left for the reconciliation job.
        try:
            result = self.reversal_provider.reverse(**reversal)
        except Exception as exc:
            logger.exception("Reversal call failed for payment %s", payment_id)
            audit_event("payment.reversal_failed", payment_id=payment_id, error=str(exc))
            return
        if result.success:
            audit_event(
                "payment.reversal_requested",
                payment_id=payment_id,
                reversal_reference=result.external_reference,
            )
        else:
            logger.warning("Reversal rejected for payment %s: %s", payment_id, result.message)
            audit_event("payment.reversal_failed", payment_id=payment_id, error=result.message)

    def delete_payment(self, payment_id: int, actor: Actor) -> None:
        ensure_allowed(actor, Action.PAYMENT_DELETE, message="Staff access required")
        with transaction(self.db):
            payment = self._live(payment_id, lock=True)
            if payment is None:
                raise NotFoundError("Payment not found")
            previous = PaymentStatus(getattr(payment.status, "value", payment.status))
            if previous == PaymentStatus.SUCCESS:
                raise InvalidStateError("Successful payments must be refunded, not deleted")

            now = self.clock()
            payment.status = PaymentStatus.CANCELLED
            payment.status_notes = "Payment cancelled/deleted"
            payment.deleted_at = now
            payment.updated_at = now
            if previous != PaymentStatus.CANCELLED:
                self._record_history(payment.id, previous, PaymentStatus.CANCELLED, "Payment cancelled/deleted", now)

        audit_event("payment.deleted", payment_id=payment_id, previous_status=previous.value, actor_id=actor.id)
