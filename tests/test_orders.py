from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from rechargehub.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from rechargehub.models import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus
from rechargehub.services.authorization import Actor
from rechargehub.services.orders import OrderManager, OrderPatch, build_order_patch, check_order_transition


def _actor(user) -> Actor:
    return Actor(id=user.id, role=user.role)


def _paid(db, order_id):
    return True


def _create(manager, catalog, user=None, **overrides):
    data = {
        "plan_id": catalog.credit.id,
        "phone_number": "0701234567",
        "payment_method": "wave",
    }
    data.update(overrides)
    return manager.create_order(data, _actor(user or catalog.client))


def test_order_lifecycle_scenario(db, catalog):
    manager = OrderManager(db)

    order = _create(manager, catalog)
    assert order.status == OrderStatus.PENDING
    assert order.amount == Decimal("1000")
    assert order.user_id == catalog.client.id
    assert order.user.full_name == "Client One"
    assert order.plan.operator_code == "ORANGE"
    assert order.assigned is None

    assigned = manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))
    assert assigned.status == OrderStatus.ASSIGNED
    assert assigned.assigned_to == catalog.staff.id
    assert assigned.assigned.full_name == "Staff One"

    processing = manager.update_order_status(order.id, "processing", _actor(catalog.staff))
    assert processing.status == OrderStatus.PROCESSING

    with pytest.raises(ForbiddenError):
        manager.update_order_status(order.id, "processing", _actor(catalog.client))


def test_create_order_stores_normalized_phone(db, catalog):
    order = _create(OrderManager(db), catalog, phone_number="+225 07 99 88 77 66", payment_reference=" REF-9 ")
    assert order.phone_number == "0799887766"
    assert order.payment_reference == "REF-9"
    assert order.payment_method == PaymentMethod.WAVE


def test_create_order_rejects_inactive_plan(db, catalog):
    with pytest.raises(ValidationError):
        _create(OrderManager(db), catalog, plan_id=catalog.retired.id)


def test_create_order_rejects_phone_of_another_operator(db, catalog):
    with pytest.raises(ValidationError):
        _create(OrderManager(db), catalog, phone_number="0501234567")


def test_create_order_rejects_unsupported_phone(db, catalog):
    with pytest.raises(ValidationError):
        _create(OrderManager(db), catalog, phone_number="0901234567")


def test_create_order_rejects_unknown_plan_and_method(db, catalog):
    manager = OrderManager(db)
    with pytest.raises(NotFoundError):
        _create(manager, catalog, plan_id=9999)
    with pytest.raises(ValidationError):
        _create(manager, catalog, payment_method="cash")
    assert db.query(Order).count() == 0


def test_order_never_returns_to_pending(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))

    with pytest.raises(InvalidTransitionError):
        manager.update_order_status(order.id, "pending", _actor(catalog.staff))
    with pytest.raises(InvalidTransitionError):
        manager.update_order(order.id, {"status": "pending", "assigned_to": None}, _actor(catalog.admin))

    assert manager.get_order_by_id(order.id, _actor(catalog.staff)).status == OrderStatus.ASSIGNED


def test_status_update_cannot_skip_states(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    with pytest.raises(InvalidTransitionError):
        manager.update_order_status(order.id, "processing", _actor(catalog.staff))
    with pytest.raises(InvalidTransitionError):
        manager.update_order_status(order.id, "assigned", _actor(catalog.staff))


def test_cancel_clears_assignment_and_is_terminal(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))

    cancelled = manager.update_order_status(order.id, "cancelled", _actor(catalog.staff))
    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.assigned_to is None
    assert cancelled.assigned is None

    with pytest.raises(InvalidTransitionError):
        manager.update_order_status(order.id, "processing", _actor(catalog.staff))


def test_completion_requires_successful_payment(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))
    manager.update_order_status(order.id, "processing", _actor(catalog.staff))

    with pytest.raises(InvalidStateError):
        manager.update_order_status(order.id, "completed", _actor(catalog.staff))

    db.add(
        Payment(
            order_id=order.id,
            amount=Decimal("1000"),
            payment_method=PaymentMethod.WAVE,
            payment_reference="REF-DONE",
            status=PaymentStatus.SUCCESS,
        )
    )
    db.commit()

    completed = manager.update_order_status(order.id, "completed", _actor(catalog.staff))
    assert completed.status == OrderStatus.COMPLETED
    assert completed.assigned_to == catalog.staff.id


def test_completion_gate_uses_injected_check(db, catalog):
    manager = OrderManager(db, payment_complete=_paid)
    order = _create(manager, catalog)
    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))
    manager.update_order_status(order.id, "processing", _actor(catalog.staff))
    assert manager.update_order_status(order.id, "completed", _actor(catalog.admin)).status == OrderStatus.COMPLETED


def test_assign_requires_active_staff(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    with pytest.raises(ValidationError):
        manager.assign_order(order.id, catalog.idle_staff.id, _actor(catalog.staff))
    with pytest.raises(ValidationError):
        manager.assign_order(order.id, catalog.other.id, _actor(catalog.staff))
    with pytest.raises(NotFoundError):
        manager.assign_order(order.id, 9999, _actor(catalog.staff))
    with pytest.raises(ForbiddenError):
        manager.assign_order(order.id, catalog.staff.id, _actor(catalog.client))
    with pytest.raises(NotFoundError):
        manager.assign_order(9999, catalog.staff.id, _actor(catalog.staff))


def test_reassign_and_assign_after_processing(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))

    reassigned = manager.assign_order(order.id, catalog.admin.id, _actor(catalog.admin))
    assert reassigned.assigned_to == catalog.admin.id

    manager.update_order_status(order.id, "processing", _actor(catalog.admin))
    with pytest.raises(InvalidTransitionError):
        manager.assign_order(order.id, catalog.staff.id, _actor(catalog.admin))


def test_owner_update_keeps_only_phone_number(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    updated = manager.update_order(
        order.id,
        {"phone_number": "07 55 44 33 22", "amount": Decimal("1"), "status": "cancelled"},
        _actor(catalog.client),
    )
    assert updated.phone_number == "0755443322"
    assert updated.amount == Decimal("1000")
    assert updated.status == OrderStatus.PENDING


def test_owner_update_without_phone_is_rejected(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    with pytest.raises(ValidationError):
        manager.update_order(order.id, {"amount": Decimal("1")}, _actor(catalog.client))


def test_owner_cannot_update_once_processing_or_other_orders(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    with pytest.raises(ForbiddenError):
        manager.update_order(order.id, {"phone_number": "0755443322"}, _actor(catalog.other))

    manager.assign_order(order.id, catalog.staff.id, _actor(catalog.staff))
    manager.update_order_status(order.id, "processing", _actor(catalog.staff))
    with pytest.raises(ForbiddenError):
        manager.update_order(order.id, {"phone_number": "0755443322"}, _actor(catalog.client))


def test_owner_phone_must_stay_with_plan_operator(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    with pytest.raises(ValidationError):
        manager.update_order(order.id, {"phone_number": "0501234567"}, _actor(catalog.client))


def test_staff_plan_change_resets_amount(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    updated = manager.update_order(order.id, {"plan_id": catalog.internet.id}, _actor(catalog.staff))
    assert updated.plan_id == catalog.internet.id
    assert updated.amount == Decimal("2000")

    priced = manager.update_order(order.id, {"amount": Decimal("1800.50")}, _actor(catalog.staff))
    assert priced.amount == Decimal("1800.50")


def test_staff_update_enforces_assignment_consistency(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    with pytest.raises(ValidationError):
        manager.update_order(order.id, {"assigned_to": catalog.staff.id}, _actor(catalog.staff))
    with pytest.raises(ValidationError):
        manager.update_order(order.id, {"status": "assigned"}, _actor(catalog.staff))

    updated = manager.update_order(
        order.id,
        {"status": "assigned", "assigned_to": catalog.staff.id},
        _actor(catalog.staff),
    )
    assert updated.status == OrderStatus.ASSIGNED
    assert updated.assigned_to == catalog.staff.id


def test_staff_update_rejects_null_for_required_fields(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    with pytest.raises(ValidationError):
        manager.update_order(order.id, {"phone_number": None}, _actor(catalog.staff))


def test_failed_update_rolls_back(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    with pytest.raises(ValidationError):
        manager.update_order(
            order.id,
            {"payment_reference": "NEW", "phone_number": "0901234567"},
            _actor(catalog.staff),
        )
    assert manager.get_order_by_id(order.id, _actor(catalog.staff)).payment_reference is None


def test_get_order_by_id_visibility(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    assert manager.get_order_by_id(order.id, _actor(catalog.client)).id == order.id
    assert manager.get_order_by_id(order.id, _actor(catalog.staff)).id == order.id
    with pytest.raises(ForbiddenError):
        manager.get_order_by_id(order.id, _actor(catalog.other))
    with pytest.raises(NotFoundError):
        manager.get_order_by_id(9999, _actor(catalog.admin))


def test_enrichment_survives_missing_relations(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    db.query(Order).filter(Order.id == order.id).update({"user_id": 9999})
    db.commit()

    enriched = manager.get_order_by_id(order.id, _actor(catalog.admin))
    assert enriched.user is None
    assert enriched.plan.id == catalog.credit.id


def test_list_orders_scopes_by_role(db, catalog):
    manager = OrderManager(db)
    for _ in range(3):
        _create(manager, catalog)
    mine = _create(manager, catalog, user=catalog.other)
    manager.assign_order(mine.id, catalog.staff.id, _actor(catalog.staff))

    client_view = manager.list_orders(_actor(catalog.client), user_id=catalog.other.id)
    assert client_view.pagination.total == 3
    assert {item.user_id for item in client_view.items} == {catalog.client.id}

    admin_view = manager.list_orders(_actor(catalog.admin))
    assert admin_view.pagination.total == 4

    filtered = manager.list_orders(_actor(catalog.admin), user_id=catalog.other.id)
    assert [item.id for item in filtered.items] == [mine.id]

    staff_view = manager.list_orders(_actor(catalog.staff))
    assert [item.id for item in staff_view.items] == [mine.id]

    by_status = manager.list_orders(_actor(catalog.admin), status="assigned")
    assert [item.id for item in by_status.items] == [mine.id]


def test_list_orders_scope_comes_from_the_guard(db, catalog, monkeypatch):
    from rechargehub.services import orders as orders_module
    from rechargehub.services.authorization import Action

    manager = OrderManager(db)
    _create(manager, catalog)
    theirs = _create(manager, catalog, user=catalog.other)
    asked = []

    def _grant_list_all(role, actor_id, owner_id, action, **kwargs):
        asked.append(action)
        return action == Action.ORDER_LIST_ALL

    monkeypatch.setattr(orders_module, "can_transition", _grant_list_all)
    widened = manager.list_orders(_actor(catalog.client), user_id=catalog.other.id)
    assert [item.id for item in widened.items] == [theirs.id]
    assert asked == [Action.ORDER_LIST_ALL]

    monkeypatch.setattr(orders_module, "can_transition", lambda *args, **kwargs: False)
    narrowed = manager.list_orders(_actor(catalog.admin))
    assert narrowed.pagination.total == 0


def test_list_orders_pagination_window(db, catalog):
    manager = OrderManager(db)
    for _ in range(12):
        _create(manager, catalog)

    first = manager.list_orders(_actor(catalog.client))
    assert first.pagination.limit == 10
    assert first.pagination.total == 12
    assert first.pagination.total_pages == 2
    assert len(first.items) == 10

    second = manager.list_orders(_actor(catalog.client), page=2, limit=10)
    assert len(second.items) == 2

    capped = manager.list_orders(_actor(catalog.client), limit=500)
    assert capped.pagination.limit == 100

    with pytest.raises(ValidationError):
        manager.list_orders(_actor(catalog.client), page=0)


def test_list_orders_newest_first_and_by_date(db, catalog):
    moments = iter(
        [
            datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc),
            datetime(2026, 1, 15, 18, 0, tzinfo=timezone.utc),
            datetime(2026, 1, 16, 8, 0, tzinfo=timezone.utc),
        ]
    )
    manager = OrderManager(db, clock=lambda: next(moments))
    early = _create(manager, catalog)
    late = _create(manager, catalog)
    _create(manager, catalog)

    day = manager.list_orders(_actor(catalog.client), created_on=date(2026, 1, 15))
    assert [item.id for item in day.items] == [late.id, early.id]


def test_delete_order_admin_only(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)

    with pytest.raises(ForbiddenError):
        manager.delete_order(order.id, _actor(catalog.staff))

    manager.delete_order(order.id, _actor(catalog.admin))
    with pytest.raises(NotFoundError):
        manager.get_order_by_id(order.id, _actor(catalog.admin))


def test_delete_order_with_payments_conflicts(db, catalog):
    manager = OrderManager(db)
    order = _create(manager, catalog)
    db.add(
        Payment(
            order_id=order.id,
            amount=Decimal("1000"),
            payment_method=PaymentMethod.WAVE,
            payment_reference="REF-LINKED",
            status=PaymentStatus.CANCELLED,
            deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    )
    db.commit()

    with pytest.raises(ConflictError) as exc:
        manager.delete_order(order.id, _actor(catalog.admin))
    assert "linked payments exist" in exc.value.message
    assert db.query(Order).filter(Order.id == order.id).count() == 1


def test_audit_failure_never_aborts_the_operation(db, catalog, monkeypatch):
    from rechargehub.core import logging as app_logging

    def _boom(*args, **kwargs):
        raise RuntimeError("audit sink down")

    monkeypatch.setattr(app_logging.audit_logger, "info", _boom)
    order = _create(OrderManager(db), catalog)
    assert order.status == OrderStatus.PENDING


def test_build_order_patch_filters_for_owner():
    owner = Actor(id=1, role="client")
    patch = build_order_patch({"phone_number": "0701234567", "amount": 5, "unknown": 1}, owner)
    assert patch.items() == {"phone_number": "0701234567"}


def test_build_order_patch_keeps_everything_for_staff():
    from rechargehub.models import UserRole

    staff = Actor(id=2, role=UserRole.STAFF)
    patch = build_order_patch(OrderPatch(amount=5, assigned_to=None), staff)
    assert patch.items() == {"amount": 5, "assigned_to": None}
    assert patch.is_set("assigned_to")
    assert not patch.is_set("status")


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.ASSIGNED, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.COMPLETED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, target):
    check_order_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.ASSIGNED, OrderStatus.PENDING),
        (OrderStatus.PROCESSING, OrderStatus.ASSIGNED),
        (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.ASSIGNED),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        check_order_transition(current, target)
