import pytest

from rechargehub.core.errors import NotFoundError
from rechargehub.services.plans import find_plans_for_phone_number, get_plan, list_active_plans, list_plans


def test_list_active_plans_orders_by_price_and_hides_inactive(db, catalog):
    plans = list_active_plans(db, catalog.orange.id)
    assert [plan.name for plan in plans] == ["Orange Credit 1000", "Orange Internet 2GB"]
    assert plans[0].operator.code == "ORANGE"


def test_list_active_plans_can_include_inactive(db, catalog):
    plans = list_active_plans(db, catalog.orange.id, include_inactive=True)
    assert [plan.name for plan in plans] == ["Orange Credit 300", "Orange Credit 1000", "Orange Internet 2GB"]
    assert plans[0].active is False


def test_list_plans_orders_by_operator_then_price(db, catalog):
    names = [plan.name for plan in list_plans(db)]
    assert names == ["MTN Credit 500", "Orange Credit 1000", "Orange Internet 2GB"]


def test_get_plan_and_missing_plan(db, catalog):
    plan = get_plan(db, catalog.internet.id)
    assert plan.validity_days == 30
    assert plan.activation_code == "*144*2#"

    with pytest.raises(NotFoundError):
        get_plan(db, 9999)


def test_find_plans_for_phone_number(db, catalog):
    result = find_plans_for_phone_number(db, "+225 05 01 23 45 67")
    assert result.operator.code == "MTN"
    assert [plan.name for plan in result.plans] == ["MTN Credit 500"]


def test_find_plans_for_unsupported_number_is_empty(db, catalog):
    result = find_plans_for_phone_number(db, "0901234567")
    assert result.operator is None
    assert result.plans == []


def test_find_plans_for_operator_without_plans(db, catalog):
    result = find_plans_for_phone_number(db, "0101234567")
    assert result.operator.code == "MOOV"
    assert result.plans == []
