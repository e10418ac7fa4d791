import os
from decimal import Decimal
from types import SimpleNamespace


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "RechargeHub Test",
        "ENVIRONMENT": "test",
        "SECRET_KEY": "test-secret",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "30",
        "AUTO_CREATE_TABLES": "false",
        "DATABASE_URL": "sqlite://",
        "RATE_LIMIT_ENABLED": "false",
        "COUNTRY_CALLING_CODE": "225",
        "LOG_LEVEL": "WARNING",
        "CORS_ORIGINS": "http://localhost:5173,http://localhost:3000",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from rechargehub.core.database import Base  # noqa: E402
from rechargehub.models import Operator, Plan, PlanType, User, UserRole  # noqa: E402
from rechargehub.utils.cache import clear_cache  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db):
    """Three operators, a handful of plans and one user per role."""
    orange = Operator(name="Orange", code="ORANGE", prefixes=["07"])
    mtn = Operator(name="MTN", code="MTN", prefixes=["05"])
    moov = Operator(name="Moov", code="MOOV", prefixes=["01"])
    db.add_all([orange, mtn, moov])
    db.flush()

    credit = Plan(operator_id=orange.id, name="Orange Credit 1000", price=Decimal("1000"), type=PlanType.CREDIT)
    internet = Plan(
        operator_id=orange.id,
        name="Orange Internet 2GB",
        price=Decimal("2000"),
        type=PlanType.INTERNET,
        validity_days=30,
        activation_code="*144*2#",
    )
    retired = Plan(
        operator_id=orange.id,
        name="Orange Credit 300",
        price=Decimal("300"),
        type=PlanType.CREDIT,
        active=False,
    )
    mtn_credit = Plan(operator_id=mtn.id, name="MTN Credit 500", price=Decimal("500"), type=PlanType.CREDIT)

    client = User(phone_number="0701000001", full_name="Client One", hashed_password="x", role=UserRole.CLIENT)
    other = User(phone_number="0701000002", full_name="Client Two", hashed_password="x", role=UserRole.CLIENT)
    staff = User(phone_number="0701000003", full_name="Staff One", hashed_password="x", role=UserRole.STAFF)
    idle_staff = User(
        phone_number="0701000004",
        full_name="Staff Two",
        hashed_password="x",
        role=UserRole.STAFF,
        is_active=False,
    )
    admin = User(phone_number="0701000005", full_name="Admin", hashed_password="x", role=UserRole.ADMIN)

    db.add_all([credit, internet, retired, mtn_credit, client, other, staff, idle_staff, admin])
    db.commit()

    return SimpleNamespace(
        orange=orange,
        mtn=mtn,
        moov=moov,
        credit=credit,
        internet=internet,
        retired=retired,
        mtn_credit=mtn_credit,
        client=client,
        other=other,
        staff=staff,
        idle_staff=idle_staff,
        admin=admin,
    )


@pytest.fixture(autouse=True)
def _reset_plan_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from rechargehub.core.database import get_db
    from rechargehub.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
