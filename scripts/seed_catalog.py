import os
from decimal import Decimal

from rechargehub.core.database import SessionLocal
from rechargehub.core.security import hash_password
from rechargehub.models import Operator, Plan, PlanType, User, UserRole


OPERATORS = [
    {"name": "Orange", "code": "ORANGE", "prefixes": ["07"]},
    {"name": "MTN", "code": "MTN", "prefixes": ["05"]},
    {"name": "Moov", "code": "MOOV", "prefixes": ["01"]},
]

SAMPLE_PLANS = {
    "ORANGE": [
        {"name": "Orange Credit 1000", "price": Decimal("1000"), "type": PlanType.CREDIT, "validity_days": None},
        {"name": "Orange Internet 2GB", "price": Decimal("2000"), "type": PlanType.INTERNET, "validity_days": 30,
         "activation_code": "*144*2#"},
    ],
    "MTN": [
        {"name": "MTN Credit 500", "price": Decimal("500"), "type": PlanType.CREDIT, "validity_days": None},
        {"name": "MTN Minutes 60", "price": Decimal("1500"), "type": PlanType.MINUTES, "validity_days": 7,
         "activation_code": "*133*60#"},
    ],
    "MOOV": [
        {"name": "Moov Credit 1000", "price": Decimal("1000"), "type": PlanType.CREDIT, "validity_days": None},
        {"name": "Moov Internet 1GB", "price": Decimal("1000"), "type": PlanType.INTERNET, "validity_days": 7,
         "activation_code": "*155*1#"},
    ],
}


def _seed_admin(db) -> None:
    phone = (os.getenv("SEED_ADMIN_PHONE") or "").strip()
    password = os.getenv("SEED_ADMIN_PASSWORD") or ""
    if not phone or not password:
        return
    if db.query(User).filter(User.phone_number == phone).first():
        return
    db.add(User(phone_number=phone, full_name="Administrator", hashed_password=hash_password(password), role=UserRole.ADMIN))


def main():
    db = SessionLocal()
    try:
        for data in OPERATORS:
            operator = db.query(Operator).filter(Operator.code == data["code"]).first()
            if not operator:
                operator = Operator(**data)
                db.add(operator)
                db.flush()
            for plan in SAMPLE_PLANS.get(data["code"], []):
                existing = (
                    db.query(Plan)
                    .filter(Plan.operator_id == operator.id, Plan.name == plan["name"])
                    .first()
                )
                if not existing:
                    db.add(Plan(operator_id=operator.id, **plan))
        _seed_admin(db)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    main()
