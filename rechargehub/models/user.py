import enum
from sqlalchemy import Column, Integer, String, Boolean, Enum, Index
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin


class UserRole(str, enum.Enum):
    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="userrole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.CLIENT,
    )
    is_active = Column(Boolean, default=True, nullable=False)


Index("ix_users_role_active", User.role, User.is_active)
