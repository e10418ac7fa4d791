from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from rechargehub.core.database import get_db
from rechargehub.core.errors import UnauthorizedError
from rechargehub.core.security import decode_token
from rechargehub.models import User, UserRole
from rechargehub.services.authorization import Actor


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise UnauthorizedError("User not found or inactive")
    return user


def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    role = user.role if isinstance(user.role, UserRole) else UserRole(str(user.role))
    return Actor(id=user.id, role=role)
