from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rechargehub.core.database import get_db, transaction
from rechargehub.core.errors import ConflictError, NotFoundError
from rechargehub.core.logging import audit_event
from rechargehub.dependencies import get_current_actor, get_current_user
from rechargehub.models import User
from rechargehub.schemas.common import Message
from rechargehub.schemas.user import UserOut
from rechargehub.services.authorization import Action, Actor, ensure_allowed

router = APIRouter()


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.delete("/{user_id}", response_model=Message)
def delete_user(user_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    message = "You cannot delete your own account" if user_id == actor.id else "Admin access required"
    ensure_allowed(actor, Action.USER_DELETE, resource_owner_id=user_id, message=message)
    with transaction(db):
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        db.delete(user)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError("Cannot delete user: linked orders exist") from exc
    audit_event("user.deleted", user_id=user_id, actor_id=actor.id)
    return {"message": "User deleted"}
