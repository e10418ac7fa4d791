from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rechargehub.core.database import get_db
from rechargehub.core.errors import NotFoundError
from rechargehub.dependencies import get_current_user
from rechargehub.models import User
from rechargehub.schemas.plan import OperatorOut
from rechargehub.services.operators import get_all_prefixes, operator_prefixes, resolve_operator

router = APIRouter()


@router.get("/prefixes", response_model=list[str])
def prefixes(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_all_prefixes(db)


@router.get("/resolve/{phone_number}", response_model=OperatorOut)
def resolve(phone_number: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    operator = resolve_operator(db, phone_number)
    if operator is None:
        raise NotFoundError("No operator serves this phone number")
    return OperatorOut(id=operator.id, name=operator.name, code=operator.code, prefixes=operator_prefixes(operator))
