from pydantic import BaseModel, ConfigDict
from decimal import Decimal
from typing import Optional

from rechargehub.models.plan import PlanType


class OperatorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str


class OperatorOut(OperatorSummary):
    prefixes: list[str] = []


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    operator_id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    type: PlanType
    validity_days: Optional[int] = None
    activation_code: Optional[str] = None
    active: bool
    operator: Optional[OperatorSummary] = None


class PlansForPhoneOut(BaseModel):
    operator: Optional[OperatorSummary] = None
    plans: list[PlanOut]
