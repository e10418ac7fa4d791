from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional

from rechargehub.models.user import UserRole


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone_number: str
    full_name: Optional[str] = None
    role: UserRole


class UserOut(UserSummary):
    is_active: bool
    created_at: Optional[datetime] = None
