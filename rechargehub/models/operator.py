from sqlalchemy import Column, Integer, String, JSON
from rechargehub.core.database import Base
from rechargehub.models.base import TimestampMixin


class Operator(Base, TimestampMixin):
    """A telecom operator and the two-digit local prefixes it owns.

    Prefixes are stored as a JSON array of strings (e.g. ``["07", "08"]``) and
    must be disjoint across operators.
    """

    __tablename__ = "operators"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False)
    code = Column(String(32), nullable=False, unique=True, index=True)
    prefixes = Column(JSON, nullable=False, default=list)
