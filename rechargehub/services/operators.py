import json
import logging
import re

from sqlalchemy.orm import Session

from rechargehub.core.config import get_settings
from rechargehub.core.logging import mask_phone
from rechargehub.models import Operator


logger = logging.getLogger(__name__)

PREFIX_LENGTH = 2


def normalize_phone_number(phone_number: str, country_code: str | None = None) -> str:
    """Return the local digits of a phone number.

    ``+225 07 01 23 45 67``, ``002250701234567`` and ``0701234567`` all give
    ``0701234567``.
    """
    code = str(country_code if country_code is not None else get_settings().country_calling_code).strip()
    digits = re.sub(r"\D", "", str(phone_number or ""))
    if code:
        if digits.startswith(f"00{code}"):
            return digits[len(code) + 2:]
        # Only strip the calling code when a full local number follows it.
        if digits.startswith(code) and len(digits) - len(code) >= 8:
            return digits[len(code):]
    return digits


def phone_prefix(phone_number: str) -> str | None:
    local = normalize_phone_number(phone_number)
    if len(local) < PREFIX_LENGTH:
        return None
    return local[:PREFIX_LENGTH]


def operator_prefixes(operator: Operator) -> list[str]:
    raw = operator.prefixes
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Operator %s has unparseable prefixes; skipping", operator.code)
            return []
    if not isinstance(raw, (list, tuple, set)):
        logger.warning("Operator %s has invalid prefixes; skipping", operator.code)
        return []
    return [str(item).strip() for item in raw if str(item).strip()]


def _operators(db: Session) -> list[Operator]:
    return db.query(Operator).order_by(Operator.id.asc()).all()


def resolve_operator(db: Session, phone_number: str) -> Operator | None:
    """Find the operator owning the number's two-digit prefix.

    Returns ``None`` for numbers no operator serves. Prefixes are disjoint by
    construction, so the first match in id order is the only match.
    """
    prefix = phone_prefix(phone_number)
    if prefix is None:
        return None
    for operator in _operators(db):
        if prefix in operator_prefixes(operator):
            return operator
    logger.info("No operator for %s (prefix %s)", mask_phone(phone_number), prefix)
    return None


def get_all_prefixes(db: Session) -> list[str]:
    prefixes: list[str] = []
    for operator in _operators(db):
        prefixes.extend(operator_prefixes(operator))
    return list(dict.fromkeys(prefixes))


def is_valid_phone_number(db: Session, phone_number: str) -> bool:
    return resolve_operator(db, phone_number) is not None
