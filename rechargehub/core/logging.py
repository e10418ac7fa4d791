import json
import logging
import re
import sys
from datetime import datetime, timezone

from rechargehub.core.config import get_settings


AUDIT_LOGGER_NAME = "rechargehub.audit"

_PHONE_PATTERN = re.compile(r"(\+?\d[\d\s-]{7,18}\d)")
_SENSITIVE_KEYS = ("phone", "msisdn")

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)


def mask_phone(value) -> str:
    digits = re.sub(r"\D", "", str(value or ""))
    if len(digits) < 7:
        return "***"
    return f"{digits[:4]}***{digits[-3:]}"


def _mask_text(text: str) -> str:
    return _PHONE_PATTERN.sub(lambda match: mask_phone(match.group(1)), text)


def _mask_value(key: str, value):
    if value is None:
        return None
    if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
        return mask_phone(value)
    return value


class PhoneRedactionFilter(logging.Filter):
    """Masks phone numbers in messages, string args and audit payloads."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _mask_text(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(_mask_text(arg) if isinstance(arg, str) else arg for arg in record.args)
        audit = getattr(record, "audit", None)
        if isinstance(audit, dict):
            record.audit = {key: _mask_value(key, value) for key, value in audit.items()}
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        audit = getattr(record, "audit", None)
        if audit:
            payload["audit"] = audit
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        audit = getattr(record, "audit", None)
        if audit:
            details = " ".join(f"{key}={value}" for key, value in audit.items())
            text = f"{text} {details}"
        return text


def configure_logging() -> None:
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    if settings.log_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(PlainFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    handler.addFilter(PhoneRedactionFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_rechargehub", False):
            root.removeHandler(existing)
    handler._rechargehub = True
    root.addHandler(handler)
    root.setLevel(str(settings.log_level or "INFO").upper())


def audit_event(action: str, **fields) -> None:
    """Fire-and-forget structured trace for order/payment mutations."""
    try:
        audit_logger.info(action, extra={"audit": {"action": action, **fields}})
    except Exception as exc:
        logger.warning("Audit trace failed for %s: %s", action, exc)
