import logging
import re
import secrets
import string
import uuid
from typing import Any, Dict

from fastapi import HTTPException

from .settings import get_settings

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_RE.match(value))


def new_session_id() -> str:
    return str(uuid.uuid4())


def ensure_session_id(session_id: Any) -> str:
    """Return session_id if it is a well-formed UUID, otherwise a fresh one."""
    if is_uuid(session_id):
        return session_id
    replacement = new_session_id()
    logger.warning(f"Invalid sessionId provided: {session_id!r}. Generated new UUID: {replacement}")
    return replacement


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def failure(message: str, exc: Exception, status_code: int = 500) -> HTTPException:
    """
    Build the HTTPException returned for persistence failures.
    Outside production the response carries extended diagnostics.
    """
    detail: Dict[str, Any] = {"error": message, "details": str(exc) or type(exc).__name__}
    if not get_settings().is_production:
        error_details: Dict[str, Any] = {"name": type(exc).__name__, "message": str(exc)}
        for attr in ("pgcode", "pgerror"):
            val = getattr(exc, attr, None)
            if val:
                error_details[attr] = val
        detail["errorDetails"] = error_details
    return HTTPException(status_code=status_code, detail=detail)
