from __future__ import annotations

import math
import re
from typing import Any

from .errors import ValidationError


# Identities are opaque principal strings (addresses, DIDs, account names)
MAX_IDENTITY_LENGTH = 128
MAX_SHORT_TEXT_LENGTH = 255
MAX_LONG_TEXT_LENGTH = 4096

# SHA-256 digests travel as 64 lowercase hex characters
DIGEST_HEX_LENGTH = 64
_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")


def require_identity(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an identity string")
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"{field} is required")
    if len(stripped) > MAX_IDENTITY_LENGTH:
        raise ValidationError(f"{field} must be at most {MAX_IDENTITY_LENGTH} characters")
    return stripped


def require_text(value: Any, field: str, *, max_length: int = MAX_SHORT_TEXT_LENGTH) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"{field} is required")
    if len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped


def optional_text(value: Any, field: str, *, max_length: int = MAX_SHORT_TEXT_LENGTH) -> str | None:
    """None and blank strings both mean "not provided"."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped


def require_digest(value: Any, field: str) -> str:
    """
    Normalize a precomputed SHA-256 digest.

    Accepts 32 raw bytes or 64 hex characters (any case, optional 0x prefix).
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != DIGEST_HEX_LENGTH // 2:
            raise ValidationError(f"{field} must be {DIGEST_HEX_LENGTH // 2} bytes")
        return bytes(value).hex()
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a hex digest")
    normalized = value.strip().lower()
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    if not _DIGEST_RE.match(normalized):
        raise ValidationError(f"{field} must be {DIGEST_HEX_LENGTH} hex characters")
    return normalized


def require_tick(value: Any, field: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer counter value")
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


def require_id(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


def optional_float(value: Any, field: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError(f"{field} is out of range") from None
    # NaN and infinities do not survive a database round trip unchanged
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    return value
