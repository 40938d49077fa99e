"""Secret / token / stack-trace sanitizer for log output.

Bearer tokens travel in every authenticated request, so anything that looks
like one is redacted before it reaches a log line.

Three-tier string processing:
 1. > MAX_STR_LOG       -> truncate + sha256, never run regex
 2. > MAX_STR_FOR_REGEX -> prefix check only (Bearer)
 3. <= MAX_STR_FOR_REGEX -> full regex replacement

Patterns are anchored to non-whitespace (\\S+) and pre-compiled at import.
"""

import hashlib
import re
import traceback
from typing import Any

MAX_STR_LOG: int = 2048
MAX_STR_FOR_REGEX: int = 512
MAX_DEPTH: int = 6

# Sensitive dict keys (lower-cased for comparison)
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization", "token", "access_token", "app_token",
    "jwt", "jwt_secret", "secret", "signature", "password",
})

_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Bearer \S+"),
    # Compact JWS: three base64url segments, header always starts with "eyJ"
    re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
    re.compile(r"token=\S+"),
]

_BEARER_PREFIX = "Bearer "
_REDACTED = "[REDACTED]"


def sanitize_str(s: str) -> str:
    """Sanitize a string value according to the three-tier size gate."""
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)

    if n > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={n} sha256={digest}]"

    if n > MAX_STR_FOR_REGEX:
        if s.startswith(_BEARER_PREFIX):
            return _REDACTED
        return s

    result = s
    for pattern in _PATTERNS:
        result = pattern.sub(_REDACTED, result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a log extra value.

    - dict: redact sensitive keys, recurse others
    - list/tuple: recurse each element
    - str: run sanitize_str()
    - other: return as-is
    """
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        result: dict[str, Any] = {}
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS:
                result[key] = _REDACTED
            else:
                result[key] = sanitize_obj(value, depth + 1)
        return result

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def sanitize_exc(exc_info: tuple) -> str:
    """Format an exc_info tuple into a sanitized traceback string.

    capture_locals=False keeps local variable values (tokens, secrets) out.
    """
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        return sanitize_str("".join(te.format()))
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
