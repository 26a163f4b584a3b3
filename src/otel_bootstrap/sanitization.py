"""Redact credentials from exporter errors before they are reported.

Export failures often echo the collector URL or request headers back in the
exception text. Flush reports go to stderr and span status descriptions, so
they pass through sanitize_error_message first.
"""

from __future__ import annotations

import re

# header/key names whose values must never be reported
_SECRET_VALUE_PATTERN = re.compile(
    r"(?P<key>password|api[_-]?key|x-api-key|token|secret|authorization|credential)"
    r"(?P<sep>\s*[=:]\s*)"
    r"(?P<value>(?:bearer\s+|basic\s+)?[^\s,;'\"}]+)",
    re.IGNORECASE,
)
_URL_USERINFO_PATTERN = re.compile(r"://[^@/\s]+@")

REDACTED = "<REDACTED>"


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Redact URL user-info and secret key/value pairs, then truncate.

    Args:
        msg: Raw error text.
        max_length: Maximum length of the returned text.

    Returns:
        Sanitized and truncated text.

    Example:
        >>> sanitize_error_message("401 from https://user:pw@collector:4318, authorization: Bearer abc")
        '401 from https://<REDACTED>@collector:4318, authorization: <REDACTED>'
    """
    sanitized = _URL_USERINFO_PATTERN.sub(f"://{REDACTED}@", msg)
    sanitized = _SECRET_VALUE_PATTERN.sub(
        lambda m: f"{m.group('key')}{m.group('sep')}{REDACTED}", sanitized
    )
    return sanitized[:max_length]


__all__ = ["REDACTED", "sanitize_error_message"]
