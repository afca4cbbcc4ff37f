"""patterns.py - Built-in detectors for sensitive data.

Two kinds of detection are defined here:

    SENSITIVE_KEYS  - mapping keys whose values are always redacted,
                      compared case-insensitively.
    SCRUB_PATTERNS  - named regular expressions run over every string value
                      and every log message.
"""

import re
from typing import Dict, FrozenSet, NamedTuple, Pattern, Tuple

REDACTED = "[REDACTED]"

SENSITIVE_KEYS: FrozenSet[str] = frozenset(
    {
        "password",
        "passwd",
        "pwd",
        "secret",
        "api_key",
        "apikey",
        "api-key",
        "token",
        "access_token",
        "accesstoken",
        "refresh_token",
        "auth",
        "authorization",
        "bearer",
        "credential",
        "credentials",
        "private_key",
        "privatekey",
        "private-key",
        "secret_key",
        "secretkey",
        "secret-key",
        "session_id",
        "sessionid",
        "session-id",
        "session",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "x-access-token",
    }
)


class ScrubPattern(NamedTuple):
    regex: Pattern
    description: str


SCRUB_PATTERNS: Dict[str, ScrubPattern] = {
    "api_key": ScrubPattern(
        re.compile(r"""(?:api[_-]?key|apikey)\s*[=:]\s*["']?([a-zA-Z0-9_\-]{20,})["']?""", re.I),
        "API keys in various formats",
    ),
    "password": ScrubPattern(
        re.compile(r"""(?:password|passwd|pwd|secret)\s*[=:]\s*["']?([^"'\s]{3,})["']?""", re.I),
        "Passwords and secrets",
    ),
    "token": ScrubPattern(
        re.compile(r"""(?:bearer\s+|token\s*[=:]\s*["']?)([a-zA-Z0-9_\-.]{20,})["']?""", re.I),
        "Bearer tokens and auth tokens",
    ),
    "credit_card": ScrubPattern(
        # Visa, Mastercard, Amex, Discover, JCB, Diners.
        re.compile(
            r"\b(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|3[47][0-9]{13}"
            r"|6(?:011|5[0-9]{2})[0-9]{12}|(?:2131|1800|35\d{3})\d{11})\b"
        ),
        "Credit card numbers",
    ),
    "ssn": ScrubPattern(
        re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b"),
        "US Social Security Numbers",
    ),
    "email": ScrubPattern(
        re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b"),
        "Email addresses",
    ),
    "ip_address": ScrubPattern(
        re.compile(
            r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
            r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b"
        ),
        "IPv4 addresses",
    ),
    "aws_key": ScrubPattern(
        re.compile(r"(?:AKIA|ABIA|ACCA)[A-Z0-9]{16}"),
        "AWS Access Key IDs",
    ),
    "private_key": ScrubPattern(
        re.compile(
            r"-----BEGIN (?:RSA |EC |DSA )?PRIVATE KEY-----[\s\S]*?"
            r"-----END (?:RSA |EC |DSA )?PRIVATE KEY-----"
        ),
        "Private keys in PEM format",
    ),
    "jwt": ScrubPattern(
        re.compile(r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"),
        "JSON Web Tokens",
    ),
}

# Email and IP addresses are opt-in; they are too common in ordinary logs.
DEFAULT_PATTERNS: Tuple[str, ...] = (
    "api_key",
    "password",
    "token",
    "credit_card",
    "ssn",
    "aws_key",
    "private_key",
    "jwt",
)


def is_sensitive_key(key: str) -> bool:
    """Return True if ``key`` names a field that is always redacted."""
    return key.lower() in SENSITIVE_KEYS


def get_pattern(name: str) -> Pattern:
    """Return the compiled regex for a built-in pattern name.

    Raises:
        KeyError: If ``name`` is not a built-in pattern.
    """
    return SCRUB_PATTERNS[name].regex
