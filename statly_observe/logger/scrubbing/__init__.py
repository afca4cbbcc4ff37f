"""Secret scrubbing for log messages, context and event payloads."""

from .patterns import (
    DEFAULT_PATTERNS,
    REDACTED,
    SCRUB_PATTERNS,
    SENSITIVE_KEYS,
    ScrubPattern,
    get_pattern,
    is_sensitive_key,
)
from .scrubber import Scrubber

__all__ = [
    "Scrubber",
    "ScrubPattern",
    "REDACTED",
    "SENSITIVE_KEYS",
    "SCRUB_PATTERNS",
    "DEFAULT_PATTERNS",
    "get_pattern",
    "is_sensitive_key",
]
