"""dsn.py - Connection string parsing and endpoint derivation.

A DSN looks like ``https://<key-prefix>@<host>/<org-slug>``. The key prefix is
a public-safe token; the SDK sends the whole DSN verbatim in the
``X-Statly-DSN`` header and never treats it as a secret.

Endpoints are built from the DSN's scheme and host plus a fixed ingestion
path. A DSN that cannot be parsed never raises: it falls back to the default
host and logs a warning.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

_log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://statly.live"
EVENTS_PATH = "/api/v1/observe/ingest"
LOGS_PATH = "/api/v1/logs/ingest"
AI_PATH = "/api/v1/logs/ai"


class Dsn:
    """Parsed parts of a connection string.

    Example:
        >>> dsn = Dsn.parse("https://sk_live_ab12cd34@statly.live/acme")
        >>> dsn.host, dsn.org_slug, dsn.key_prefix
        ('statly.live', 'acme', 'sk_live_ab12cd34')
    """

    __slots__ = ("raw", "scheme", "host", "key_prefix", "org_slug")

    def __init__(
        self,
        raw: str,
        scheme: str,
        host: str,
        key_prefix: Optional[str] = None,
        org_slug: Optional[str] = None,
    ) -> None:
        self.raw = raw
        self.scheme = scheme
        self.host = host
        self.key_prefix = key_prefix
        self.org_slug = org_slug

    @classmethod
    def parse(cls, raw: str) -> "Dsn":
        """Parse ``raw`` into its parts.

        Raises:
            ValueError: If ``raw`` has no scheme or host.
        """
        if not isinstance(raw, str):
            raise ValueError(f"DSN must be a string, got {type(raw).__name__}")
        parts = urlsplit(raw.strip())
        # .port raises ValueError on a non-numeric port.
        port = parts.port
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"Invalid DSN: {raw!r}")
        host = parts.hostname
        if ":" in host:
            # IPv6 literal; urlsplit strips the brackets.
            host = f"[{host}]"
        if port is not None:
            host = f"{host}:{port}"
        org_slug = parts.path.strip("/") or None
        return cls(raw, parts.scheme, host, parts.username or None, org_slug)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Dsn(host={self.host!r}, org_slug={self.org_slug!r})"


def endpoint_for(dsn: str, path: str) -> str:
    """Return ``<scheme>://<host><path>`` for ``dsn``, or the default host on bad input."""
    try:
        return Dsn.parse(dsn).base_url + path
    except ValueError:
        _log.warning("Malformed DSN %r, falling back to %s", dsn, DEFAULT_BASE_URL)
        return DEFAULT_BASE_URL + path
