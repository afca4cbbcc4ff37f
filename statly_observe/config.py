"""config.py - Client options and environment fallbacks.

``resolve_options()`` merges explicit keyword options with values taken from
the environment, so a host can call ``statly_observe.init()`` with nothing
but ``STATLY_DSN`` set.

DSN lookup order:        dsn=  ->  STATLY_DSN  ->  NEXT_PUBLIC_STATLY_DSN  ->  STATLY_OBSERVE_DSN
Environment lookup order: environment=  ->  STATLY_ENVIRONMENT  ->  ENVIRONMENT  ->  "production"
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

_log = logging.getLogger(__name__)

DSN_ENV_VARS = ("STATLY_DSN", "NEXT_PUBLIC_STATLY_DSN", "STATLY_OBSERVE_DSN")
ENVIRONMENT_ENV_VARS = ("STATLY_ENVIRONMENT", "ENVIRONMENT")
DEFAULT_ENVIRONMENT = "production"

BeforeSend = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


@dataclass
class ClientOptions:
    """Every option the client recognises, with its default."""

    dsn: str
    release: str = ""
    environment: str = DEFAULT_ENVIRONMENT
    debug: bool = False
    sample_rate: float = 1.0
    max_breadcrumbs: int = 100
    auto_capture: bool = True
    capture_console: bool = True
    capture_network: bool = False
    tags: Dict[str, str] = field(default_factory=dict)
    before_send: Optional[BeforeSend] = None

    def __post_init__(self) -> None:
        rate = self.sample_rate
        if not isinstance(rate, (int, float)) or not 0.0 <= rate <= 1.0:
            clamped = 1.0 if not isinstance(rate, (int, float)) else min(1.0, max(0.0, rate))
            _log.warning("sample_rate %r is outside [0, 1], using %s", rate, clamped)
            self.sample_rate = clamped
        if self.max_breadcrumbs < 0:
            _log.warning("max_breadcrumbs %r is negative, using 0", self.max_breadcrumbs)
            self.max_breadcrumbs = 0
        self.tags = dict(self.tags or {})


def _first_env(names, environ: Mapping[str, str]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def dsn_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    return _first_env(DSN_ENV_VARS, os.environ if environ is None else environ)


def environment_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    return _first_env(ENVIRONMENT_ENV_VARS, os.environ if environ is None else environ)


def resolve_options(
    environ: Optional[Mapping[str, str]] = None, **options: Any
) -> Optional[ClientOptions]:
    """Build ClientOptions from keywords plus environment fallbacks.

    Unknown keywords are ignored with a warning.

    Returns:
        The resolved options, or ``None`` when no DSN is available.
    """
    known = ClientOptions.__dataclass_fields__
    for name in [k for k in options if k not in known]:
        _log.warning("Ignoring unknown option %r", name)
        options.pop(name)

    dsn = options.pop("dsn", None) or dsn_from_env(environ)
    if not dsn:
        return None
    environment = (
        options.pop("environment", None)
        or environment_from_env(environ)
        or DEFAULT_ENVIRONMENT
    )
    options = {k: v for k, v in options.items() if v is not None}
    return ClientOptions(dsn=dsn, environment=environment, **options)
