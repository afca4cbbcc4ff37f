"""instrument.py - Optional @traced decorator for span-per-call tracing.

The @traced decorator runs every call of the wrapped function inside a span
from the default TelemetryProvider. The bound call arguments are stored as
span metadata so a failing span shows what it was called with.

Usage:
    from statly_observe import traced

    @traced
    def process_payment(user_id: int, amount: float) -> Receipt:
        ...

    @traced("checkout.submit", tags={"component": "checkout"})
    async def submit(cart):
        ...

Note:
    Argument values are recorded with ``repr()`` and truncated, and they are
    not scrubbed. Do not decorate functions that take secrets as arguments.
"""

import functools
import inspect
from typing import Any, Callable, Dict, Optional

from .telemetry import get_provider

_MAX_ARG_REPR = 200


def _bound_arguments(func: Callable, args: tuple, kwargs: dict) -> Dict[str, str]:
    # C-extension callables and odd signatures fall back to no metadata.
    try:
        sig = inspect.signature(func)
        bound = sig.bind(*args, **kwargs)
        bound.apply_defaults()
    except (TypeError, ValueError):
        return {}
    return {k: repr(v)[:_MAX_ARG_REPR] for k, v in bound.arguments.items()}


def traced(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Any:
    """Decorator that wraps each call of ``func`` in a span.

    Can be applied bare (``@traced``), with a span name as the only
    positional argument (``@traced("name")``), or with keywords.

    Args:
        func: The callable to wrap. Regular functions, methods and coroutine
            functions are supported.
        name: Span name. Defaults to the function's ``__qualname__``.
        tags: Tags copied onto every span.

    Returns:
        The wrapped callable (or a decorator when used with arguments).

    Raises:
        Any exception raised by ``func`` is re-raised unchanged after the
        span is marked as failed.
    """
    if isinstance(func, str):
        return traced(name=func, tags=tags)
    if func is None:
        return lambda f: traced(f, name=name, tags=tags)

    span_name = name or func.__qualname__

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with get_provider().span(span_name, tags) as span:
                span.set_metadata("arguments", _bound_arguments(func, args, kwargs))
                return await func(*args, **kwargs)

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with get_provider().span(span_name, tags) as span:
            span.set_metadata("arguments", _bound_arguments(func, args, kwargs))
            return func(*args, **kwargs)

    return wrapper
