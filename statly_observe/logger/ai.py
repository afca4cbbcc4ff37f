"""ai.py - AI-assisted error explanation and log analysis.

AIFeatures calls three endpoints under ``<scheme>://<host>/api/v1/logs/ai``:

    POST /explain           {"error": ..., "model": ...}
    POST /suggest-fix       {"error": ..., "context": ..., "model": ...}
    POST /analyze-patterns  {"logs": [...first 1000...], "model": ...}

These calls never raise. When the feature is disabled or a request fails, a
fixed fallback dict with the same keys as a real response is returned.
"""

import logging
import traceback
from typing import Any, Dict, Iterable, Optional, Union

import httpx

from ..dsn import AI_PATH, endpoint_for
from ..transport import DSN_HEADER, encode_payload
from .levels import LogEntry

_log = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-haiku-20240307"
MAX_PATTERN_LOGS = 1000

ErrorInput = Union[BaseException, LogEntry, Dict[str, Any], str]


def normalize_error(error: ErrorInput) -> Dict[str, Any]:
    """Reduce an exception, LogEntry or string to ``{message, stack?, type?, context?}``."""
    if isinstance(error, str):
        return {"message": error}
    if isinstance(error, BaseException):
        return {
            "message": str(error),
            "stack": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            "type": type(error).__name__,
        }
    if isinstance(error, LogEntry):
        error = error.to_dict()
    context = error.get("context") or {}
    normalized = {"message": error.get("message", ""), "context": context}
    if context.get("stack"):
        normalized["stack"] = context["stack"]
    if context.get("errorType"):
        normalized["type"] = context["errorType"]
    return normalized


class AIFeatures:
    """Client for the AI analysis endpoints."""

    def __init__(
        self,
        dsn: str,
        enabled: bool = True,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        endpoint: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.dsn = dsn
        self.enabled = enabled
        self.api_key = api_key
        self.model = model
        self.endpoint = (endpoint or endpoint_for(dsn, AI_PATH)).rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def explain_error(self, error: ErrorInput) -> Dict[str, Any]:
        fallback = {"summary": "Failed to get AI explanation", "possibleCauses": []}
        if not self.enabled:
            return {"summary": "AI features are disabled", "possibleCauses": []}
        body = {"error": normalize_error(error), "model": self.model}
        return self._post("/explain", body, fallback)

    def suggest_fix(
        self, error: ErrorInput, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Ask for fixes. ``context`` may carry ``code``, ``file`` and ``language``."""
        fallback = {"summary": "Failed to get AI fix suggestion", "suggestedFixes": []}
        if not self.enabled:
            return {"summary": "AI features are disabled", "suggestedFixes": []}
        body = {"error": normalize_error(error), "context": context, "model": self.model}
        return self._post("/suggest-fix", body, fallback)

    def analyze_patterns(self, logs: Iterable[Union[LogEntry, Dict[str, Any]]]) -> Dict[str, Any]:
        fallback = {
            "patterns": [],
            "summary": "Failed to analyze patterns",
            "recommendations": [],
        }
        if not self.enabled:
            return {"patterns": [], "summary": "AI features are disabled", "recommendations": []}
        payload = []
        for log in logs:
            if len(payload) >= MAX_PATTERN_LOGS:
                break
            payload.append(log.to_dict() if isinstance(log, LogEntry) else log)
        return self._post("/analyze-patterns", {"logs": payload, "model": self.model}, fallback)

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, body: Dict[str, Any], fallback: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", DSN_HEADER: self.dsn}
        if self.api_key:
            headers["X-AI-API-Key"] = self.api_key
        try:
            response = self._client.post(
                self.endpoint + path, content=encode_payload(body), headers=headers
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _log.error("AI request to %s failed: %s", path, exc)
            return fallback
        if not isinstance(result, dict):
            _log.error("AI request to %s returned %s, expected an object", path, type(result).__name__)
            return fallback
        return result
