"""Logging setup and redaction of credentials before they reach log lines."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict


_SENSITIVE_KEYS = re.compile(
    r"(token|secret|api[_-]?key|password|authorization)", re.IGNORECASE
)
_REDACTED = "***REDACTED***"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _redact(key, value) for key, value in payload.items()}


def _redact(key: str, value: Any) -> Any:
    if _SENSITIVE_KEYS.search(key):
        return _REDACTED
    if isinstance(value, dict):
        return redact_payload(value)
    if isinstance(value, list):
        return [redact_payload(item) if isinstance(item, dict) else item for item in value]
    return value
