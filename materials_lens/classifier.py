"""Decide whether a failure is a quota/rate-limit hiccup or fatal."""
from enum import Enum
from typing import Optional

from materials_lens.constants import (
    EXCEEDED_COMPANIONS,
    EXCEEDED_MARKER,
    HTTP_TOO_MANY_REQUESTS,
    STATUS_HINTS,
    TRANSIENT_MARKERS,
)


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


def is_usage_limit(message: Optional[str]) -> bool:
    match message:
        case str() as m if m:
            lowered = m.lower()
        case _:
            return False
    return any(marker in lowered for marker in TRANSIENT_MARKERS) or (
        EXCEEDED_MARKER in lowered
        and any(companion in lowered for companion in EXCEEDED_COMPANIONS)
    )


def classify(message: Optional[str], status_code: Optional[int] = None) -> ErrorKind:
    match (status_code, is_usage_limit(message)):
        case (code, _) if code == HTTP_TOO_MANY_REQUESTS:
            return ErrorKind.TRANSIENT
        case (_, True):
            return ErrorKind.TRANSIENT
        case _:
            return ErrorKind.FATAL


def status_hint(status_code: Optional[int]) -> Optional[str]:
    """Troubleshooting tip for common HTTP failure codes."""
    match status_code:
        case int() as code:
            return STATUS_HINTS.get(code)
        case _:
            return None
