"""
Typed failures for the grading pipeline.

Fetch and configuration problems abort a run. Adapter outages and extraction
warnings never surface as exceptions; they are carried as data instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class SiteGradeError(Exception):
    """Base class for all SiteGrade failures."""

    pass


class FetchErrorKind(Enum):
    """Why the target could not be fetched."""

    TIMEOUT = "timeout"
    TOO_LARGE = "too_large"
    UNREACHABLE = "unreachable"
    FORBIDDEN = "forbidden"


class FetchError(SiteGradeError):
    """Raised when the target page cannot be fetched or is policy-blocked."""

    def __init__(self, kind: FetchErrorKind, url: str, message: Optional[str] = None) -> None:
        self.kind = kind
        self.url = url
        self.message = message or kind.value
        super().__init__(f"{kind.value}: {self.message} ({url})")


class ConfigError(SiteGradeError):
    """Raised for invalid configuration, such as a malformed weight table."""

    pass


class BudgetExhaustedError(SiteGradeError):
    """Raised when the outbound request queue is full."""

    pass


class ForbiddenDestinationError(OSError):
    """A destination address violates the outbound destination policy.

    Subclasses ``OSError`` so aiohttp surfaces it unchanged when raised from a
    resolver during connection setup.
    """

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Destination {target!r} is not permitted: {reason}")
