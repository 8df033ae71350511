"""
Explicit units for timing values.

Every timing value in SiteGrade is a ``Duration``. Thresholds are Durations too,
so a bare number can never be compared against a threshold by accident.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Duration:
    """A non-negative span of time stored in milliseconds."""

    milliseconds: float

    def __post_init__(self) -> None:
        if isinstance(self.milliseconds, bool) or not isinstance(self.milliseconds, (int, float)):
            raise TypeError("Duration requires a numeric millisecond value")
        if not math.isfinite(self.milliseconds) or self.milliseconds < 0:
            raise ValueError(f"Duration must be finite and non-negative, got {self.milliseconds!r}")
        object.__setattr__(self, "milliseconds", float(self.milliseconds))

    @classmethod
    def from_milliseconds(cls, value: float) -> Duration:
        return cls(float(value))

    @classmethod
    def from_seconds(cls, value: float) -> Duration:
        return cls(float(value) * 1000.0)

    @property
    def seconds(self) -> float:
        return self.milliseconds / 1000.0

    def _coerce(self, other: Any) -> float:
        if not isinstance(other, Duration):
            raise TypeError(f"Cannot compare Duration with {type(other).__name__}; wrap the value in a Duration")
        return other.milliseconds

    def __lt__(self, other: Any) -> bool:
        return self.milliseconds < self._coerce(other)

    def __le__(self, other: Any) -> bool:
        return self.milliseconds <= self._coerce(other)

    def __gt__(self, other: Any) -> bool:
        return self.milliseconds > self._coerce(other)

    def __ge__(self, other: Any) -> bool:
        return self.milliseconds >= self._coerce(other)

    def __str__(self) -> str:
        return f"{self.milliseconds:.0f} ms"
