"""
Tagged outcome of an external signal lookup.

An ``AdapterResult`` is exactly one of ``Value``, ``Unavailable`` or ``Error``.
Consumers must branch on the variant; there is no default value to fall back
on when a source is down.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Mapping, Optional, Tuple, TypeVar, Union

from sitegrade.units import Duration

T = TypeVar("T")


@dataclass(frozen=True)
class Value(Generic[T]):
    value: T
    status = "value"

    def is_value(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Unavailable:
    reason: str
    status = "unavailable"

    def is_value(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Error:
    cause: str
    status = "error"

    def is_value(self) -> bool:
        return False


AdapterResult = Union[Value[T], Unavailable, Error]


def value_or_none(result: AdapterResult[T]) -> Optional[T]:
    """Return the payload of a ``Value`` and ``None`` for anything else."""
    if isinstance(result, Value):
        return result.value
    return None


def describe(result: AdapterResult[T]) -> str:
    if isinstance(result, Unavailable):
        return f"unavailable ({result.reason})"
    if isinstance(result, Error):
        return f"error ({result.cause})"
    return "available"


# ============================================================================
# Payloads
# ============================================================================


@dataclass(frozen=True, slots=True)
class ValidatorMessage:
    message: str
    line: Optional[int] = None
    extract: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ValidatorOutcome:
    """Markup validator verdict. Only ``error`` messages affect validity."""

    is_valid: bool
    errors: Tuple[ValidatorMessage, ...] = ()


@dataclass(frozen=True)
class PerformanceMetrics:
    """Performance measurements with every timing expressed as a Duration.

    ``timings`` keys: ``lcp``, ``fcp``, ``tbt``, ``inp``, ``ttfb``,
    ``speed_index``. ``layout_shift`` is the unitless CLS value.
    ``mobile_audits`` maps audit ids to pass/fail.
    """

    timings: Mapping[str, Duration]
    layout_shift: Optional[float] = None
    source: str = "lab"
    mobile_audits: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, timing in self.timings.items():
            if not isinstance(timing, Duration):
                raise TypeError(f"Timing {name!r} must be a Duration, got {type(timing).__name__}")
