"""
External signal adapters.

Each adapter wraps one third-party signal source and always returns an
``AdapterResult``: a value, an explicit unavailability, or an error.
"""

from .base import SignalAdapter
from .performance import PerformanceAdapter, parse_performance_payload
from .result import (
    AdapterResult,
    Error,
    PerformanceMetrics,
    Unavailable,
    ValidatorMessage,
    ValidatorOutcome,
    Value,
    value_or_none,
)
from .validator import MarkupValidatorAdapter, parse_validator_payload

__all__ = [
    "AdapterResult",
    "Error",
    "MarkupValidatorAdapter",
    "PerformanceAdapter",
    "PerformanceMetrics",
    "SignalAdapter",
    "Unavailable",
    "ValidatorMessage",
    "ValidatorOutcome",
    "Value",
    "parse_performance_payload",
    "parse_validator_payload",
    "value_or_none",
]
