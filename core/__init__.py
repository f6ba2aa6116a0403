"""
Core Module Package.

This package contains the shared infrastructure components
that the engine packages depend on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
"""

from .clock import ClockProtocol, SystemClock, FixedClock, ClockFactory, now_utc
from .exceptions import (
    Severity,
    ErrorClassification,
    RiskEngineException,
    ConfigurationError,
    NotFoundError,
    UnprocessableDataError,
    InvalidStateTransitionError,
    PersistenceError,
)

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "FixedClock",
    "ClockFactory",
    "now_utc",
    "Severity",
    "ErrorClassification",
    "RiskEngineException",
    "ConfigurationError",
    "NotFoundError",
    "UnprocessableDataError",
    "InvalidStateTransitionError",
    "PersistenceError",
]
