"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Errors raised by the save, evaluate and delete workflows and
by the storage layer beneath them.

- One base class, one subclass per failure the caller can see
- Enables specific error handling at the workflow boundary
- Every error carries key=value context for the log line

============================================================
EXCEPTION HIERARCHY
============================================================
RiskEngineException (base)
├── ConfigurationError
├── NotFoundError
├── UnprocessableDataError
├── InvalidStateTransitionError
└── PersistenceError

Matrix inconsistencies are NOT exceptions. They are reported
as validation messages and the caller decides what to do.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Informational only."""

    MEDIUM = "medium"
    """Moderate issue, caller should correct the request."""

    HIGH = "high"
    """Serious issue, infrastructure or configuration broken."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of who has to act on an error."""

    CLIENT = "client"
    """The request was wrong; the caller can self-correct."""

    TRANSIENT = "transient"
    """Temporary error, the transaction collaborator may retry."""

    NON_RECOVERABLE = "non_recoverable"
    """Broken setup; someone has to fix configuration or code."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class RiskEngineException(Exception):
    """
    Base exception for all risk definition engine errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: UTC moment of construction
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.CLIENT

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_client_error(self) -> bool:
        """Check if the caller can fix the request and try again."""
        return self.classification == ErrorClassification.CLIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Single log line: severity, type, message, then key=value context."""
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        if details:
            line += f" | {details}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(RiskEngineException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LOOKUP ERRORS
# ============================================================

class NotFoundError(RiskEngineException):
    """
    A referenced domain or risk definition does not exist.

    Also raised for inactive domains: an inactive domain is
    treated as absent by every workflow.
    """

    def __init__(
        self,
        message: str,
        domain_id: Optional[Any] = None,
        risk_definition_ref: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if domain_id is not None:
            context["domain_id"] = str(domain_id)
        if risk_definition_ref is not None:
            context["risk_definition_ref"] = risk_definition_ref

        super().__init__(message, context=context, **kwargs)
        self.domain_id = domain_id
        self.risk_definition_ref = risk_definition_ref


# ============================================================
# REQUEST ERRORS
# ============================================================

class UnprocessableDataError(RiskEngineException):
    """
    The request is well-formed but cannot be applied.

    Raised by the save gate when a detected change kind is not
    in the caller's allow-list. Carries the permissible kinds so
    the caller can self-correct.
    """

    def __init__(
        self,
        message: str,
        allowed_changes: Optional[Iterable[Any]] = None,
        rejected_changes: Optional[Iterable[Any]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        self.allowed_changes: List[Any] = list(allowed_changes or [])
        self.rejected_changes: List[Any] = list(rejected_changes or [])

        if self.allowed_changes:
            context["allowed_changes"] = [str(c) for c in self.allowed_changes]
        if self.rejected_changes:
            context["rejected_changes"] = [str(c) for c in self.rejected_changes]

        super().__init__(message, context=context, **kwargs)


class InvalidStateTransitionError(RiskEngineException):
    """A workflow state machine was driven through a forbidden transition."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(RiskEngineException):
    """Database operation failed inside a transaction scope."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation
        if table:
            context["table"] = table

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "RiskEngineException",
    "ConfigurationError",
    "NotFoundError",
    "UnprocessableDataError",
    "InvalidStateTransitionError",
    "PersistenceError",
]
