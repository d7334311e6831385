"""Dossier error definitions."""

from typing import Optional, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification."""
    LOW = "low"           # Record-level, batch continues
    MEDIUM = "medium"     # Record-level, recovery navigation needed
    HIGH = "high"         # Run-level, caller must intervene


class ErrorCategory(Enum):
    """Error categories for routing and reporting."""
    TRANSIENT = "transient"       # Slow page, missing control - may resolve on a later run
    PERMANENT = "permanent"       # Config or programming error
    VALIDATION = "validation"     # Record input failure
    MATCHING = "matching"         # Heuristic found no acceptable candidate
    CONTROL = "control"           # Caller-requested stop


class DossierError(Exception):
    """Base exception for all dossier errors."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        context: Optional[dict[str, Any]] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "retryable": self.retryable,
        }


class ConfigError(DossierError):
    """Configuration or records file loading/validation error."""

    def __init__(self, message: str, config_path: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.PERMANENT)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["config_path"] = config_path


class SessionNotReadyError(DossierError):
    """A per-record operation was invoked before initialise/login succeeded."""

    def __init__(self, message: str = "Session not initialised or not logged in.", **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.PERMANENT)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class RecordStateError(DossierError):
    """Illegal record status transition."""

    def __init__(self, message: str, identifier: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.PERMANENT)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["identifier"] = identifier


class BrowserError(DossierError):
    """Browser automation error."""

    def __init__(
        self,
        message: str,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.context["selector"] = selector
        self.context["url"] = url


class ElementNotFoundError(BrowserError):
    """An expected control or element is missing from the page."""


class WaitTimeoutError(BrowserError):
    """A bounded wait ran out before the page reached the expected state."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.context["timeout_seconds"] = timeout_seconds


class AmbiguousMatchError(DossierError):
    """No search result row satisfied both the identifier and the resolved code."""

    def __init__(self, identifier: str, resolved_code: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.MATCHING)
        kwargs.setdefault("retryable", False)
        super().__init__(
            f"Could not find link in row with identifier='{identifier}' "
            f"AND code='{resolved_code}'",
            **kwargs,
        )
        self.identifier = identifier
        self.resolved_code = resolved_code
        self.context["identifier"] = identifier
        self.context["resolved_code"] = resolved_code


class ReasonNotFoundError(DossierError):
    """No dropdown option satisfied the reject-reason rule."""

    def __init__(self, options: list[str], **kwargs):
        kwargs.setdefault("category", ErrorCategory.MATCHING)
        kwargs.setdefault("retryable", False)
        listing = "\n".join(f"  {i}: {text}" for i, text in enumerate(options))
        super().__init__(
            f"Could not find a matching reject reason option\n{listing}".rstrip(),
            **kwargs,
        )
        self.options = list(options)
        self.context["option_count"] = len(options)


class InvalidInputError(DossierError):
    """A required record field is empty."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["field"] = field


class BatchCancelledError(DossierError):
    """Caller-requested stop observed between records."""

    def __init__(self, message: str = "Processing cancelled by user.", **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        kwargs.setdefault("category", ErrorCategory.CONTROL)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
