"""Core dossier components."""

from .config import ConfigLoader, AutomationConfig
from .events import EventChannel, LogLine, StatusChange
from .models import Decision, Record, RecordStatus
from .errors import (
    DossierError,
    ConfigError,
    ElementNotFoundError,
    WaitTimeoutError,
    AmbiguousMatchError,
    ReasonNotFoundError,
    InvalidInputError,
    BatchCancelledError,
    SessionNotReadyError,
)

__all__ = [
    "ConfigLoader",
    "AutomationConfig",
    "EventChannel",
    "LogLine",
    "StatusChange",
    "Decision",
    "Record",
    "RecordStatus",
    "DossierError",
    "ConfigError",
    "ElementNotFoundError",
    "WaitTimeoutError",
    "AmbiguousMatchError",
    "ReasonNotFoundError",
    "InvalidInputError",
    "BatchCancelledError",
    "SessionNotReadyError",
]
