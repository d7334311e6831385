"""Orchestration: the service control surface and the batch loop."""

from .service import AutomationService
from .batch import BatchRunner, BatchResult, BatchSummary

__all__ = ["AutomationService", "BatchRunner", "BatchResult", "BatchSummary"]
