"""Per-record workflows driven against the remote records system."""

from .locator import RecordLocator
from .decision import DecisionRecorder
from .merge import MergeWorkflow, find_existing_output, list_outputs

__all__ = ["RecordLocator", "DecisionRecorder", "MergeWorkflow", "find_existing_output", "list_outputs"]
