"""Record model and status lifecycle."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dossier.core.errors import RecordStateError


class Decision(Enum):
    """Decision requested for a record."""
    ACCEPT = "accept"
    REJECT = "reject"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Decision":
        """Map free text to a decision; anything unrecognised is UNKNOWN."""
        text = (value or "").strip().lower()
        for decision in (cls.ACCEPT, cls.REJECT):
            if text == decision.value:
                return decision
        return cls.UNKNOWN


class RecordStatus(Enum):
    """Record processing status."""
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    PAUSED_FOR_REVIEW = "paused_for_review"

    @property
    def is_terminal(self) -> bool:
        return self not in (RecordStatus.PENDING, RecordStatus.PROCESSING)


@dataclass
class Record:
    """
    One row of a batch.

    Created by the caller, mutated only by the engine while it is being
    processed. Once the status is terminal it is never changed again.
    """
    identifier: str
    programme: str = ""
    decision: Decision = Decision.UNKNOWN
    forename: str = ""
    surname: str = ""
    status: RecordStatus = RecordStatus.PENDING
    error_message: str = ""

    @property
    def name(self) -> str:
        return f"{self.forename} {self.surname}".strip()

    def transition(self, status: RecordStatus, error: Optional[str] = None) -> None:
        """Move to a new status, refusing to leave a terminal one."""
        if self.status.is_terminal:
            raise RecordStateError(
                f"Record {self.identifier} is already {self.status.value}; "
                f"cannot move to {status.value}",
                identifier=self.identifier,
            )
        self.status = status
        if status == RecordStatus.FAILED:
            self.error_message = error or ""

    def begin(self) -> None:
        self.transition(RecordStatus.PROCESSING)

    def fail(self, error: str) -> None:
        self.transition(RecordStatus.FAILED, error)

    def skip(self) -> None:
        self.transition(RecordStatus.SKIPPED)
