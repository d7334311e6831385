"""
Batch Runner - processes an ordered record list through the service.

Records run strictly in input order. The cancel flag is only checked
between records, so a record already in flight always finishes.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Sequence
import structlog

from dossier.core.errors import BatchCancelledError
from dossier.core.models import Decision, Record, RecordStatus
from dossier.orchestrator.service import AutomationService
from dossier.workflows.merge import find_existing_output, list_outputs

logger = structlog.get_logger()


@dataclass
class BatchSummary:
    """Counts by terminal status."""
    success: int = 0
    failed: int = 0
    skipped: int = 0
    paused: int = 0
    pending: int = 0
    cancelled: bool = False

    @classmethod
    def from_records(cls, records: Sequence[Record], cancelled: bool = False) -> "BatchSummary":
        counts = {status: 0 for status in RecordStatus}
        for record in records:
            counts[record.status] += 1
        return cls(
            success=counts[RecordStatus.SUCCESS],
            failed=counts[RecordStatus.FAILED],
            skipped=counts[RecordStatus.SKIPPED],
            paused=counts[RecordStatus.PAUSED_FOR_REVIEW],
            pending=counts[RecordStatus.PENDING],
            cancelled=cancelled,
        )

    def describe(self) -> str:
        text = f"Complete: {self.success} successful, {self.failed} failed"
        if self.skipped:
            text += f", {self.skipped} skipped"
        if self.paused:
            text += f", {self.paused} paused for review"
        if self.cancelled:
            text += f" (cancelled, {self.pending} not started)"
        return text


@dataclass
class BatchResult:
    records: list[Record] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)


class BatchRunner:
    """Caller-side loop around the automation service."""

    def __init__(self, service: AutomationService):
        self.service = service
        self.events = service.events
        self._cancel = asyncio.Event()

    def cancel(self) -> None:
        """Request a stop; takes effect before the next record."""
        if not self._cancel.is_set():
            logger.info("batch_cancel_requested")
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    async def run_decisions(
        self,
        records: Sequence[Record],
        process_accepts: bool = True,
        process_rejects: bool = True,
    ) -> BatchResult:
        """Apply each record's accept/reject decision."""
        accepts = sum(1 for r in records if r.decision == Decision.ACCEPT)
        rejects = sum(1 for r in records if r.decision == Decision.REJECT)
        self.events.log(
            f"{len(records)} records to process (Accepts: {accepts}, Rejects: {rejects})"
        )

        async def handle(record: Record) -> None:
            if record.decision == Decision.ACCEPT and process_accepts:
                await self.service.process_accept(record)
            elif record.decision == Decision.REJECT and process_rejects:
                await self.service.process_reject(record)
            else:
                self._skip(record, f"Skipped {record.identifier} (Decision: {record.decision.value})")
                return

            if record.status == RecordStatus.SUCCESS:
                await self._return_to_search()

        return await self._run(records, handle)

    async def run_merge(self, records: Sequence[Record], output_dir: Path) -> BatchResult:
        """Merge and download overviews, skipping records already downloaded."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        self.events.log(f"Download path: {output_dir}")
        # Scanned once; files downloaded during this run never cause a skip.
        outputs = list_outputs(output_dir)

        async def handle(record: Record) -> None:
            existing = find_existing_output(record.identifier, outputs)
            if existing is not None:
                self._skip(
                    record,
                    f"SKIPPED {record.identifier}: {existing.name} already exists in {output_dir.name}",
                )
                return
            await self.service.process_merge(record, output_dir)

        return await self._run(records, handle)

    async def _run(
        self,
        records: Sequence[Record],
        handle: Callable[[Record], Awaitable[None]],
    ) -> BatchResult:
        targets = list(records)
        if self.service.debug and targets:
            self.events.log("DEBUG MODE: Processing only FIRST record")
            targets = targets[:1]

        cancelled = False
        try:
            for record in targets:
                if self.cancel_requested:
                    raise BatchCancelledError()
                if record.status != RecordStatus.PENDING:
                    self.events.log(
                        f"Not processing {record.identifier}: already {record.status.value}"
                    )
                    continue
                await handle(record)
        except BatchCancelledError as e:
            cancelled = True
            self.events.warning(e.message)

        if self.service.debug:
            self.events.log("DEBUG MODE COMPLETE: Browser paused for inspection.")
        else:
            self.events.log("Processing complete.")

        summary = BatchSummary.from_records(records, cancelled=cancelled)
        self.events.log(summary.describe())
        logger.info(
            "batch_complete",
            success=summary.success,
            failed=summary.failed,
            skipped=summary.skipped,
            paused=summary.paused,
            cancelled=cancelled,
        )
        return BatchResult(records=list(records), summary=summary)

    def _skip(self, record: Record, message: str) -> None:
        record.skip()
        self.events.log(message)
        self.events.status_changed(record)

    async def _return_to_search(self) -> None:
        try:
            await self.service.navigate_to_entry()
        except Exception as e:
            logger.warning("return_to_search_failed", error=str(e))
            self.events.warning(f"Could not return to search screen: {e}")
