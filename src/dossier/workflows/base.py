"""Per-record failure boundary shared by the decision and merge workflows."""

from pathlib import Path
from typing import Awaitable, Callable
import structlog

from dossier.browser.context import PageContext
from dossier.core.config import AutomationConfig
from dossier.core.events import EventChannel
from dossier.core.models import Record, RecordStatus
from dossier.workflows.locator import RecordLocator

logger = structlog.get_logger()

Attempt = Callable[[PageContext, Record], Awaitable[RecordStatus]]


class RecordWorkflow:
    """
    Runs one attempt per record and always leaves it in a terminal status.

    Any exception raised by the attempt becomes a FAILED status with the
    message kept verbatim, followed by a best-effort return to the search
    screen so the next record can run.
    """

    def __init__(
        self,
        session,
        locator: RecordLocator,
        events: EventChannel,
        config: AutomationConfig,
    ):
        self.session = session
        self.locator = locator
        self.events = events
        self.config = config

    async def _run(self, record: Record, label: str, attempt: Attempt) -> Record:
        ctx = self.session.require_ready()

        record.begin()
        self.events.status_changed(record)

        try:
            outcome = await attempt(ctx, record)
            record.transition(outcome)
        except Exception as e:
            record.fail(str(e))
            logger.warning(
                "record_failed",
                identifier=record.identifier,
                workflow=label,
                error=getattr(e, "to_dict", lambda: str(e))(),
            )
            self.events.warning(f"FAILED {record.identifier}: {e}")
            await self._capture_failure(ctx, record)
            await self._recover()
        else:
            if outcome == RecordStatus.PAUSED_FOR_REVIEW:
                self.events.log(f"PAUSED {record.identifier}: {label} awaiting manual review")
            else:
                self.events.log(f"SUCCESS: {label} processed for {record.identifier}")

        self.events.status_changed(record)
        return record

    async def _recover(self) -> None:
        try:
            self.events.log("Recovering, navigating back to search...")
            await self.session.navigate_to_entry()
        except Exception as e:
            logger.warning("recovery_failed", error=str(e))
            self.events.warning("Recovery failed, browser may be in an unexpected state.")

    async def _capture_failure(self, ctx: PageContext, record: Record) -> None:
        if not self.config.failure_screenshot_dir:
            return
        path = Path(self.config.failure_screenshot_dir) / f"{record.identifier}-failed.png"
        if await ctx.screenshot(path) is not None:
            self.events.log(f"Failure screenshot saved: {path}")
