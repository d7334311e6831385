"""
Document Merge Workflow - build, merge and download a record's overview PDF.

The remote side gives no completion signal for the overview or merge jobs,
so both are detected by polling until the control that started them has
gone from the page.
"""

from pathlib import Path
from typing import Optional, Sequence
import structlog

from dossier.browser.context import PageContext
from dossier.browser.polling import poll_until_cleared
from dossier.core.errors import ElementNotFoundError, WaitTimeoutError
from dossier.core.matching import download_link_pattern
from dossier.core.models import Record, RecordStatus
from dossier.workflows.base import RecordWorkflow

logger = structlog.get_logger()


def list_outputs(output_dir: Path) -> list[Path]:
    """PDF files already in output_dir, sorted by name."""
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return []
    return sorted(
        path for path in output_dir.iterdir()
        if path.is_file() and path.suffix.lower() == ".pdf"
    )


def find_existing_output(identifier: str, outputs: Sequence[Path]) -> Optional[Path]:
    """First of outputs whose name contains identifier (case-insensitive)."""
    if not identifier:
        return None
    needle = identifier.lower()
    for path in outputs:
        if needle in path.name.lower():
            return path
    return None


class MergeWorkflow(RecordWorkflow):
    """Eight-step overview merge for one record."""

    async def process_merge(self, record: Record, output_dir: Path) -> Record:
        self.events.log(f"=== MERGE OVERVIEW: {record.identifier} ===")

        async def attempt(ctx: PageContext, rec: Record) -> RecordStatus:
            return await self._merge(ctx, rec, Path(output_dir))

        return await self._run(record, "Merge overview", attempt)

    async def _merge(self, ctx: PageContext, record: Record, output_dir: Path) -> RecordStatus:
        selectors = self.config.selectors
        timing = self.config.timing
        merge = self.config.merge

        self.events.log("[Step 1] Searching for record...")
        await self.locator.open_record(record)
        self.events.log("[Step 1] Entered record.")

        self.events.log("[Step 2] Opening documents tab...")
        await ctx.click(selectors.documents_tab)
        await ctx.wait_idle(settle_ms=timing.form_settle_ms)

        self.events.log("[Step 3] Looking for Create/Amend Overview button...")
        logger.debug("page_controls", controls=await ctx.list_controls())
        clicked = await ctx.click_text_control(merge.trigger_phrases)
        if clicked is None:
            raise ElementNotFoundError(
                "Could not find any Create/Amend Overview button on the page."
            )
        self.events.log(f"[Step 3] Clicked: {clicked}")

        self.events.log("[Step 4] Waiting for overview creation...")
        await self._await_cleared(
            ctx, "Overview creation", "[Step 4] Still loading", merge.trigger_phrases,
            tags=merge.trigger_scan_tags,
        )
        await ctx.wait_idle(settle_ms=timing.merge_settle_ms, timeout=timing.long_idle_timeout_ms)
        self.events.log("[Step 4] Page loaded after overview creation.")

        self.events.log("[Step 5] Looking for 'Merge Documents' button...")
        merge_selector = await ctx.first_visible(selectors.merge_buttons)
        if merge_selector is None:
            raise ElementNotFoundError(
                "Could not find 'Merge Documents' button on the page.",
                selector=", ".join(selectors.merge_buttons),
            )
        self.events.log(f"[Step 5] Clicking {merge_selector}")
        await ctx.click(merge_selector)
        await ctx.pause(timing.merge_settle_ms)

        self.events.log("[Step 6] Waiting for confirmation modal...")
        await self._confirm(ctx)
        self.events.log("[Step 6] Waiting for merge processing...")
        await self._await_cleared(
            ctx, "Merge", "[Step 6] Still processing", [merge.confirm_phrase],
            exact=True, tags=merge.confirm_scan_tags,
        )
        await ctx.wait_idle(settle_ms=timing.merge_settle_ms, timeout=timing.long_idle_timeout_ms)
        self.events.log("[Step 6] Merge processing complete.")

        self.events.log("[Step 7] Looking for overview PDF link...")
        saved = await ctx.download_link(
            download_link_pattern(record.identifier, merge.download_suffix),
            output_dir,
            f"{record.identifier}-{merge.fallback_suffix}",
        )
        if saved is None:
            self.events.warning("[Step 7] WARNING: Overview PDF link not found. Continuing...")
        else:
            self.events.log(f"[Step 7] PDF saved: {saved}")

        self.events.log("[Step 8] Exiting record...")
        exit_selector = await ctx.first_visible(selectors.exit_buttons)
        await ctx.click(exit_selector or selectors.exit_buttons[-1])
        await ctx.wait_idle(settle_ms=timing.submit_settle_ms)
        await ctx.click(selectors.search_tab)
        await ctx.wait_idle(settle_ms=timing.submit_settle_ms)
        self.events.log("[Step 8] Back on search screen.")

        return RecordStatus.SUCCESS

    async def _await_cleared(
        self,
        ctx: PageContext,
        what: str,
        heartbeat: str,
        phrases: list[str],
        exact: bool = False,
        tags: str = "input, button, a",
    ) -> None:
        timing = self.config.timing

        async def still_present() -> bool:
            return await ctx.text_control_present(phrases, exact=exact, tags=tags)

        def tick(_: int, elapsed: float) -> None:
            self.events.log(f"{heartbeat}... ({elapsed:.0f}s)")

        result = await poll_until_cleared(
            still_present,
            interval=timing.poll_interval_seconds,
            deadline=timing.poll_deadline_seconds,
            on_tick=tick,
        )
        result.raise_for_timeout(what)
        self.events.log(f"{what} finished (took ~{result.elapsed_seconds:.0f}s).")

    async def _confirm(self, ctx: PageContext) -> None:
        timing = self.config.timing
        selectors = self.config.selectors

        async def not_shown_yet() -> bool:
            return await ctx.first_visible(selectors.confirm_buttons) is None

        result = await poll_until_cleared(
            not_shown_yet,
            interval=timing.confirm_interval_seconds,
            deadline=timing.confirm_interval_seconds * timing.confirm_attempts,
        )
        if not result.cleared:
            raise WaitTimeoutError(
                "Confirmation modal 'Yes' button did not appear.",
                selector=", ".join(selectors.confirm_buttons),
                timeout_seconds=result.elapsed_seconds,
            )

        clicked = await ctx.click_text_control([self.config.merge.confirm_phrase], exact=True)
        if clicked is None:
            raise ElementNotFoundError("Confirmation control disappeared before it could be clicked.")
        self.events.log(f"[Step 6] Confirmed: {clicked}")
