"""Decision Recorder - accept/reject a record through the recommendation form."""

import structlog

from dossier.browser.context import PageContext
from dossier.core.errors import ElementNotFoundError, ReasonNotFoundError
from dossier.core.models import Record, RecordStatus
from dossier.workflows.base import RecordWorkflow

logger = structlog.get_logger()


class DecisionRecorder(RecordWorkflow):
    """
    Per-record state machine: Idle -> Processing -> Success | Failed | PausedForReview.

    PausedForReview only happens with the debug flag set: the form is
    filled in but never submitted, so an operator can inspect it.
    """

    async def process_accept(self, record: Record) -> Record:
        self.events.log(
            f"Processing OFFER for: {record.identifier} (Prog: '{record.programme}')"
        )
        return await self._run(record, "Offer", self._accept)

    async def process_reject(self, record: Record) -> Record:
        self.events.log(
            f"Processing REJECT for: {record.identifier} (Prog: '{record.programme}')"
        )
        return await self._run(record, "Rejection", self._reject)

    async def _accept(self, ctx: PageContext, record: Record) -> RecordStatus:
        selectors = self.config.selectors
        timing = self.config.timing

        await self.locator.open_record(record)
        await self._open_actions(ctx)

        await self._open_recommendation(ctx, timing.tab_settle_ms)

        self.events.log("Selecting 'Offer recommendation'...")
        await ctx.click(selectors.offer_choice)
        await ctx.pause(timing.choice_settle_ms)

        return await self._submit_or_pause(
            ctx, "Verify 'Offer recommendation' is selected, then click Process manually"
        )

    async def _reject(self, ctx: PageContext, record: Record) -> RecordStatus:
        selectors = self.config.selectors
        timing = self.config.timing

        await self.locator.open_record(record)
        await self._open_actions(ctx)

        await self._open_recommendation(ctx, timing.form_settle_ms)

        # Radio labels are unreliable; the reject radio is the second one.
        self.events.log("Selecting 'Reject' radio button...")
        if await ctx.count(selectors.decision_radios) >= 2:
            await ctx.click(selectors.decision_radios, index=1)
        else:
            await ctx.click_by_label(selectors.reject_label)
        await ctx.pause(timing.radio_settle_ms)

        await self._select_reason(ctx)
        await ctx.pause(timing.form_settle_ms)

        return await self._submit_or_pause(
            ctx, "Verify 'Reject' is selected and the reason shows option 8, then click Process manually"
        )

    async def _open_actions(self, ctx: PageContext) -> None:
        self.events.log("Clicking Actions tab...")
        await ctx.click(self.config.selectors.actions_tab)
        await ctx.wait_idle(settle_ms=self.config.timing.tab_settle_ms)

    async def _open_recommendation(self, ctx: PageContext, settle_ms: int) -> None:
        links = self.config.selectors.recommend_links
        self.events.log("Clicking 'Recommend Offer or Reject'...")
        await ctx.click(await ctx.first_visible(links) or links[-1])
        await ctx.wait_idle(settle_ms=settle_ms)

    async def _select_reason(self, ctx: PageContext) -> None:
        selectors = self.config.selectors
        reason = self.config.reason
        rule = reason.to_rule()

        self.events.log("Selecting reject reason option...")
        select_count = await ctx.count(selectors.reason_selects)
        if select_count <= reason.select_index:
            raise ElementNotFoundError(
                f"Expected at least {reason.select_index + 1} dropdowns, found {select_count}",
                selector=selectors.reason_selects,
            )

        options = await ctx.option_texts(selectors.reason_selects, reason.select_index)
        choice = rule.choose(options)
        if choice is None:
            logger.warning("reject_reason_not_found", options=options)
            raise ReasonNotFoundError(options)

        text = await ctx.apply_option(selectors.reason_selects, reason.select_index, choice)
        self.events.log(f"Selected option {choice}: {text}")

    async def _submit_or_pause(self, ctx: PageContext, review_hint: str) -> RecordStatus:
        if self.config.debug:
            self.events.log("DEBUG MODE: Paused before clicking Process")
            self.events.log(review_hint)
            return RecordStatus.PAUSED_FOR_REVIEW

        self.events.log("Clicking Process...")
        submit = await ctx.first_visible(self.config.selectors.submit_buttons)
        if submit is None:
            raise ElementNotFoundError(
                "Could not find Process button.",
                selector=", ".join(self.config.selectors.submit_buttons),
            )
        await ctx.click(submit)
        await ctx.wait_idle(settle_ms=self.config.timing.submit_settle_ms)
        return RecordStatus.SUCCESS
