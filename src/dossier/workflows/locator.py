"""Record Locator - search by identifier and pick the right result row."""

import structlog

from dossier.core.config import AutomationConfig
from dossier.core.errors import (
    AmbiguousMatchError,
    ElementNotFoundError,
    InvalidInputError,
    WaitTimeoutError,
)
from dossier.core.events import EventChannel
from dossier.core.matching import find_result_row
from dossier.core.models import Record

logger = structlog.get_logger()


class RecordLocator:
    """
    Finds a record on the remote search screen.

    A search by identifier can return several rows (one per programme), so
    the row is chosen by the record's programme code, resolved through the
    alias map.
    """

    def __init__(self, session, events: EventChannel, config: AutomationConfig):
        self.session = session
        self.events = events
        self.config = config
        self.aliases = config.alias_map()

    async def search(self, identifier: str) -> None:
        """Submit a search by identifier."""
        ctx = self.session.require_ready()
        selectors = self.config.selectors

        self.events.log(f"Searching: {identifier}")
        await ctx.click_if_visible(selectors.search_mode)

        input_selector = await ctx.first_visible(selectors.search_inputs)
        if input_selector is None:
            raise ElementNotFoundError(
                "Could not find search input field.",
                selector=", ".join(selectors.search_inputs),
            )
        await ctx.fill(input_selector, identifier)

        button_selector = await ctx.first_visible(selectors.search_buttons)
        if button_selector is None:
            raise ElementNotFoundError(
                "Could not find search button.",
                selector=", ".join(selectors.search_buttons),
            )
        await ctx.click(button_selector)
        await ctx.wait_idle(settle_ms=self.config.timing.search_settle_ms)
        logger.debug("record_searched", identifier=identifier)

    async def select_result(self, record: Record) -> None:
        """Open the result row matching both identifier and programme code."""
        ctx = self.session.require_ready()
        selectors = self.config.selectors
        timing = self.config.timing

        self.events.log(
            f"Looking for {record.identifier} with programme '{record.programme}'"
        )
        if not await ctx.wait_for(selectors.results_table, timeout=timing.results_timeout_ms):
            raise WaitTimeoutError(
                "Search results table did not appear.",
                selector=selectors.results_table,
                timeout_seconds=timing.results_timeout_ms / 1000,
            )
        await ctx.pause(timing.search_settle_ms)

        programme = record.programme.strip()
        if not programme:
            raise InvalidInputError("Programme column is empty.", field="programme")

        code = self.aliases.resolve(programme)
        if programme in self.aliases:
            self.events.log(f"Mapped '{programme}' -> '{code}'")

        rows = await ctx.result_rows(selectors.result_links)
        self.events.log(f"Found {len(rows)} links in result rows")
        for row in rows:
            has_id, has_code = row.matches(record.identifier, code)
            self.events.log(
                f"Link {row.index}: '{row.link_text}' | Identifier={has_id} | Code={has_code}"
            )

        matches = find_result_row(rows, record.identifier, code)
        if not matches:
            raise AmbiguousMatchError(record.identifier, code)

        target = matches[0]
        if len(matches) > 1:
            # First in document order wins; duplicates are reported, not resolved.
            self.events.warning(
                f"{len(matches)} rows match {record.identifier}/{code}; using the first"
            )
        self.events.log(f"Found matching link, href ends: ...{target.href[-50:]}")
        await ctx.click(selectors.result_links, index=target.index)
        await ctx.wait_idle()

    async def open_record(self, record: Record) -> None:
        await self.search(record.identifier)
        await self.select_result(record)
