"""
Page Context - the primitive page interactions the workflows are built from.

Wraps the single Playwright page with:
- Selector fallbacks (first visible wins)
- Text-scan lookup of controls whose markup is unreliable
- Result-row and dropdown extraction
- Download capture
"""

import asyncio
import re
from pathlib import Path
from typing import Optional, Sequence
import structlog

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from dossier.core.errors import ElementNotFoundError, WaitTimeoutError
from dossier.core.matching import ResultRow

logger = structlog.get_logger()


# Finds the first input/button/link whose value+text matches one of the
# phrases (substring, or whole-text when exact) and optionally clicks it.
_CONTROL_SCAN_JS = """
([phrases, exact, click]) => {
    const elements = document.querySelectorAll('input, button, a');
    for (const el of elements) {
        const text = ((el.value || '') + ' ' + (el.textContent || '')).toLowerCase().trim();
        const hit = exact ? phrases.includes(text) : phrases.some(p => text.includes(p));
        if (hit) {
            if (click) el.click();
            return el.tagName + ' | ' + (el.value || el.textContent || '').trim();
        }
    }
    return null;
}
"""

# True while the document is still loading or a matching element of the
# given tags remains.
_CONTROL_PRESENT_JS = """
([phrases, exact, tags]) => {
    if (document.readyState !== 'complete') return true;
    const elements = document.querySelectorAll(tags);
    for (const el of elements) {
        const text = ((el.value || '') + ' ' + (el.textContent || '')).toLowerCase().trim();
        if (exact ? phrases.includes(text) : phrases.some(p => text.includes(p))) return true;
    }
    return false;
}
"""

_LIST_CONTROLS_JS = """
() => Array.from(document.querySelectorAll(
    'input[type=submit], input[type=button], button, input[type=reset]'
)).map(el =>
    el.tagName + ' | type=' + el.type + ' | value="' + (el.value || '') +
    '" | text="' + (el.textContent || '').trim() + '"'
)
"""

_OPTION_TEXTS_JS = "select => Array.from(select.options).map(o => o.text)"

# Sets the value and fires a bubbling change event; some page listeners
# only react to that event.
_APPLY_OPTION_JS = """
(select, index) => {
    select.selectedIndex = index;
    select.value = select.options[index].value;
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return select.options[index].text;
}
"""


class PageContext:
    """
    Execution context for page operations.

    All waits are awaited on the caller's task. Missing controls raise
    ElementNotFoundError; exhausted waits raise WaitTimeoutError.
    """

    def __init__(
        self,
        page: Page,
        default_timeout: int = 30000,
    ):
        """
        Initialize page context.

        Args:
            page: Playwright page instance
            default_timeout: Default timeout in milliseconds
        """
        self.page = page
        self.default_timeout = default_timeout
        self._action_count = 0

    async def navigate(self, url: str, wait_until: str = "load") -> None:
        await self.page.goto(url, wait_until=wait_until, timeout=self.default_timeout)
        self._action_count += 1

    async def pause(self, ms: int) -> None:
        """Fixed settle delay."""
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)

    async def wait_idle(self, settle_ms: int = 0, timeout: Optional[int] = None) -> None:
        """Wait for network idle, then an optional settle delay."""
        try:
            await self.page.wait_for_load_state(
                "networkidle",
                timeout=timeout or self.default_timeout,
            )
        except PlaywrightTimeoutError:
            raise WaitTimeoutError(
                "Page did not reach network idle.",
                url=self.page.url,
                timeout_seconds=(timeout or self.default_timeout) / 1000,
            )
        await self.pause(settle_ms)

    async def wait_for(self, selector: str, timeout: int) -> bool:
        """Wait for a selector to become visible; False on timeout."""
        try:
            await self.page.wait_for_selector(selector, state="visible", timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False

    async def is_visible(self, selector: str) -> bool:
        return await self.page.locator(selector).first.is_visible()

    async def first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        """First selector in order whose first match is visible."""
        for selector in selectors:
            if await self.is_visible(selector):
                return selector
        return None

    async def count(self, selector: str) -> int:
        return await self.page.locator(selector).count()

    async def click(self, selector: str, index: int = 0) -> None:
        """Click the index-th match of selector."""
        try:
            await self.page.locator(selector).nth(index).click(timeout=self.default_timeout)
        except PlaywrightTimeoutError:
            raise ElementNotFoundError(
                f"Could not click '{selector}' (match {index}).",
                selector=selector,
                url=self.page.url,
            )
        self._action_count += 1

    async def click_if_visible(self, selector: str) -> bool:
        if not await self.is_visible(selector):
            return False
        await self.click(selector)
        return True

    async def click_by_label(self, label: str) -> None:
        try:
            await self.page.get_by_label(label).first.click(timeout=self.default_timeout)
        except PlaywrightTimeoutError:
            raise ElementNotFoundError(f"No control labelled '{label}'.", url=self.page.url)
        self._action_count += 1

    async def fill(self, selector: str, value: str) -> None:
        """Click, clear and fill the first match of selector."""
        field = self.page.locator(selector).first
        await field.click()
        await field.clear()
        await field.fill(value)
        self._action_count += 1

    async def result_rows(self, link_selector: str) -> list[ResultRow]:
        """Every result link with the text of its enclosing table row."""
        rows = []
        links = await self.page.locator(link_selector).all()
        for i, link in enumerate(links):
            row_text = await link.locator("xpath=ancestor::tr[1]").inner_text()
            link_text = await link.inner_text()
            href = await link.get_attribute("href") or ""
            rows.append(ResultRow(index=i, link_text=link_text.strip(), row_text=row_text, href=href))
        return rows

    async def option_texts(self, select_selector: str, index: int) -> list[str]:
        return await self.page.locator(select_selector).nth(index).evaluate(_OPTION_TEXTS_JS)

    async def apply_option(self, select_selector: str, index: int, option_index: int) -> str:
        """Select an option by index, firing a change event. Returns the option text."""
        text = await self.page.locator(select_selector).nth(index).evaluate(
            _APPLY_OPTION_JS, option_index
        )
        self._action_count += 1
        return text

    async def click_text_control(self, phrases: Sequence[str], exact: bool = False) -> Optional[str]:
        """Click the first control whose text matches; returns its description or None."""
        result = await self.page.evaluate(
            _CONTROL_SCAN_JS, [[p.lower() for p in phrases], exact, True]
        )
        if result is not None:
            self._action_count += 1
        return result

    async def text_control_present(
        self,
        phrases: Sequence[str],
        exact: bool = False,
        tags: str = "input, button, a",
    ) -> bool:
        return await self.page.evaluate(
            _CONTROL_PRESENT_JS, [[p.lower() for p in phrases], exact, tags]
        )

    async def list_controls(self) -> list[str]:
        return await self.page.evaluate(_LIST_CONTROLS_JS)

    async def download_link(
        self,
        pattern: re.Pattern,
        dest_dir: Path,
        fallback_name: str,
    ) -> Optional[Path]:
        """
        Click the link whose text matches pattern and save the download.

        Returns the saved path, or None when no such link is visible.
        """
        link = self.page.locator("a").filter(has_text=pattern).first
        if not await link.is_visible():
            return None

        dest_dir.mkdir(parents=True, exist_ok=True)
        async with self.page.expect_download(timeout=self.default_timeout) as download_info:
            await link.click()
        download = await download_info.value

        path = dest_dir / (download.suggested_filename or fallback_name)
        await download.save_as(path)
        self._action_count += 1
        logger.info("download_saved", path=str(path))
        return path

    async def screenshot(self, path: Path) -> Optional[Path]:
        """Save a screenshot; failures are logged, not raised."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=str(path), full_page=True)
            return path
        except Exception as e:
            logger.warning("screenshot_failed", path=str(path), error=str(e))
            return None

    @property
    def action_count(self) -> int:
        """Get total action count."""
        return self._action_count
