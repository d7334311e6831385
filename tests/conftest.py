"""Shared fixtures: an in-memory stand-in for the page and the session."""

import os
import sys
from pathlib import Path
from typing import Optional

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from dossier.core.config import AutomationConfig, TimingConfig
from dossier.core.errors import ElementNotFoundError, SessionNotReadyError
from dossier.core.events import EventChannel, LogLine, StatusChange
from dossier.core.matching import ResultRow

DEFAULT_CODE = "TMSCOMSMCL01"
REASON_OPTIONS = ["Please select", "1. Qualifications", "8. Not Competitive", "9. Other"]


def fast_config(**overrides) -> AutomationConfig:
    """Config with every settle delay zeroed and tiny polling budgets."""
    timing = TimingConfig(
        session_check_ms=0,
        results_timeout_ms=0,
        search_settle_ms=0,
        tab_settle_ms=0,
        form_settle_ms=0,
        choice_settle_ms=0,
        radio_settle_ms=0,
        submit_settle_ms=0,
        merge_settle_ms=0,
        poll_interval_seconds=0.001,
        poll_deadline_seconds=0.05,
        confirm_interval_seconds=0.001,
        confirm_attempts=5,
    )
    return AutomationConfig(timing=timing, **overrides)


class FakePageContext:
    """
    Scriptable replacement for PageContext.

    Every call is appended to ``calls`` as a tuple so tests can assert on
    what was (and was not) clicked.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.visible = {
            "role=textbox",
            "input[value='Search']",
            "a:has-text('Recommend Offer or Reject')",
            "input[value='Process']",
            "input[value='Merge Documents']",
            "input[value='Yes']",
            "input[value='Exit']",
        }
        self.counts = {"input[type='radio']": 2, "select": 2}
        self.table_appears = True
        self.absent: set[str] = set()
        self.rows_by_identifier: dict[str, list[ResultRow]] = {}
        self.options = list(REASON_OPTIONS)
        self.options_by_identifier: dict[str, list[str]] = {}
        self.text_controls = {"create overview", "yes"}
        self.present_results: list = []
        self.stuck_phrases: set[str] = set()
        # "" means the browser suggests no filename; None means no link.
        self.download_name: Optional[str] = ""
        self.fail_search_for: set[str] = set()
        self.current_identifier = ""

    # navigation and waits

    async def navigate(self, url, wait_until="load"):
        self.calls.append(("navigate", url))

    async def pause(self, ms):
        self.calls.append(("pause", ms))

    async def wait_idle(self, settle_ms=0, timeout=None):
        self.calls.append(("wait_idle", settle_ms))

    async def wait_for(self, selector, timeout):
        self.calls.append(("wait_for", selector))
        if selector in self.absent:
            return False
        return self.table_appears

    # lookups

    async def is_visible(self, selector):
        return selector in self.visible

    async def first_visible(self, selectors):
        for selector in selectors:
            if selector in self.visible:
                return selector
        return None

    async def count(self, selector):
        return self.counts.get(selector, 0)

    async def result_rows(self, link_selector):
        ident = self.current_identifier
        default = [ResultRow(index=0, link_text=ident, row_text=f"{ident} Doe {DEFAULT_CODE}", href="/rec/0")]
        return self.rows_by_identifier.get(ident, default)

    async def option_texts(self, select_selector, index):
        self.calls.append(("option_texts", index))
        return self.options_by_identifier.get(self.current_identifier, self.options)

    async def list_controls(self):
        return ["INPUT | type=submit | value=\"Create Overview.pdf\" | text=\"\""]

    # actions

    async def click(self, selector, index=0):
        self.calls.append(("click", selector, index))

    async def click_if_visible(self, selector):
        if selector not in self.visible:
            return False
        await self.click(selector)
        return True

    async def click_by_label(self, label):
        self.calls.append(("click_label", label))

    async def fill(self, selector, value):
        self.calls.append(("fill", selector, value))
        self.current_identifier = value
        if value in self.fail_search_for:
            raise ElementNotFoundError(f"Search box vanished for {value}")

    async def apply_option(self, select_selector, index, option_index):
        options = self.options_by_identifier.get(self.current_identifier, self.options)
        self.calls.append(("apply_option", index, option_index))
        return options[option_index]

    async def click_text_control(self, phrases, exact=False):
        for phrase in phrases:
            if phrase in self.text_controls:
                self.calls.append(("click_text", phrase))
                return f"INPUT | {phrase}"
        return None

    async def text_control_present(self, phrases, exact=False, tags="input, button, a"):
        self.calls.append(("present", tuple(phrases), exact, tags))
        if self.stuck_phrases.intersection(phrases):
            return True
        if self.present_results:
            result = self.present_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return False

    async def download_link(self, pattern, dest_dir, fallback_name):
        self.calls.append(("download", pattern.pattern, fallback_name))
        if self.download_name is None:
            return None
        dest_dir.mkdir(parents=True, exist_ok=True)
        path = Path(dest_dir) / (self.download_name or fallback_name)
        path.write_bytes(b"%PDF-1.4")
        return path

    async def screenshot(self, path):
        self.calls.append(("screenshot", str(path)))
        return path

    # helpers for assertions

    def clicked(self, selector: str) -> bool:
        return any(c[0] == "click" and c[1] == selector for c in self.calls)

    def click_count(self) -> int:
        return sum(1 for c in self.calls if c[0] in ("click", "click_label", "click_text"))


class FakeSession:
    """Stands in for SessionManager."""

    def __init__(self, ctx: FakePageContext):
        self.ctx = ctx
        self.ready = False
        self.navigations = 0
        self.fail_navigation = False
        self.closed = 0
        self.config = None

    async def initialise(self, config):
        self.config = config

    async def login(self):
        self.ready = True
        return True

    async def navigate_to_entry(self):
        self.navigations += 1
        if self.fail_navigation:
            raise RuntimeError("navigation broke")
        return True

    async def close(self):
        self.closed += 1
        self.ready = False

    def require_ready(self):
        if not self.ready:
            raise SessionNotReadyError()
        return self.ctx

    @property
    def is_initialised(self):
        return self.config is not None


class EventRecorder:
    """Collects everything published on a channel."""

    def __init__(self, channel: EventChannel):
        self.events = []
        channel.subscribe(self.events.append)

    @property
    def lines(self) -> list[str]:
        return [e.message for e in self.events if isinstance(e, LogLine)]

    def statuses(self, identifier: str) -> list:
        return [
            e.status for e in self.events
            if isinstance(e, StatusChange) and e.identifier == identifier
        ]


@pytest.fixture
def page():
    return FakePageContext()


@pytest.fixture
def session(page):
    fake = FakeSession(page)
    fake.ready = True
    return fake


@pytest.fixture
def events():
    return EventChannel()


@pytest.fixture
def recorder(events):
    return EventRecorder(events)
