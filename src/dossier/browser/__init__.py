"""Browser automation module using Playwright."""

from .manager import SessionManager
from .context import PageContext
from .polling import PollResult, poll_until_cleared

__all__ = ["SessionManager", "PageContext", "PollResult", "poll_until_cleared"]
