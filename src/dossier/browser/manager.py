"""
Session Manager - single persistent browser session.

One persistent profile, one page, driven sequentially for a whole batch.
"""

import asyncio
from typing import Optional
import structlog

from playwright.async_api import async_playwright, BrowserContext, Page, Playwright

from dossier.browser.context import PageContext
from dossier.core.config import AutomationConfig
from dossier.core.errors import SessionNotReadyError
from dossier.core.events import EventChannel

logger = structlog.get_logger()


class SessionManager:
    """
    Owns the browser session handle.

    Features:
    - Persistent profile (resumed SSO sessions skip the login flow)
    - Inter-action throttle via Playwright slow_mo
    - Idempotent close, safe after partial failure
    """

    def __init__(self, events: EventChannel):
        self.events = events
        self.config: Optional[AutomationConfig] = None

        self._playwright: Optional[Playwright] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._page_context: Optional[PageContext] = None
        self._authenticated = False
        self._lock = asyncio.Lock()

    async def initialise(self, config: AutomationConfig) -> None:
        """Launch the persistent browser context."""
        async with self._lock:
            self.config = config
            self.events.log("Initialising Playwright...")

            profile_dir = config.profile_dir()
            profile_dir.mkdir(parents=True, exist_ok=True)

            self._playwright = await async_playwright().start()
            self._context = await self._playwright.chromium.launch_persistent_context(
                str(profile_dir),
                headless=config.headless,
                channel=config.browser_channel,
                slow_mo=config.action_delay_ms,
                accept_downloads=True,
                no_viewport=True,
                args=["--start-maximized"],
            )
            pages = self._context.pages
            self._page = pages[0] if pages else await self._context.new_page()
            self._page_context = PageContext(
                self._page,
                default_timeout=config.timing.idle_timeout_ms,
            )

            logger.info(
                "session_initialised",
                headless=config.headless,
                profile_dir=str(profile_dir),
                channel=config.browser_channel,
            )
            self.events.log("Browser initialised.")

    async def login(self) -> bool:
        """
        Authenticate, reusing an existing session when the marker is present.

        Waits up to the login timeout for interactive SSO/MFA. Returns False
        on timeout rather than raising.
        """
        ctx = self._require_page()
        selectors = self.config.selectors
        timing = self.config.timing

        self.events.log(f"Navigating to {self.config.target_url}")
        await ctx.navigate(self.config.target_url)

        if await ctx.wait_for(selectors.login_marker, timeout=timing.session_check_ms):
            self._authenticated = True
            self.events.log("Session valid. Already logged in.")
            return True
        self.events.log("Session check: Login required.")

        await ctx.click_if_visible(selectors.login_button)

        self.events.log("Waiting for manual SSO/MFA authentication...")
        if await ctx.wait_for(selectors.login_marker, timeout=timing.login_timeout_ms):
            self._authenticated = True
            self.events.log("Successfully logged in.")
            return True

        logger.warning("login_timed_out", timeout_ms=timing.login_timeout_ms)
        self.events.warning("Login failed or timed out.")
        return False

    async def navigate_to_entry(self) -> bool:
        """Go to the module entry point, then the search view. Idempotent."""
        ctx = self._require_page()
        selectors = self.config.selectors

        self.events.log("Navigating to module entry point...")
        if await ctx.click_if_visible(selectors.module_link):
            await ctx.wait_idle()

        self.events.log("Clicking Search tab...")
        if await ctx.click_if_visible(selectors.search_tab):
            await ctx.wait_idle()

        self.events.log("Ready to search.")
        return True

    async def close(self) -> None:
        """Tear down the session. Safe to call repeatedly."""
        async with self._lock:
            if self._context is None and self._playwright is None:
                return

            self.events.log("Closing browser...")
            actions = self._page_context.action_count if self._page_context else 0
            try:
                if self._context:
                    await self._context.close()
            except Exception as e:
                logger.warning("session_context_close_failed", error=str(e))
            finally:
                self._context = None

            try:
                if self._playwright:
                    await self._playwright.stop()
            except Exception as e:
                logger.warning("playwright_stop_failed", error=str(e))
            finally:
                self._playwright = None

            self._page = None
            self._page_context = None
            self._authenticated = False
            logger.info("session_closed", actions=actions)

    def require_ready(self) -> PageContext:
        """Page context for per-record work; fatal if not logged in."""
        ctx = self._require_page()
        if not self._authenticated:
            raise SessionNotReadyError("Session is not logged in.")
        return ctx

    def _require_page(self) -> PageContext:
        if self._page_context is None or self.config is None:
            raise SessionNotReadyError("Session not initialised.")
        return self._page_context

    @property
    def is_initialised(self) -> bool:
        return self._page_context is not None

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated
