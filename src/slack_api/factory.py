"""Build a ready SlackApi from stored cookies and a browser session."""

import logging
from typing import List, Optional

from src.auth.providers.slack import SlackLoginFlowController
from src.auth.token_interceptor import CookieLoaderFn, capture_token
from src.browser.manager import BrowserManager
from src.config import settings
from src.exceptions import CookieLoadError
from src.models import CookieRecord

from .client import SlackApi

logger = logging.getLogger(__name__)


async def _no_stored_cookies() -> List[CookieRecord]:
    return []


class SlackApiFactory:
    """Opens a page, optionally logs in, captures the token, wraps it.

    With a login configured the stored jar is replayed before signing in,
    so the fresh login cookies are never overwritten. The browser context
    is closed whether or not the capture succeeds.
    """

    def __init__(
        self,
        cookies_loader: CookieLoaderFn,
        workspace_url: str,
        browser_manager: Optional[BrowserManager] = None,
        login_controller: Optional[SlackLoginFlowController] = None,
        login_email: Optional[str] = None,
        workspace_name: Optional[str] = None,
        token_timeout_ms: Optional[int] = None,
    ):
        self.cookies_loader = cookies_loader
        self.workspace_url = workspace_url
        self.browser_manager = browser_manager or BrowserManager()
        self.login_controller = login_controller
        self.login_email = login_email
        self.workspace_name = workspace_name
        self.token_timeout_ms = token_timeout_ms or settings.token_capture_timeout_ms

    async def _replay_stored_jar(self, page) -> None:
        try:
            cookies = await self.cookies_loader()
        except CookieLoadError as e:
            logger.warning(f"⚠️ No stored cookies before login: {e}")
            return
        await page.context.add_cookies([cookie.to_playwright() for cookie in cookies])
        logger.info(f"🍪 Replayed {len(cookies)} stored cookies before login")

    async def create_slack_api(self) -> SlackApi:
        async with self.browser_manager.get_page() as page:
            cookies_loader = self.cookies_loader
            if self.login_controller is not None and self.login_email:
                await self._replay_stored_jar(page)
                logger.info(f"🔐 Logging in to Slack as {self.login_email}")
                not_before = await self.login_controller.sign_in(page, self.login_email)
                await self.login_controller.run(
                    page,
                    self.workspace_name or "",
                    max_wait_minutes=settings.login_max_wait_minutes,
                    not_before=not_before,
                )
                cookies_loader = _no_stored_cookies

            session = await capture_token(
                page,
                cookies_loader,
                self.workspace_url,
                timeout_ms=self.token_timeout_ms,
            )

        logger.info("✅ Slack API session ready")
        return SlackApi(session.token, session.cookies)
