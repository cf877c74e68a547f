"""Browser management for Playwright."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from playwright.async_api import Page, async_playwright

from ..config import settings

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-extensions",
    "--window-size=1280,720",
    "--disable-dev-shm-usage",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-features=TranslateUI",
    "--disable-default-apps",
    "--disable-sync",
    "--no-first-run",
    "--no-default-browser-check",
    "--password-store=basic",
    "--use-mock-keychain",
    "--disable-gpu",
]

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

EXTRA_HTTP_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Linux"',
}

STEALTH_SCRIPT = """
// Remove webdriver property
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});

window.chrome = {
    runtime: {},
    loadTimes: function() {},
    csi: function() {},
    app: {}
};

Object.defineProperty(navigator, 'platform', {
    get: () => 'Linux x86_64',
});
"""


class BrowserManager:
    """Manages browser instances.

    With ``BROWSER_WS_ENDPOINT`` set, pages come from a hosted Chromium over
    CDP; otherwise Chromium is launched locally.
    """

    def __init__(self, ws_endpoint: Optional[str] = None):
        self.ws_endpoint = ws_endpoint if ws_endpoint is not None else settings.browser_ws_endpoint

    @asynccontextmanager
    async def get_page(self, headless: Optional[bool] = None) -> AsyncGenerator[Page, None]:
        """Get a browser page in a fresh context with automatic cleanup."""
        if headless is None:
            headless = settings.headless

        async with async_playwright() as p:
            if self.ws_endpoint:
                logger.info("🌐 Connecting to hosted browser over CDP")
                browser = await p.chromium.connect_over_cdp(self.ws_endpoint)
            else:
                logger.info(f"🌐 Launching local Chromium (headless={headless})")
                browser = await p.chromium.launch(headless=headless, args=BROWSER_ARGS)

            context = await browser.new_context(
                viewport={"width": 1280, "height": 720},
                user_agent=USER_AGENT,
                java_script_enabled=True,
                accept_downloads=False,
                extra_http_headers=EXTRA_HTTP_HEADERS,
            )
            await context.add_init_script(STEALTH_SCRIPT)
            page = await context.new_page()

            try:
                yield page
            finally:
                await context.close()
                # Only close when locally launched
                if not self.ws_endpoint:
                    await browser.close()
