"""Capture the xoxc session token from Slack's own API traffic."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional
from urllib.parse import parse_qs

from playwright.async_api import Page, Route
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..constants import (
    DEFAULT_TIMEOUT,
    MULTIPART_TOKEN_REGEX,
    TOKEN_ROUTE_PATTERN,
    XOXC_TOKEN_REGEX,
)
from ..exceptions import TokenCaptureTimeoutError
from ..models import CapturedSession, CookieRecord

logger = logging.getLogger(__name__)

CookieLoaderFn = Callable[[], Awaitable[List[CookieRecord]]]


def extract_token_from_body(body: Optional[str]) -> Optional[str]:
    """Pull an xoxc token out of a request body.

    Handles url-encoded and multipart bodies, then falls back to a raw
    scan of the whole body. Returns None when nothing matches.
    """
    if not body:
        return None

    if "=" in body and "Content-Disposition" not in body:
        for token in parse_qs(body).get("token", []):
            if XOXC_TOKEN_REGEX.fullmatch(token):
                return token
    elif "Content-Disposition" in body:
        match = MULTIPART_TOKEN_REGEX.search(body)
        if match:
            token = match.group(1).strip()
            if XOXC_TOKEN_REGEX.fullmatch(token):
                return token

    match = XOXC_TOKEN_REGEX.search(body)
    return match.group(0) if match else None


def _request_body(route: Route) -> Optional[str]:
    data = route.request.post_data_buffer
    if not data:
        return None
    return data.decode("utf-8", errors="replace")


async def capture_token(
    page: Page,
    cookies_loader: CookieLoaderFn,
    workspace_url: str,
    timeout_ms: int = DEFAULT_TIMEOUT,
) -> CapturedSession:
    """Replay stored cookies, open the workspace and wait for a token.

    The route observer is installed before navigation so the first
    ``api.features`` call is never missed. Requests are always let
    through.
    """
    context = page.context
    cookies = await cookies_loader()
    await context.add_cookies([cookie.to_playwright() for cookie in cookies])
    logger.info(f"🍪 Replayed {len(cookies)} cookies into the browser context")

    loop = asyncio.get_running_loop()
    token_future: asyncio.Future = loop.create_future()

    async def handle_route(route: Route) -> None:
        try:
            if not token_future.done():
                token = extract_token_from_body(_request_body(route))
                if token:
                    logger.info("🔑 Captured xoxc token from api.features request")
                    token_future.set_result(token)
        finally:
            await route.continue_()

    budget = timeout_ms / 1000
    started = time.monotonic()

    def timed_out() -> TokenCaptureTimeoutError:
        return TokenCaptureTimeoutError(
            f"Token capture timeout after {timeout_ms // 1000} seconds",
            task="token capture",
            elapsed_seconds=time.monotonic() - started,
        )

    await page.route(TOKEN_ROUTE_PATTERN, handle_route)
    try:
        logger.info(f"🌐 Navigating to {workspace_url}")
        try:
            await page.goto(workspace_url, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            raise timed_out()
        # Navigation and token wait share one deadline.
        remaining = max(budget - (time.monotonic() - started), 0)
        try:
            token = await asyncio.wait_for(token_future, timeout=remaining)
        except asyncio.TimeoutError:
            raise timed_out()
    finally:
        await page.unroute(TOKEN_ROUTE_PATTERN, handle_route)

    session_cookies = await context.cookies()
    logger.info(f"✅ Session captured with {len(session_cookies)} cookies")
    return CapturedSession(
        token=token,
        cookies=[CookieRecord.from_playwright(cookie) for cookie in session_cookies],
    )
