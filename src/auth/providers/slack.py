"""Slack login flow: email sign-in, emailed confirmation code, workspace pick."""

import asyncio
import logging
import os
import re
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from src.auth.captcha.base import CaptchaSolver
from src.auth.captcha.page_bridge import PageScriptBridge
from src.auth.twofa.base import InboxPoller
from src.config import settings
from src.constants import (
    AUTH_BUTTON_VISIBLE_TIMEOUT_MS,
    CODE_DIGIT_DELAY_MS,
    CODE_DIGIT_SELECTOR_TEMPLATE,
    CODE_FIRST_DIGIT_SELECTOR,
    CODE_INPUT_SELECTOR,
    DEFAULT_TIMEOUT,
    ONETRUST_ACCEPT_SELECTOR,
    ONETRUST_BANNER_SELECTOR,
    ONETRUST_REJECT_SELECTOR,
    PAGE_SETTLE_MS,
    SLACK_BANNER_SELECTORS,
    SLACK_CONTINUE_BUTTON_SELECTORS,
    SLACK_EMAIL_SELECTORS,
    SLACK_SIGNIN_URL,
    STATE_REPROBE_GRACE_MS,
    WORKSPACE_CLICK_VERIFY_TIMEOUT_MS,
    WORKSPACE_LINK_ANCESTOR_XPATH,
    WORKSPACE_LIST_SELECTOR,
    WORKSPACE_LOADED_SELECTORS,
    WORKSPACE_MARKER_TIMEOUT_MS,
    WORKSPACE_OPEN_LINK_SELECTOR,
    WORKSPACE_TITLE_SELECTOR,
)
from src.exceptions import HeuristicMissError
from src.models import ChallengeTaskConfig, ChallengeType, LoginFlowState

logger = logging.getLogger(__name__)

AUTHENTICATE_BUTTON = 'button:has-text("Authenticate")'
DIRECT_AUTHENTICATE_BUTTON = 'button.p-get_started_email_form__button:has-text("Authenticate")'
DATA_QA_AUTHENTICATE_BUTTON = (
    '[data-qa*="auth" i]:has-text("Authenticate"), '
    '[data-qa*="button" i]:has-text("Authenticate")'
)

LocateFn = Callable[[Page, str], Awaitable[Optional[Locator]]]


class SlackLoginFlowController:
    """Drives a Slack browser login to an open workspace.

    The live page is the source of truth: state is re-derived from DOM
    probes at every decision point. The only state kept across probes is
    ``workspace_selection_attempted``, which stops a second workspace click
    once one has been made in the current run.
    """

    def __init__(
        self,
        inbox_poller: InboxPoller,
        challenge_solver: Optional[CaptchaSolver] = None,
        bridge_factory: Callable[[Page], PageScriptBridge] = PageScriptBridge,
        screenshot_dir: Optional[str] = None,
        click_verify_timeout_ms: int = WORKSPACE_CLICK_VERIFY_TIMEOUT_MS,
        button_visible_timeout_ms: int = AUTH_BUTTON_VISIBLE_TIMEOUT_MS,
    ):
        self.inbox_poller = inbox_poller
        self.challenge_solver = challenge_solver
        self.bridge_factory = bridge_factory
        self.screenshot_dir = screenshot_dir or settings.screenshot_dir
        self.click_verify_timeout_ms = click_verify_timeout_ms
        self.button_visible_timeout_ms = button_visible_timeout_ms
        self.workspace_selection_attempted = False
        self.state = LoginFlowState.UNKNOWN

    async def run(
        self,
        page: Page,
        workspace_name: str,
        max_wait_minutes: float = 3,
        not_before: Optional[datetime] = None,
    ) -> None:
        """Finish the login from whatever screen Slack is showing.

        Args:
            page: Page on the post sign-in screen
            workspace_name: Title of the workspace to open
            max_wait_minutes: How long to wait for the confirmation email
            not_before: Only accept emails received after this moment; defaults
                to the time the code screen is detected
        """
        logger.info("🚀 Starting Slack login flow detection...")
        self.workspace_selection_attempted = False
        self.state = LoginFlowState.UNKNOWN

        try:
            await self.dismiss_cookie_banners(page)
            await page.wait_for_timeout(PAGE_SETTLE_MS)

            state = await self.detect_state(page)
            if state == LoginFlowState.UNKNOWN:
                logger.info("🔍 Page state unclear, waiting a bit more...")
                await page.wait_for_timeout(STATE_REPROBE_GRACE_MS)
                state = await self.detect_state(page)

            if state == LoginFlowState.WORKSPACE_SELECTION:
                logger.info("✅ Detected workspace selection page - email verification was skipped")
                await self.select_workspace(page, workspace_name)
            elif state == LoginFlowState.EMAIL_VERIFICATION:
                logger.info("✅ Detected email verification page")
                await self.complete_email_verification(page, max_wait_minutes, not_before)
                await self.select_workspace(page, workspace_name)
            else:
                title = await page.title()
                raise HeuristicMissError(
                    "Could not detect current Slack page state (neither workspace "
                    f"selection nor email verification). URL: {page.url}, title: {title}",
                    screenshot=await self.take_debug_screenshot(page, "slack-login-flow-error"),
                )
        except Exception as e:
            self.state = LoginFlowState.FAILED
            logger.error(f"❌ Error in Slack login flow: {e}")
            logger.info(f"📍 Current URL: {page.url}")
            raise

        self.state = LoginFlowState.COMPLETED
        logger.info("✅ Slack login flow completed")

    async def detect_state(self, page: Page) -> LoginFlowState:
        """Classify the current screen from DOM markers."""
        list_count, link_count, digit_count, code_count = await asyncio.gather(
            page.locator(WORKSPACE_LIST_SELECTOR).count(),
            page.locator(WORKSPACE_OPEN_LINK_SELECTOR).count(),
            page.locator(CODE_FIRST_DIGIT_SELECTOR).count(),
            page.locator(CODE_INPUT_SELECTOR).count(),
        )
        if list_count > 0 and link_count > 0:
            return LoginFlowState.WORKSPACE_SELECTION
        if digit_count > 0 or code_count > 0:
            return LoginFlowState.EMAIL_VERIFICATION
        return LoginFlowState.UNKNOWN

    async def complete_email_verification(
        self,
        page: Page,
        max_wait_minutes: float,
        not_before: Optional[datetime] = None,
    ) -> None:
        """Fetch the emailed code, type it and wait for the workspace list."""
        self.state = LoginFlowState.EMAIL_VERIFICATION
        await self.take_debug_screenshot(page, "email-verification-decision")

        if not_before is None:
            not_before = datetime.now(timezone.utc)
            logger.info("⚠️ No sign-in timestamp provided, using current time")
        logger.info(f"📅 Searching for emails after: {not_before.isoformat()}")

        code = await self.inbox_poller.await_code(not_before, max_wait_minutes)
        await self.enter_code(page, code)

        logger.info("🎯 Waiting for workspace selection page after verification...")
        await page.wait_for_selector(WORKSPACE_OPEN_LINK_SELECTOR, timeout=WORKSPACE_MARKER_TIMEOUT_MS)
        self.state = LoginFlowState.VERIFICATION_SUCCEEDED_AWAITING_WORKSPACE

    async def enter_code(self, page: Page, code: str) -> None:
        """Type a ``XXX-XXX`` code into the six single-character inputs."""
        logger.info(f"🔑 Entering Slack code: {code}")
        clean_code = code.replace("-", "")
        if len(clean_code) != 6:
            raise ValueError(
                f"Invalid Slack code length: expected 6 characters, got {len(clean_code)}"
            )

        for index, char in enumerate(clean_code, start=1):
            await page.locator(CODE_DIGIT_SELECTOR_TEMPLATE.format(index=index)).fill(char)
            await page.wait_for_timeout(CODE_DIGIT_DELAY_MS)
        logger.info("✅ Code entered successfully")

    async def select_workspace(self, page: Page, workspace_name: str) -> bool:
        """Click the workspace once per run. Returns False if already attempted."""
        if self.workspace_selection_attempted:
            logger.info("⚠️ Workspace selection already attempted, skipping duplicate call")
            return False

        self.workspace_selection_attempted = True
        self.state = LoginFlowState.WORKSPACE_SELECTION
        await self.click_workspace(page, workspace_name)
        return True

    def _workspace_strategies(self) -> List[Tuple[str, LocateFn]]:
        return [
            ("aria_label", self._locate_by_aria_label),
            ("title_ancestor_link", self._locate_title_ancestor_link),
            ("direct_authenticate", self._locate_direct_authenticate),
            ("workspace_authenticate", self._locate_workspace_authenticate),
            ("generic_authenticate", self._locate_generic_authenticate),
            ("role_authenticate", self._locate_role_authenticate),
            ("data_qa_authenticate", self._locate_data_qa_authenticate),
        ]

    async def click_workspace(self, page: Page, workspace_name: str) -> str:
        """Open ``workspace_name`` and return the name of the strategy that worked.

        A click only counts once :meth:`verify_workspace_click` sees the
        page react; otherwise the next strategy is tried.
        """
        logger.info(f"🔍 Looking for workspace: {workspace_name}")
        await self.dismiss_cookie_banners(page)
        await page.wait_for_selector(WORKSPACE_OPEN_LINK_SELECTOR, timeout=WORKSPACE_MARKER_TIMEOUT_MS)

        for name, locate in self._workspace_strategies():
            try:
                locator = await locate(page, workspace_name)
                if locator is None:
                    continue
                await locator.wait_for(state="visible", timeout=self.button_visible_timeout_ms)
                if not await locator.is_enabled():
                    logger.info(f"⚠️ Strategy {name}: element found but disabled")
                    continue
                logger.info(f"🔘 Clicking workspace control (strategy: {name})")
                await locator.click(timeout=DEFAULT_TIMEOUT)
            except PlaywrightError as e:
                logger.debug(f"Strategy {name} failed: {e}")
                continue

            if await self.verify_workspace_click(page):
                logger.info(f"✅ Workspace {workspace_name} opened (strategy: {name})")
                return name
            logger.warning(f"⚠️ Strategy {name} clicked but nothing happened")

        available = await page.locator(WORKSPACE_TITLE_SELECTOR).all_text_contents()
        available = [title.strip() for title in available]
        screenshot = await self.take_debug_screenshot(page, f"workspace-{workspace_name}-debug")
        logger.error(f"❌ Workspace {workspace_name} not opened. Available workspaces: {available}")
        raise HeuristicMissError(
            f'Failed to successfully click workspace "{workspace_name}". '
            f"Available workspaces: {', '.join(available)}",
            candidates=available,
            screenshot=screenshot,
        )

    async def _locate_by_aria_label(self, page: Page, workspace_name: str) -> Optional[Locator]:
        locator = page.locator(f'[aria-label="Open {workspace_name}"]')
        return locator.first if await locator.count() > 0 else None

    async def _locate_title_ancestor_link(self, page: Page, workspace_name: str) -> Optional[Locator]:
        titles = page.locator(WORKSPACE_TITLE_SELECTOR).filter(has_text=workspace_name)
        if await titles.count() == 0:
            return None
        return titles.locator(WORKSPACE_LINK_ANCESTOR_XPATH).first

    async def _locate_direct_authenticate(self, page: Page, workspace_name: str) -> Optional[Locator]:
        return page.locator(DIRECT_AUTHENTICATE_BUTTON).first

    async def _locate_workspace_authenticate(self, page: Page, workspace_name: str) -> Optional[Locator]:
        titles = page.locator(WORKSPACE_TITLE_SELECTOR).filter(has_text=workspace_name)
        if await titles.count() == 0:
            return None
        return titles.locator("xpath=ancestor::*").locator(AUTHENTICATE_BUTTON).first

    async def _locate_generic_authenticate(self, page: Page, workspace_name: str) -> Optional[Locator]:
        return page.locator(AUTHENTICATE_BUTTON).first

    async def _locate_role_authenticate(self, page: Page, workspace_name: str) -> Optional[Locator]:
        return page.get_by_role("button", name=re.compile("authenticate", re.IGNORECASE)).first

    async def _locate_data_qa_authenticate(self, page: Page, workspace_name: str) -> Optional[Locator]:
        return page.locator(DATA_QA_AUTHENTICATE_BUTTON).first

    async def verify_workspace_click(
        self, page: Page, timeout_ms: Optional[int] = None
    ) -> bool:
        """Wait for a URL change or any workspace marker after a click."""
        timeout_ms = timeout_ms or self.click_verify_timeout_ms
        start_url = page.url
        logger.info(f"🔍 Verifying workspace click from {start_url}")

        waiters = [
            asyncio.ensure_future(
                page.wait_for_url(lambda url: url != start_url, timeout=timeout_ms)
            )
        ]
        waiters += [
            asyncio.ensure_future(page.wait_for_selector(selector, timeout=timeout_ms))
            for selector in WORKSPACE_LOADED_SELECTORS
        ]

        pending = set(waiters)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                if any(task.exception() is None for task in done):
                    logger.info(f"✅ Navigation detected! New URL: {page.url}")
                    return True
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info(f"⚠️ No navigation detected within {timeout_ms // 1000} seconds")
        return False

    async def sign_in(self, page: Page, email: str) -> datetime:
        """Submit ``email`` on the Slack sign-in page.

        Returns the moment just before the form was submitted; emails
        received before it belong to an earlier attempt.
        """
        logger.info(f"Starting Slack email sign-in for {email}")
        await page.goto(SLACK_SIGNIN_URL, wait_until="domcontentloaded", timeout=DEFAULT_TIMEOUT)
        await self.dismiss_cookie_banners(page)
        await self.solve_challenge(page)

        email_input = await self._first_visible(page, SLACK_EMAIL_SELECTORS)
        if email_input is None:
            raise HeuristicMissError(
                "Email input field not found",
                candidates=SLACK_EMAIL_SELECTORS,
                screenshot=await self.take_debug_screenshot(page, "email-input-missing"),
            )
        await email_input.fill(email)
        logger.info(f"Filled email: {email}")

        continue_button = await self._first_visible(page, SLACK_CONTINUE_BUTTON_SELECTORS)
        not_before = datetime.now(timezone.utc)
        if continue_button is not None:
            await continue_button.click()
            logger.info("Clicked continue button")
        else:
            logger.info("No continue button found, attempting Enter key")
            await email_input.press("Enter")
        return not_before

    async def _first_visible(self, page: Page, selectors: List[str]) -> Optional[Locator]:
        for selector in selectors:
            try:
                locator = page.locator(selector).first
                if await locator.is_visible():
                    return locator
            except PlaywrightError as e:
                logger.debug(f"Selector {selector} failed: {e}")
        return None

    async def solve_challenge(self, page: Page) -> bool:
        """Solve a reCAPTCHA on the page, if there is one.

        Returns False when no challenge is present or no solver is set.
        """
        bridge = self.bridge_factory(page)
        challenge = await bridge.detect_challenge()
        if challenge is None:
            return False
        if self.challenge_solver is None:
            logger.warning("⚠️ reCAPTCHA detected but no CAPTCHA solver is configured")
            return False

        extra_params = {"isInvisible": True} if challenge.get("invisible") else {}
        config = ChallengeTaskConfig(
            website_url=page.url,
            website_key=challenge["siteKey"],
            task_type=ChallengeType.RECAPTCHA_V2_PROXYLESS.value,
            extra_params=extra_params,
        )
        solution = await self.challenge_solver.solve(
            config,
            max_attempts=settings.captcha_max_attempts,
            poll_interval_ms=settings.captcha_poll_interval_ms,
        )

        injected = await bridge.inject_solution(solution.g_recaptcha_response)
        invoked = await bridge.invoke_callback(solution.g_recaptcha_response)
        if not injected and not invoked:
            callbacks = await bridge.analyze_callbacks()
            raise HeuristicMissError(
                "Solved reCAPTCHA token could not be delivered to the page",
                candidates=[callback["path"] for callback in callbacks],
                screenshot=await self.take_debug_screenshot(page, "captcha-injection-failed"),
            )
        logger.info("✅ reCAPTCHA solution delivered to the page")
        return True

    async def dismiss_cookie_banners(self, page: Page) -> bool:
        """Close a cookie consent banner if one is showing."""
        logger.info("🍪 Checking for cookie banners...")

        banner = page.locator(ONETRUST_BANNER_SELECTOR)
        if await banner.is_visible():
            logger.info("✅ Detected OneTrust cookie banner")
            for selector, label in (
                (ONETRUST_ACCEPT_SELECTOR, "accepted"),
                (ONETRUST_REJECT_SELECTOR, "rejected"),
            ):
                button = banner.locator(selector)
                if await button.is_visible():
                    await button.click()
                    await page.wait_for_timeout(1000)
                    logger.info(f"✅ OneTrust cookie banner dismissed ({label})")
                    return True
            logger.info("⚠️ OneTrust banner found but no clickable buttons detected")

        for selector in SLACK_BANNER_SELECTORS:
            try:
                button = page.locator(selector).first
                if await button.is_visible():
                    await button.click()
                    await page.wait_for_timeout(1000)
                    logger.info(f"✅ Slack cookie banner dismissed ({selector})")
                    return True
            except PlaywrightError as e:
                logger.debug(f"Banner selector {selector} failed: {e}")

        logger.info("ℹ️ No cookie banners found")
        return False

    async def take_debug_screenshot(self, page: Page, label: str) -> Optional[str]:
        """Save a full-page screenshot; returns its path, or None on failure."""
        safe_label = re.sub(r"[^a-zA-Z0-9_-]", "_", label)
        path = os.path.join(self.screenshot_dir, f"{safe_label}-{int(time.time() * 1000)}.png")
        try:
            os.makedirs(self.screenshot_dir, exist_ok=True)
            await page.screenshot(path=path, full_page=True)
        except (OSError, PlaywrightError) as e:
            logger.warning(f"Could not save screenshot {path}: {e}")
            return None
        logger.info(f"📸 Screenshot saved: {path}")
        return path
