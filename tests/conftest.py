"""Shared fakes for Playwright pages, routes and mailboxes."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

TEST_TOKEN = "xoxc-1111-2222-3333-" + "a1b2c3d4" * 8


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def filter(self, has_text: Optional[str] = None) -> "FakeLocator":
        return FakeLocator(self.page, f"{self.selector}|has_text={has_text}")

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.page, f"{self.selector} >> {selector}")

    async def count(self) -> int:
        return self.page.counts.get(self.selector, 0)

    async def is_visible(self) -> bool:
        return self.page.visible.get(self.selector, False)

    async def is_enabled(self) -> bool:
        return self.page.enabled.get(self.selector, True)

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        if not self.page.visible.get(self.selector, False):
            raise PlaywrightTimeoutError(f"Timeout waiting for {self.selector}")

    async def click(self, timeout: Optional[float] = None) -> None:
        self.page.clicks.append(self.selector)
        hook = self.page.on_click.get(self.selector)
        if hook:
            hook()

    async def fill(self, value: str) -> None:
        self.page.fills.append((self.selector, value))

    async def press(self, key: str) -> None:
        self.page.presses.append((self.selector, key))

    async def all_text_contents(self) -> List[str]:
        return self.page.texts.get(self.selector, [])


class FakeContext:
    def __init__(self):
        self.added_cookies: List[Dict[str, Any]] = []
        self.session_cookies: List[Dict[str, Any]] = []

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added_cookies.extend(cookies)

    async def cookies(self) -> List[Dict[str, Any]]:
        return self.added_cookies + self.session_cookies


class FakeRequest:
    def __init__(self, body: Optional[str]):
        self.post_data_buffer = body.encode("utf-8") if body is not None else None


class FakeRoute:
    def __init__(self, body: Optional[str]):
        self.request = FakeRequest(body)
        self.continued = False

    async def continue_(self) -> None:
        self.continued = True


class FakePage:
    """Just enough of ``playwright.async_api.Page`` for the login and capture code."""

    def __init__(self, url: str = "https://slack.com/signin"):
        self.url = url
        self.page_title = "Slack"
        self.context = FakeContext()
        self.counts: Dict[str, int] = {}
        self.visible: Dict[str, bool] = {}
        self.enabled: Dict[str, bool] = {}
        self.texts: Dict[str, List[str]] = {}
        self.on_click: Dict[str, Callable[[], None]] = {}
        self.clicks: List[str] = []
        self.fills: List[tuple] = []
        self.presses: List[tuple] = []
        self.waits: List[int] = []
        self.screenshots: List[str] = []
        self.visited: List[str] = []
        self.routes: Dict[str, Callable] = {}
        self.unrouted: List[str] = []
        self.request_bodies: List[Optional[str]] = []
        self.handled_routes: List[FakeRoute] = []

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def get_by_role(self, role: str, name: Any = None) -> FakeLocator:
        return FakeLocator(self, f"role={role}")

    async def wait_for_timeout(self, timeout: float) -> None:
        self.waits.append(timeout)

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None):
        await asyncio.sleep(0)
        if self.counts.get(selector, 0) > 0:
            return FakeLocator(self, selector)
        raise PlaywrightTimeoutError(f"Timeout waiting for selector {selector}")

    async def wait_for_url(self, predicate: Callable[[str], bool], timeout: Optional[float] = None):
        await asyncio.sleep(0)
        if predicate(self.url):
            return None
        raise PlaywrightTimeoutError("Timeout waiting for navigation")

    async def title(self) -> str:
        return self.page_title

    async def screenshot(self, path: str, full_page: bool = False) -> bytes:
        self.screenshots.append(path)
        return b""

    async def goto(self, url: str, **kwargs) -> None:
        self.visited.append(url)
        self.url = url
        for pattern, handler in list(self.routes.items()):
            for body in self.request_bodies:
                route = FakeRoute(body)
                self.handled_routes.append(route)
                await handler(route)

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes[pattern] = handler

    async def unroute(self, pattern: str, handler: Optional[Callable] = None) -> None:
        self.unrouted.append(pattern)
        self.routes.pop(pattern, None)


class FakeInboxPoller:
    def __init__(self, code: str = "ABC-DEF"):
        self.code = code
        self.calls: List[tuple] = []

    async def await_code(self, not_before, max_wait_minutes: float = 5) -> str:
        self.calls.append((not_before, max_wait_minutes))
        return self.code


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def inbox_poller() -> FakeInboxPoller:
    return FakeInboxPoller()
