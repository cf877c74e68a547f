from datetime import datetime, timezone

import pytest

from src.auth import SlackLoginFlowController
from src.constants import (
    CODE_FIRST_DIGIT_SELECTOR,
    SLACK_SIGNIN_URL,
    WORKSPACE_LINK_ANCESTOR_XPATH,
    WORKSPACE_LIST_SELECTOR,
    WORKSPACE_OPEN_LINK_SELECTOR,
    WORKSPACE_TITLE_SELECTOR,
)
from src.exceptions import HeuristicMissError
from src.models import ChallengeSolution, LoginFlowState

ARIA_OPEN_ACME = '[aria-label="Open Acme"]'
ACME_TITLE = f"{WORKSPACE_TITLE_SELECTOR}|has_text=Acme"
ACME_ANCESTOR_LINK = f"{ACME_TITLE} >> {WORKSPACE_LINK_ANCESTOR_XPATH}"
SIDEBAR = ".p-workspace_sidebar"


def workspace_list(page):
    page.counts[WORKSPACE_LIST_SELECTOR] = 1
    page.counts[WORKSPACE_OPEN_LINK_SELECTOR] = 1


def loads_workspace_on_click(page, selector):
    page.visible[selector] = True
    page.on_click[selector] = lambda: page.counts.update({SIDEBAR: 1})


@pytest.fixture
def controller(inbox_poller, tmp_path):
    return SlackLoginFlowController(
        inbox_poller,
        screenshot_dir=str(tmp_path),
        click_verify_timeout_ms=100,
        button_visible_timeout_ms=100,
    )


async def test_workspace_selection_skips_email_verification(page, controller, inbox_poller):
    workspace_list(page)
    page.counts[ARIA_OPEN_ACME] = 1
    loads_workspace_on_click(page, ARIA_OPEN_ACME)

    await controller.run(page, "Acme")

    assert controller.state == LoginFlowState.COMPLETED
    assert page.clicks == [ARIA_OPEN_ACME]
    assert inbox_poller.calls == []
    assert await controller.select_workspace(page, "Acme") is False
    assert page.clicks == [ARIA_OPEN_ACME]


async def test_ineffective_click_falls_through_to_next_strategy(page, controller):
    workspace_list(page)
    page.counts[ARIA_OPEN_ACME] = 1
    page.visible[ARIA_OPEN_ACME] = True
    page.counts[ACME_TITLE] = 1
    loads_workspace_on_click(page, ACME_ANCESTOR_LINK)

    strategy = await controller.click_workspace(page, "Acme")

    assert strategy == "title_ancestor_link"
    assert page.clicks == [ARIA_OPEN_ACME, ACME_ANCESTOR_LINK]


async def test_disabled_control_is_not_clicked(page, controller):
    workspace_list(page)
    page.counts[ARIA_OPEN_ACME] = 1
    page.visible[ARIA_OPEN_ACME] = True
    page.enabled[ARIA_OPEN_ACME] = False
    page.counts[ACME_TITLE] = 1
    loads_workspace_on_click(page, ACME_ANCESTOR_LINK)

    assert await controller.click_workspace(page, "Acme") == "title_ancestor_link"
    assert page.clicks == [ACME_ANCESTOR_LINK]


async def test_email_verification_then_workspace(page, controller, inbox_poller):
    page.counts[CODE_FIRST_DIGIT_SELECTOR] = 1
    page.counts[WORKSPACE_OPEN_LINK_SELECTOR] = 1
    page.counts[ARIA_OPEN_ACME] = 1
    loads_workspace_on_click(page, ARIA_OPEN_ACME)
    not_before = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    await controller.run(page, "Acme", max_wait_minutes=2, not_before=not_before)

    assert inbox_poller.calls == [(not_before, 2)]
    assert page.fills == [
        (f'input[aria-label="digit {i} of 6"]', char)
        for i, char in enumerate("ABCDEF", start=1)
    ]
    assert page.waits.count(100) == 6
    assert controller.state == LoginFlowState.COMPLETED


async def test_unknown_page_is_reprobed_then_fails(page, controller, tmp_path):
    page.url = "https://slack.com/something-else"

    with pytest.raises(HeuristicMissError) as exc_info:
        await controller.run(page, "Acme")

    assert page.waits[:2] == [2000, 3000]
    assert "URL: https://slack.com/something-else" in str(exc_info.value)
    assert exc_info.value.screenshot.startswith(str(tmp_path))
    assert controller.state == LoginFlowState.FAILED


async def test_missing_workspace_lists_available_titles(page, controller):
    workspace_list(page)
    page.texts[WORKSPACE_TITLE_SELECTOR] = [" Acme ", "Beta"]

    with pytest.raises(HeuristicMissError) as exc_info:
        await controller.click_workspace(page, "Gamma")

    assert exc_info.value.candidates == ["Acme", "Beta"]
    assert 'Failed to successfully click workspace "Gamma"' in str(exc_info.value)
    assert "Available workspaces: Acme, Beta" in str(exc_info.value)
    assert page.clicks == []
    assert len(page.screenshots) == 1


@pytest.mark.parametrize("code", ["AB-12", "ABCD-1234", ""])
async def test_enter_code_rejects_wrong_length(page, controller, code):
    with pytest.raises(ValueError, match="Invalid Slack code length"):
        await controller.enter_code(page, code)
    assert page.fills == []


class FakeBridge:
    def __init__(self, challenge=None, injected=True, invoked=True, callbacks=None):
        self.challenge = challenge
        self.injected = injected
        self.invoked = invoked
        self.callbacks = callbacks or []
        self.delivered = []

    async def detect_challenge(self):
        return self.challenge

    async def inject_solution(self, token):
        self.delivered.append(("inject", token))
        return self.injected

    async def invoke_callback(self, token):
        self.delivered.append(("callback", token))
        return self.invoked

    async def analyze_callbacks(self):
        return self.callbacks


class FakeSolver:
    def __init__(self):
        self.configs = []

    async def solve(self, config, max_attempts=60, poll_interval_ms=5000):
        self.configs.append(config)
        return ChallengeSolution(g_recaptcha_response="solved")


async def test_solve_challenge_delivers_token(page, inbox_poller, tmp_path):
    bridge = FakeBridge(challenge={"siteKey": "6LeKey", "invisible": True})
    solver = FakeSolver()
    controller = SlackLoginFlowController(
        inbox_poller,
        challenge_solver=solver,
        bridge_factory=lambda p: bridge,
        screenshot_dir=str(tmp_path),
    )

    assert await controller.solve_challenge(page) is True
    assert solver.configs[0].website_key == "6LeKey"
    assert solver.configs[0].website_url == page.url
    assert solver.configs[0].extra_params == {"isInvisible": True}
    assert bridge.delivered == [("inject", "solved"), ("callback", "solved")]


async def test_undeliverable_token_reports_callbacks(page, inbox_poller, tmp_path):
    bridge = FakeBridge(
        challenge={"siteKey": "6LeKey"},
        injected=False,
        invoked=False,
        callbacks=[{"path": "0.callback", "preview": "function(a){}"}],
    )
    controller = SlackLoginFlowController(
        inbox_poller,
        challenge_solver=FakeSolver(),
        bridge_factory=lambda p: bridge,
        screenshot_dir=str(tmp_path),
    )

    with pytest.raises(HeuristicMissError) as exc_info:
        await controller.solve_challenge(page)
    assert exc_info.value.candidates == ["0.callback"]


async def test_challenge_without_solver_is_left_alone(page, inbox_poller, tmp_path):
    bridge = FakeBridge(challenge={"siteKey": "6LeKey"})
    controller = SlackLoginFlowController(
        inbox_poller, bridge_factory=lambda p: bridge, screenshot_dir=str(tmp_path)
    )

    assert await controller.solve_challenge(page) is False
    assert bridge.delivered == []


async def test_sign_in_submits_email(page, inbox_poller, tmp_path):
    email_input = 'input[data-qa="signin_domain_input"]'
    submit = 'button[data-qa="submit_button"]'
    page.visible[email_input] = True
    page.visible[submit] = True
    controller = SlackLoginFlowController(
        inbox_poller, bridge_factory=lambda p: FakeBridge(), screenshot_dir=str(tmp_path)
    )
    before = datetime.now(timezone.utc)

    not_before = await controller.sign_in(page, "me@example.com")

    assert page.visited == [SLACK_SIGNIN_URL]
    assert page.fills == [(email_input, "me@example.com")]
    assert page.clicks == [submit]
    assert before <= not_before <= datetime.now(timezone.utc)


async def test_sign_in_presses_enter_without_button(page, inbox_poller, tmp_path):
    email_input = 'input[type="email"]'
    page.visible[email_input] = True
    controller = SlackLoginFlowController(
        inbox_poller, bridge_factory=lambda p: FakeBridge(), screenshot_dir=str(tmp_path)
    )

    await controller.sign_in(page, "me@example.com")

    assert page.presses == [(email_input, "Enter")]


async def test_sign_in_without_email_field(page, inbox_poller, tmp_path):
    controller = SlackLoginFlowController(
        inbox_poller, bridge_factory=lambda p: FakeBridge(), screenshot_dir=str(tmp_path)
    )

    with pytest.raises(HeuristicMissError, match="Email input field not found"):
        await controller.sign_in(page, "me@example.com")


async def test_onetrust_banner_is_accepted(page, controller):
    page.visible["#onetrust-banner-sdk"] = True
    page.visible["#onetrust-banner-sdk >> #onetrust-accept-btn-handler"] = True

    assert await controller.dismiss_cookie_banners(page) is True
    assert page.clicks == ["#onetrust-banner-sdk >> #onetrust-accept-btn-handler"]
