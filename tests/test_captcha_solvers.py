import json

import httpx
import pytest

from src.auth.captcha import CaptchaSolverFactory, CaptchaSolverType
from src.auth.captcha.solvers import CapsolverSolver, SolveCaptchaSolver
from src.auth.captcha.solvers.solvecaptcha import map_task_type_to_method
from src.exceptions import ChallengeServiceError, ChallengeTimeoutError, ConfigurationError
from src.models import ChallengeTaskConfig

CONFIG = ChallengeTaskConfig(
    website_url="https://slack.com/signin",
    website_key="6LeSiteKey",
)


class CapsolverBackend:
    """Scripted api.capsolver.com."""

    def __init__(self, create_response, results):
        self.create_response = create_response
        self.results = list(results)
        self.create_calls = []
        self.result_calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if request.url.path == "/createTask":
            self.create_calls.append(payload)
            return httpx.Response(200, json=self.create_response)
        if request.url.path == "/getTaskResult":
            self.result_calls.append(payload)
            return httpx.Response(200, json=self.results.pop(0))
        return httpx.Response(404)


def capsolver(backend) -> CapsolverSolver:
    return CapsolverSolver(api_key="cap-key", transport=httpx.MockTransport(backend))


async def test_capsolver_returns_solution_from_third_poll():
    backend = CapsolverBackend(
        {"errorId": 0, "taskId": "task-1"},
        [
            {"errorId": 0, "status": "processing"},
            {"errorId": 0, "status": "processing"},
            {
                "errorId": 0,
                "status": "ready",
                "solution": {"gRecaptchaResponse": "solved-token", "userAgent": "UA/1.0"},
            },
        ],
    )

    solution = await capsolver(backend).solve(CONFIG, max_attempts=5, poll_interval_ms=0)

    assert solution.g_recaptcha_response == "solved-token"
    assert solution.user_agent == "UA/1.0"
    assert len(backend.result_calls) == 3
    assert backend.result_calls[0] == {"clientKey": "cap-key", "taskId": "task-1"}
    assert backend.create_calls[0]["task"] == {
        "type": "ReCaptchaV2TaskProxyLess",
        "websiteURL": "https://slack.com/signin",
        "websiteKey": "6LeSiteKey",
    }


async def test_capsolver_creation_error_never_polls():
    backend = CapsolverBackend(
        {"errorId": 1, "errorCode": "ERROR_KEY_DENIED_ACCESS", "errorDescription": "Bad key"},
        [],
    )

    with pytest.raises(ChallengeServiceError) as exc_info:
        await capsolver(backend).solve(CONFIG, max_attempts=5, poll_interval_ms=0)

    assert "Failed to create Capsolver task: Bad key" in str(exc_info.value)
    assert exc_info.value.code == "ERROR_KEY_DENIED_ACCESS"
    assert backend.result_calls == []


async def test_capsolver_ready_error_is_terminal():
    backend = CapsolverBackend(
        {"errorId": 0, "taskId": "task-2"},
        [
            {"errorId": 0, "status": "processing"},
            {"errorId": 1, "status": "failed", "errorCode": "ERROR_CAPTCHA_UNSOLVABLE"},
            {"errorId": 0, "status": "processing"},
        ],
    )

    with pytest.raises(ChallengeServiceError):
        await capsolver(backend).solve(CONFIG, max_attempts=5, poll_interval_ms=0)
    assert len(backend.result_calls) == 2


async def test_capsolver_ready_without_token_stops_polling():
    backend = CapsolverBackend(
        {"errorId": 0, "taskId": "task-5"},
        [
            {"errorId": 0, "status": "processing"},
            {"errorId": 0, "status": "ready", "solution": {}},
            {"errorId": 0, "status": "processing"},
        ],
    )

    with pytest.raises(ChallengeServiceError, match="no usable solution"):
        await capsolver(backend).solve(CONFIG, max_attempts=5, poll_interval_ms=0)
    assert len(backend.result_calls) == 2


async def test_capsolver_accepts_hcaptcha_token_field():
    backend = CapsolverBackend(
        {"errorId": 0, "taskId": "task-6"},
        [{"errorId": 0, "status": "ready", "solution": {"token": "hc-token", "respKey": "E0"}}],
    )

    solution = await capsolver(backend).solve(CONFIG, max_attempts=2, poll_interval_ms=0)

    assert solution.g_recaptcha_response == "hc-token"
    assert solution.extra_data == {"respKey": "E0"}


async def test_capsolver_times_out_after_max_attempts():
    backend = CapsolverBackend(
        {"errorId": 0, "taskId": "task-3"},
        [{"errorId": 0, "status": "processing"}] * 3,
    )

    with pytest.raises(ChallengeTimeoutError) as exc_info:
        await capsolver(backend).solve(CONFIG, max_attempts=3, poll_interval_ms=0)

    assert "task-3" in str(exc_info.value)
    assert exc_info.value.attempts == 3
    assert len(backend.result_calls) == 3


async def test_capsolver_http_failure_becomes_service_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
    solver = CapsolverSolver(api_key="cap-key", transport=transport)

    with pytest.raises(ChallengeServiceError):
        await solver.solve(CONFIG, max_attempts=1, poll_interval_ms=0)


async def test_solvecaptcha_polls_until_ready():
    calls = {"in": [], "res": []}
    results = [
        {"status": 0, "request": "CAPCHA_NOT_READY"},
        {"status": 1, "request": "solved-by-solvecaptcha"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/in.php":
            calls["in"].append(dict(httpx.QueryParams(request.content.decode())))
            return httpx.Response(200, json={"status": 1, "request": "98765"})
        calls["res"].append(dict(request.url.params))
        return httpx.Response(200, json=results.pop(0))

    solver = SolveCaptchaSolver(api_key="sc-key", transport=httpx.MockTransport(handler))
    solution = await solver.solve(CONFIG, max_attempts=5, poll_interval_ms=0)

    assert solution.g_recaptcha_response == "solved-by-solvecaptcha"
    assert calls["in"][0]["method"] == "userrecaptcha"
    assert calls["in"][0]["googlekey"] == "6LeSiteKey"
    assert calls["res"][0] == {"key": "sc-key", "action": "get", "id": "98765", "json": "1"}
    assert len(calls["res"]) == 2


async def test_solvecaptcha_rejected_submit_never_polls():
    polled = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/in.php":
            return httpx.Response(200, json={"status": 0, "request": "ERROR_ZERO_BALANCE"})
        polled.append(request)
        return httpx.Response(200, json={"status": 0, "request": "CAPCHA_NOT_READY"})

    solver = SolveCaptchaSolver(api_key="sc-key", transport=httpx.MockTransport(handler))

    with pytest.raises(ChallengeServiceError) as exc_info:
        await solver.solve(CONFIG, max_attempts=5, poll_interval_ms=0)

    assert "ERROR_ZERO_BALANCE" in str(exc_info.value)
    assert polled == []


def test_solvecaptcha_submit_form_for_v3_and_invisible():
    solver = SolveCaptchaSolver(api_key="sc-key")
    v3 = ChallengeTaskConfig(
        website_url="https://example.com",
        website_key="key",
        task_type="ReCaptchaV3TaskProxyLess",
        extra_params={"action": "login", "min_score": 0.7, "data-s": "abc"},
    )
    form = solver.build_submit_form(v3)
    assert form["version"] == "v3"
    assert form["action"] == "login"
    assert form["min_score"] == "0.7"
    assert form["data-s"] == "abc"
    assert "invisible" not in form

    invisible = ChallengeTaskConfig(
        website_url="https://example.com",
        website_key="key",
        extra_params={"isInvisible": True},
    )
    form = solver.build_submit_form(invisible)
    assert form["invisible"] == "1"
    assert "version" not in form
    assert "isInvisible" not in form


def test_task_type_to_method_mapping():
    assert map_task_type_to_method("HCaptchaTaskProxyLess") == "hcaptcha"
    assert map_task_type_to_method("FunCaptchaTask") == "funcaptcha"
    assert map_task_type_to_method("ReCaptchaV2EnterpriseTask") == "userrecaptcha"


def test_factory_uses_explicit_key():
    solver = CaptchaSolverFactory.create_solver(CaptchaSolverType.SOLVECAPTCHA, api_key="k")
    assert isinstance(solver, SolveCaptchaSolver)
    assert solver.api_key == "k"


def test_factory_requires_api_key(monkeypatch):
    from src.config import settings

    monkeypatch.setattr(settings, "capsolver_api_key", "")
    with pytest.raises(ConfigurationError, match="CAPSOLVER_API_KEY"):
        CaptchaSolverFactory.create_solver(CaptchaSolverType.CAPSOLVER)
