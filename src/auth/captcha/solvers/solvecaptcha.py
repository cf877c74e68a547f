"""SolveCaptcha backend (2captcha-style in.php / res.php API)."""

import logging
from typing import Dict

import httpx

from ..base import CaptchaSolver
from src.models import (
    ChallengeSolution,
    ChallengeTaskConfig,
    ChallengeTaskResult,
    ChallengeTaskStatus,
    CreateTaskResponse,
)

logger = logging.getLogger(__name__)

NOT_READY = "CAPCHA_NOT_READY"

_HANDLED_EXTRA_PARAMS = ("action", "min_score", "invisible", "isInvisible")


def map_task_type_to_method(task_type: str) -> str:
    """Translate a task type into the ``method`` form field."""
    lowered = task_type.lower()
    if lowered.startswith("hcaptcha"):
        return "hcaptcha"
    if lowered.startswith("funcaptcha"):
        return "funcaptcha"
    return "userrecaptcha"


class SolveCaptchaSolver(CaptchaSolver):
    """Solve reCAPTCHA tasks through api.solvecaptcha.com."""

    name = "SolveCaptcha"

    @property
    def default_base_url(self) -> str:
        return "https://api.solvecaptcha.com"

    def build_submit_form(self, config: ChallengeTaskConfig) -> Dict[str, str]:
        extra = config.extra_params
        form = {
            "key": self.api_key,
            "method": map_task_type_to_method(config.task_type),
            "googlekey": config.website_key,
            "pageurl": config.website_url,
            "json": "1",
        }

        if "V3" in config.task_type:
            form["version"] = "v3"
            if extra.get("action"):
                form["action"] = str(extra["action"])
            if extra.get("min_score") is not None:
                form["min_score"] = str(extra["min_score"])

        if "Invisible" in config.task_type or extra.get("invisible") or extra.get("isInvisible"):
            form["invisible"] = "1"

        for key, value in extra.items():
            if key not in _HANDLED_EXTRA_PARAMS:
                form[key] = str(value)
        return form

    async def create_task(self, config: ChallengeTaskConfig) -> CreateTaskResponse:
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/in.php", data=self.build_submit_form(config)
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise self._request_failed(e) from e

        if data.get("status") == 1:
            return CreateTaskResponse(error_id=0, task_id=str(data.get("request")))
        return CreateTaskResponse(
            error_id=1,
            error_code="SOLVECAPTCHA_ERROR",
            error_description=data.get("request"),
        )

    async def get_task_result(self, task_id: str) -> ChallengeTaskResult:
        params = {"key": self.api_key, "action": "get", "id": task_id, "json": "1"}
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/res.php", params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise self._request_failed(e) from e

        if data.get("status") == 1:
            return ChallengeTaskResult(
                status=ChallengeTaskStatus.READY,
                solution=ChallengeSolution(g_recaptcha_response=data["request"]),
            )
        if data.get("request") == NOT_READY:
            return ChallengeTaskResult(status=ChallengeTaskStatus.PROCESSING)
        return ChallengeTaskResult(
            error_id=1,
            error_code="SOLVECAPTCHA_ERROR",
            error_description=data.get("request"),
            status=ChallengeTaskStatus.READY,
        )
