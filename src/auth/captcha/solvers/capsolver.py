"""Capsolver backend (JSON createTask / getTaskResult API)."""

import logging

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


class CapsolverSolver(CaptchaSolver):
    """Solve reCAPTCHA tasks through api.capsolver.com."""

    name = "Capsolver"

    @property
    def default_base_url(self) -> str:
        return "https://api.capsolver.com"

    async def create_task(self, config: ChallengeTaskConfig) -> CreateTaskResponse:
        payload = {
            "clientKey": self.api_key,
            "task": {
                "type": config.task_type,
                "websiteURL": config.website_url,
                "websiteKey": config.website_key,
                **config.extra_params,
            },
        }
        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/createTask", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise self._request_failed(e) from e

        task_id = data.get("taskId")
        return CreateTaskResponse(
            error_id=data.get("errorId", 0),
            task_id=str(task_id) if task_id else None,
            error_code=data.get("errorCode"),
            error_description=data.get("errorDescription"),
        )

    async def get_task_result(self, task_id: str) -> ChallengeTaskResult:
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/getTaskResult",
                    json={"clientKey": self.api_key, "taskId": task_id},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise self._request_failed(e) from e

        solution = None
        raw_solution = data.get("solution")
        response_token = raw_solution and (
            raw_solution.get("gRecaptchaResponse") or raw_solution.get("token")
        )
        if response_token:
            extra = {
                k: v
                for k, v in raw_solution.items()
                if k not in ("gRecaptchaResponse", "token", "userAgent")
            }
            solution = ChallengeSolution(
                g_recaptcha_response=response_token,
                user_agent=raw_solution.get("userAgent"),
                extra_data=extra or None,
            )

        error_id = data.get("errorId", 0)
        if error_id != 0:
            # Capsolver reports failed tasks as "failed" or without a status
            status = ChallengeTaskStatus.READY
        else:
            try:
                status = ChallengeTaskStatus(data.get("status", "processing"))
            except ValueError:
                logger.warning(f"Unknown Capsolver task status: {data.get('status')}")
                status = ChallengeTaskStatus.PROCESSING

        error_description = data.get("errorDescription")
        if status == ChallengeTaskStatus.READY and error_id == 0 and solution is None:
            error_description = "Task is ready but returned no usable solution token"

        return ChallengeTaskResult(
            error_id=error_id,
            error_code=data.get("errorCode"),
            error_description=error_description,
            status=status,
            solution=solution,
        )
