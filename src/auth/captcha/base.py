"""Base class for CAPTCHA solving services."""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
import logging

import httpx

from src.exceptions import ChallengeServiceError, ChallengeTimeoutError
from src.models import (
    ChallengeSolution,
    ChallengeTaskConfig,
    ChallengeTaskResult,
    CreateTaskResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_REQUEST_TIMEOUT = 30.0


class CaptchaSolver(ABC):
    """Abstract CAPTCHA solving service.

    Backends only translate ``create_task`` and ``get_task_result`` into
    their own wire format. ``solve`` drives the submit-then-poll loop and
    is shared by every backend.
    """

    name: str = "captcha"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def default_base_url(self) -> str:
        """Service endpoint used when no base URL is given."""
        pass

    @abstractmethod
    async def create_task(self, config: ChallengeTaskConfig) -> CreateTaskResponse:
        """Submit a solve task."""
        pass

    @abstractmethod
    async def get_task_result(self, task_id: str) -> ChallengeTaskResult:
        """Fetch the current state of a task."""
        pass

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _request_failed(self, error: httpx.HTTPError) -> ChallengeServiceError:
        if isinstance(error, httpx.HTTPStatusError):
            detail = f" - {error.response.status_code}: {error.response.text}"
        else:
            detail = ""
        return ChallengeServiceError(
            f"{self.name} API request failed: {error}{detail}",
            code=type(error).__name__,
            description=str(error),
        )

    async def solve(
        self,
        config: ChallengeTaskConfig,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> ChallengeSolution:
        """Create a task and poll until it is solved, fails or times out."""
        logger.info(f"Creating {self.name} task {config.task_type} for {config.website_url}")
        created = await self.create_task(config)

        # Creation failures mean bad input, so they are never retried
        if created.error_id != 0:
            reason = created.error_description or created.error_code or "Unknown error"
            raise ChallengeServiceError(
                f"Failed to create {self.name} task: {reason}",
                code=created.error_code,
                description=created.error_description,
            )
        if not created.task_id:
            raise ChallengeServiceError(f"Failed to create {self.name} task: no task id returned")

        task_id = created.task_id
        logger.info(f"{self.name} task created: {task_id}")

        for attempt in range(1, max_attempts + 1):
            result = await self.get_task_result(task_id)

            if result.is_error:
                reason = result.error_description or result.error_code or "Unknown error"
                raise ChallengeServiceError(
                    f"{self.name} task {task_id} failed: {reason}",
                    code=result.error_code,
                    description=result.error_description,
                )
            if result.is_success:
                logger.info(f"✅ {self.name} task {task_id} solved after {attempt} attempts")
                return result.solution

            logger.info(f"Task status: {result.status.value}, attempt {attempt}/{max_attempts}")
            if attempt < max_attempts:
                await asyncio.sleep(poll_interval_ms / 1000)

        raise ChallengeTimeoutError(
            f"Task {task_id} timed out after {max_attempts} attempts",
            task=task_id,
            attempts=max_attempts,
            elapsed_seconds=max(max_attempts - 1, 0) * poll_interval_ms / 1000,
        )
