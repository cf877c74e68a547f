"""Gmail inbox poller for Slack confirmation codes."""

import asyncio
import logging
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from googleapiclient.discovery import build

from .base import InboxPoller, DEFAULT_POLL_INTERVAL_SECONDS
from .gmail_auth import load_gmail_credentials

logger = logging.getLogger(__name__)


class GmailInboxPoller(InboxPoller):
    """Search a Gmail mailbox through the Gmail REST API."""

    def __init__(
        self,
        service: Any = None,
        credentials_loader: Callable[[], Any] = load_gmail_credentials,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        user_id: str = "me",
    ):
        super().__init__(poll_interval_seconds=poll_interval_seconds)
        self._service = service
        self._credentials_loader = credentials_loader
        self.user_id = user_id

    def _build_service(self) -> Any:
        creds = self._credentials_loader()
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    async def _run(self, func: Callable, *args, **kwargs) -> Any:
        return await asyncio.get_running_loop().run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    async def get_service(self) -> Any:
        if self._service is None:
            self._service = await self._run(self._build_service)
            logger.info("Gmail API client ready")
        return self._service

    async def search_messages(self, query: str, max_results: int = 10) -> List[Dict[str, Any]]:
        service = await self.get_service()
        logger.info(f"🔄 Searching Gmail: {query}")
        request = service.users().messages().list(
            userId=self.user_id, q=query, maxResults=max_results
        )
        response = await self._run(request.execute)
        return response.get("messages") or []

    async def get_message(self, message_id: str) -> Dict[str, Any]:
        service = await self.get_service()
        request = service.users().messages().get(
            userId=self.user_id, id=message_id, format="full"
        )
        return await self._run(request.execute)
