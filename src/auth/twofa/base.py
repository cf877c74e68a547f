"""Base inbox poller for email verification codes."""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from src.exceptions import InboxTimeoutError
from src.models import InboxSearchQuery
from .code_extractor import extract_code_from_message, get_subject

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class InboxPoller(ABC):
    """Abstract mailbox that is polled for a one-time verification code."""

    def __init__(self, poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS):
        self.poll_interval_seconds = poll_interval_seconds

    @abstractmethod
    async def search_messages(self, query: str, max_results: int = 10) -> List[Dict[str, Any]]:
        """Return message stubs (at least ``id``) matching a provider query."""
        pass

    @abstractmethod
    async def get_message(self, message_id: str) -> Dict[str, Any]:
        """Return the full message with ``internalDate`` and ``payload``."""
        pass

    async def find_code(self, query: InboxSearchQuery) -> Optional[str]:
        """One pass over the inbox; returns a code from a fresh message or None."""
        stubs = await self.search_messages(query.to_gmail_query())
        logger.info(f"📧 Found {len(stubs)} emails matching search")

        for stub in stubs:
            message_id = stub.get("id")
            if not message_id:
                continue
            message = await self.get_message(message_id)
            received_ms = int(message.get("internalDate") or 0)

            # The search filter is day-granular, so same-day stale mail gets here
            if received_ms <= query.not_before_ms:
                logger.info(f"⏭️ Skipping old email {message_id} received at {received_ms}")
                continue

            subject = get_subject(message.get("payload") or {})
            logger.info(f"📨 Processing fresh email {message_id}: {subject}")
            code = extract_code_from_message(message)
            if code:
                logger.info(f"✅ Found fresh verification code: {code}")
                return code
        return None

    async def await_code(self, not_before: datetime, max_wait_minutes: float = 5) -> str:
        """Poll until a code arrives in a message received after ``not_before``."""
        query = InboxSearchQuery(not_before=not_before)
        started = time.monotonic()
        deadline = started + max_wait_minutes * 60
        attempts = 0

        logger.info(
            f"🔍 Polling for verification emails after {not_before.isoformat()} "
            f"for up to {max_wait_minutes} minutes"
        )
        while True:
            attempts += 1
            code = await self.find_code(query)
            if code:
                return code

            if time.monotonic() >= deadline:
                elapsed = time.monotonic() - started
                raise InboxTimeoutError(
                    f"Timeout: No verification email found after {max_wait_minutes} minutes",
                    task="inbox",
                    attempts=attempts,
                    elapsed_seconds=elapsed,
                )
            logger.info(
                f"⏳ No new emails found, waiting {self.poll_interval_seconds}s before next check"
            )
            await asyncio.sleep(self.poll_interval_seconds)
