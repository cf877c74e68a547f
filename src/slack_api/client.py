"""Client for Slack's private web API, authenticated as a browser session."""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from src.constants import SLACK_API_BASE_URL, SLACK_APP_ORIGIN
from src.exceptions import SlackApiError
from src.models import CookieRecord

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_TYPES = "public_channel,private_channel,mpim,im"
RECENT_MESSAGES_CHANNELS = 5
RECENT_MESSAGES_LIMIT = 20

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class SlackApi:
    """Calls ``app.slack.com/api`` with an xoxc token and its cookie jar.

    Every call fails with :class:`SlackApiError` when Slack answers with
    ``ok: false`` or an HTML page instead of JSON.
    """

    def __init__(
        self,
        token: str,
        cookies: Optional[List[CookieRecord]] = None,
        base_url: str = SLACK_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self.cookies = cookies or []
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def token(self) -> str:
        return self._token

    def build_headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        cookie_header = "; ".join(f"{c.name}={c.value}" for c in self.cookies)
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "User-Agent": USER_AGENT,
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
            "Cookie": cookie_header,
            "Origin": SLACK_APP_ORIGIN,
            "Pragma": "no-cache",
            "Referer": referer or f"{SLACK_APP_ORIGIN}/",
            "Sec-Ch-Ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
            "Sec-Ch-Ua-Mobile": "?0",
            "Sec-Ch-Ua-Platform": '"macOS"',
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin",
            "X-Requested-With": "XMLHttpRequest",
            "X-Slack-Version-Ts": str(int(time.time())),
        }

    def build_form(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        form = {"token": self._token}
        for key, value in (params or {}).items():
            if value is not None:
                form[key] = _form_value(value)
        return form

    async def request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        referer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST ``method`` and return the decoded body of an ``ok`` response."""
        endpoint = f"{self.base_url}/{method}"
        logger.info(f"🔍 Making Slack API request to: {endpoint}")
        logger.debug(f"🎯 Token (first 20 chars): {self._token[:20]}...")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    endpoint,
                    data=self.build_form(params),
                    headers=self.build_headers(referer),
                )
                resp.raise_for_status()
        except httpx.TimeoutException:
            raise SlackApiError(
                f"Slack API request to {method} timed out after {self.timeout}s", endpoint=endpoint
            )
        except httpx.HTTPStatusError as e:
            raise SlackApiError(
                f"HTTP error {e.response.status_code} from {method}", endpoint=endpoint
            )
        except httpx.HTTPError as e:
            raise SlackApiError(f"Slack API request to {method} failed: {e}", endpoint=endpoint)

        if "<html" in resp.text[:1000].lower():
            raise SlackApiError(
                "Received HTML response (likely login page) - authentication failed. "
                "Check your token and cookie.",
                endpoint=endpoint,
            )

        try:
            data = resp.json()
        except ValueError:
            raise SlackApiError(f"Slack API returned a non-JSON body from {method}", endpoint=endpoint)

        if not data.get("ok"):
            details = {
                key: data.get(key) for key in ("error", "warning", "needed", "provided")
            }
            logger.error(f"❌ Slack API error from {method}: {details}")
            message = (
                data.get("error")
                or data.get("warning")
                or f"API returned ok:false without error message. Endpoint: {endpoint}"
            )
            raise SlackApiError(
                f"Slack API error: {message}",
                error=data.get("error"),
                warning=data.get("warning"),
                endpoint=endpoint,
                details=details,
            )
        return data

    async def client_user_boot(self, workspace_url: str) -> Dict[str, Any]:
        """Bootstrap data for the workspace: channels, self, team."""
        now = str(int(time.time()))
        params = {
            "min_channel_updated": "0",
            "include_min_version_bump_check": "1",
            "version_ts": now,
            "build_version_ts": now,
            "_x_reason": "initial-data",
            "_x_mode": "online",
            "_x_sonic": "true",
            "_x_app_name": "client",
        }
        data = await self.request("client.userBoot", params, referer=workspace_url)

        channels = data.get("channels") or []
        user = (data.get("self") or {}).get("real_name", "Unknown")
        team = (data.get("team") or {}).get("name", "Unknown")
        logger.info(f"📋 userBoot: {len(channels)} channels, user {user}, team {team}")
        return data

    async def get_conversations_list(self, types: str = DEFAULT_CONVERSATION_TYPES) -> Dict[str, Any]:
        return await self.request(
            "conversations.list",
            {"types": types, "exclude_archived": "false", "limit": "1000"},
        )

    async def get_conversation_history(
        self,
        channel: str,
        oldest: Optional[str] = None,
        latest: Optional[str] = None,
        limit: int = 100,
        inclusive: Optional[bool] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        params = {
            "channel": channel,
            "limit": limit or 100,
            "oldest": oldest,
            "latest": latest,
            "inclusive": inclusive,
            **extra,
        }
        data = await self.request("conversations.history", params)
        logger.info(f"📨 Found {len(data.get('messages') or [])} messages in {channel}")
        return data

    async def get_conversation_replies(
        self,
        channel: str,
        ts: str,
        oldest: Optional[str] = None,
        latest: Optional[str] = None,
        limit: Optional[int] = None,
        inclusive: Optional[bool] = None,
    ) -> Dict[str, Any]:
        params = {
            "channel": channel,
            "ts": ts,
            "oldest": oldest,
            "latest": latest,
            "limit": limit,
            "inclusive": inclusive,
        }
        return await self.request("conversations.replies", params)

    async def post_message(
        self,
        channel: str,
        text: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
        thread_ts: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Post ``text`` or ``blocks`` to ``channel``; blocks are sent as JSON."""
        if not text and not blocks:
            raise ValueError("Either text or blocks is required")

        params = {
            "channel": channel,
            "text": text,
            "blocks": blocks,
            "thread_ts": thread_ts,
            "type": extra.pop("type", None) or "message",
            **extra,
        }
        data = await self.request("chat.postMessage", params)
        logger.info(f"✅ Message posted to {channel} (ts={data.get('ts')})")
        return data

    async def delete_message(self, channel: str, ts: str) -> Dict[str, Any]:
        data = await self.request("chat.delete", {"channel": channel, "ts": ts})
        logger.info(f"🗑️ Message {ts} deleted from {channel}")
        return data

    async def get_recent_messages(self, workspace_url: str) -> Dict[str, Any]:
        """Recent messages from the first few channels in the boot data.

        A channel that fails is logged and left out of the result.
        """
        boot = await self.client_user_boot(workspace_url)
        channels = boot.get("channels")
        if not channels:
            raise SlackApiError("No channels found in userBoot response", endpoint="client.userBoot")

        sample = channels[:RECENT_MESSAGES_CHANNELS]
        results = []
        for channel in sample:
            try:
                history = await self.get_conversation_history(channel["id"], limit=RECENT_MESSAGES_LIMIT)
            except SlackApiError as e:
                logger.error(f"❌ Failed to get messages from {channel.get('name')}: {e}")
                continue

            messages = history.get("messages") or []
            results.append(
                {
                    "channel": {
                        "id": channel["id"],
                        "name": channel.get("name"),
                        "message_count": len(messages),
                    },
                    "messages": messages,
                }
            )
            await asyncio.sleep(0.1)

        return {
            "total_channels_sampled": len(sample),
            "sample_channels": results,
            "all_channels": channels,
        }
