import base64
from datetime import datetime, timedelta, timezone

import pytest

from src.auth.twofa import GmailInboxPoller, InboxPoller, extract_code, get_email_body
from src.exceptions import InboxTimeoutError
from src.models import InboxSearchQuery

NOT_BEFORE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def message(message_id: str, received: datetime, body: str) -> dict:
    return {
        "id": message_id,
        "internalDate": str(int(received.timestamp() * 1000)),
        "payload": {
            "headers": [{"name": "Subject", "value": "Slack confirmation code"}],
            "body": {"data": encode(body)},
        },
    }


class InMemoryInbox(InboxPoller):
    def __init__(self, messages, **kwargs):
        super().__init__(**kwargs)
        self.messages = {m["id"]: m for m in messages}
        self.queries = []

    async def search_messages(self, query, max_results=10):
        self.queries.append(query)
        return [{"id": message_id} for message_id in self.messages]

    async def get_message(self, message_id):
        return self.messages[message_id]


async def test_stale_code_is_skipped_for_fresh_one():
    inbox = InMemoryInbox(
        [
            message("old", NOT_BEFORE - timedelta(seconds=1), "Your code is OLD-111"),
            message("new", NOT_BEFORE + timedelta(seconds=30), "Your code is NEW-222"),
        ]
    )

    code = await inbox.await_code(NOT_BEFORE, max_wait_minutes=1)

    assert code == "NEW-222"
    assert inbox.queries == ['from:slack.com subject:"confirmation code" after:2024/04/30']


def test_query_floor_never_passes_early_utc_sign_in():
    query = InboxSearchQuery(not_before=datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc))
    assert query.to_gmail_query() == (
        'from:slack.com subject:"confirmation code" after:2026/10/18'
    )


async def test_message_at_exact_not_before_is_stale():
    inbox = InMemoryInbox([message("same", NOT_BEFORE, "ABC-123")], poll_interval_seconds=0)

    with pytest.raises(InboxTimeoutError):
        await inbox.await_code(NOT_BEFORE, max_wait_minutes=0)


async def test_timeout_reports_attempts():
    inbox = InMemoryInbox([], poll_interval_seconds=0)

    with pytest.raises(InboxTimeoutError) as exc_info:
        await inbox.await_code(NOT_BEFORE, max_wait_minutes=0)

    assert "No verification email found after 0 minutes" in str(exc_info.value)
    assert exc_info.value.attempts == 1


async def test_fresh_message_without_code_keeps_polling():
    inbox = InMemoryInbox(
        [message("noise", NOT_BEFORE + timedelta(minutes=1), "Welcome to Slack")],
        poll_interval_seconds=0,
    )

    with pytest.raises(InboxTimeoutError):
        await inbox.await_code(NOT_BEFORE, max_wait_minutes=0)


def test_body_collects_nested_parts():
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [
            {"mimeType": "text/plain", "body": {"data": encode("Confirm with ")}},
            {
                "mimeType": "multipart/related",
                "parts": [{"mimeType": "text/html", "body": {"data": encode("<b>Q7X-4KD</b>")}}],
            },
        ],
    }
    body = get_email_body(payload)
    assert body == "Confirm with <b>Q7X-4KD</b>"
    assert extract_code(body) == "Q7X-4KD"


async def test_code_in_subject_line():
    fresh = message("subj", NOT_BEFORE + timedelta(seconds=5), "Open the app to continue.")
    fresh["payload"]["headers"] = [{"name": "Subject", "value": "Slack confirmation code: XR4-2BQ"}]
    inbox = InMemoryInbox([fresh])

    assert await inbox.await_code(NOT_BEFORE, max_wait_minutes=1) == "XR4-2BQ"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("code: ABC-12", "ABC-12"),
        ("ZZ9-XYZ is yours", "ZZ9-XYZ"),
        ("abc-123", None),
        ("", None),
    ],
)
def test_extract_code(text, expected):
    assert extract_code(text) == expected


class FakeRequest:
    def __init__(self, result):
        self.result = result

    def execute(self):
        return self.result


class FakeMessages:
    def __init__(self, listing, messages):
        self.listing = listing
        self.messages = messages
        self.list_kwargs = None

    def list(self, **kwargs):
        self.list_kwargs = kwargs
        return FakeRequest(self.listing)

    def get(self, userId, id, format):
        return FakeRequest(self.messages[id])


class FakeGmailService:
    def __init__(self, listing, messages):
        self._messages = FakeMessages(listing, messages)

    def users(self):
        return self

    def messages(self):
        return self._messages


async def test_gmail_poller_uses_service():
    fresh = message("m1", NOT_BEFORE + timedelta(seconds=5), "Code K2P-9ZQ")
    service = FakeGmailService({"messages": [{"id": "m1"}]}, {"m1": fresh})
    poller = GmailInboxPoller(service=service)

    code = await poller.await_code(NOT_BEFORE, max_wait_minutes=1)

    assert code == "K2P-9ZQ"
    assert service.messages().list_kwargs["userId"] == "me"
    assert service.messages().list_kwargs["maxResults"] == 10


async def test_gmail_poller_handles_empty_listing():
    poller = GmailInboxPoller(service=FakeGmailService({}, {}), poll_interval_seconds=0)

    with pytest.raises(InboxTimeoutError):
        await poller.await_code(NOT_BEFORE, max_wait_minutes=0)
