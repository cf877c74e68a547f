"""Data models for the Slack session service."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.constants import SLACK_CODE_SENDER, SLACK_CODE_SUBJECT, XOXC_TOKEN_REGEX


class ChallengeType(str, Enum):
    """CAPTCHA task types understood by the solving services."""

    RECAPTCHA_V2 = "ReCaptchaV2Task"
    RECAPTCHA_V2_PROXYLESS = "ReCaptchaV2TaskProxyLess"
    RECAPTCHA_V2_ENTERPRISE = "ReCaptchaV2EnterpriseTask"
    RECAPTCHA_V3 = "ReCaptchaV3Task"
    RECAPTCHA_V3_PROXYLESS = "ReCaptchaV3TaskProxyLess"
    HCAPTCHA = "HCaptchaTask"
    FUNCAPTCHA = "FunCaptchaTask"


class ChallengeTaskConfig(BaseModel):
    """One solve request for the CAPTCHA service."""

    model_config = ConfigDict(frozen=True)

    website_url: str
    website_key: str
    task_type: str = ChallengeType.RECAPTCHA_V2_PROXYLESS.value
    extra_params: Dict[str, Any] = Field(default_factory=dict)


class ChallengeSolution(BaseModel):
    """Solved CAPTCHA token returned by the service."""

    g_recaptcha_response: str
    user_agent: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None


class ChallengeTaskStatus(str, Enum):
    """Task status reported by the solving service."""

    IDLE = "idle"
    PROCESSING = "processing"
    READY = "ready"


class CreateTaskResponse(BaseModel):
    """Normalised response to a create-task call."""

    error_id: int = 0
    task_id: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None


class ChallengeTaskResult(BaseModel):
    """Normalised response to a get-result call."""

    error_id: int = 0
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    status: ChallengeTaskStatus = ChallengeTaskStatus.PROCESSING
    solution: Optional[ChallengeSolution] = None

    @property
    def is_ready(self) -> bool:
        return self.status == ChallengeTaskStatus.READY

    @property
    def is_error(self) -> bool:
        """Ready but failed, or ready without a solution to use."""
        return self.is_ready and (self.error_id != 0 or self.solution is None)

    @property
    def is_success(self) -> bool:
        return self.is_ready and self.error_id == 0 and self.solution is not None


class SameSiteMode(str, Enum):
    """Browser sameSite values accepted by Playwright."""

    STRICT = "Strict"
    LAX = "Lax"
    NONE = "None"


class RawCookie(BaseModel):
    """Cookie as exported by a browser extension into the blob store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    domain: str
    expiration_date: Optional[float] = Field(default=None, alias="expirationDate")
    host_only: bool = Field(default=False, alias="hostOnly")
    http_only: bool = Field(default=False, alias="httpOnly")
    name: str
    path: str = "/"
    same_site: Optional[str] = Field(default="unspecified", alias="sameSite")
    secure: bool = False
    session: bool = False
    store_id: Optional[str] = Field(default=None, alias="storeId")
    value: str


class CookieRecord(BaseModel):
    """Cookie ready to be replayed into a browser context."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: Optional[int] = None
    http_only: bool = False
    secure: bool = False
    same_site: SameSiteMode = SameSiteMode.LAX

    def to_playwright(self) -> Dict[str, Any]:
        """Shape expected by ``BrowserContext.add_cookies``."""
        cookie = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": self.same_site.value,
        }
        if self.expires is not None:
            cookie["expires"] = self.expires
        return cookie

    @classmethod
    def from_playwright(cls, cookie: Dict[str, Any]) -> "CookieRecord":
        """Build a record from ``BrowserContext.cookies()`` output."""
        expires = cookie.get("expires")
        # Playwright reports session cookies with expires == -1
        if expires is not None and expires < 0:
            expires = None
        return cls(
            name=cookie["name"],
            value=cookie["value"],
            domain=cookie["domain"],
            path=cookie.get("path", "/"),
            expires=int(expires) if expires is not None else None,
            http_only=cookie.get("httpOnly", False),
            secure=cookie.get("secure", False),
            same_site=SameSiteMode(cookie.get("sameSite", "Lax")),
        )


class LoginFlowState(str, Enum):
    """States of the Slack login flow, derived from the live page."""

    UNKNOWN = "unknown"
    WORKSPACE_SELECTION = "workspace_selection"
    EMAIL_VERIFICATION = "email_verification"
    VERIFICATION_SUCCEEDED_AWAITING_WORKSPACE = "verification_succeeded_awaiting_workspace"
    COMPLETED = "completed"
    FAILED = "failed"


class CapturedSession(BaseModel):
    """Session token plus the cookie jar it is bound to."""

    token: str
    cookies: List[CookieRecord] = Field(default_factory=list)

    @field_validator("token")
    @classmethod
    def token_must_match_format(cls, value: str) -> str:
        if not XOXC_TOKEN_REGEX.fullmatch(value):
            raise ValueError("token does not match the xoxc token format")
        return value


class InboxSearchQuery(BaseModel):
    """Search constraints for one verification attempt."""

    sender_domain: str = SLACK_CODE_SENDER
    subject_contains: str = SLACK_CODE_SUBJECT
    not_before: datetime

    @property
    def not_before_ms(self) -> int:
        not_before = self.not_before
        if not_before.tzinfo is None:
            not_before = not_before.replace(tzinfo=timezone.utc)
        return int(not_before.timestamp() * 1000)

    def to_gmail_query(self) -> str:
        """Coarse search string; Gmail only filters by day.

        Gmail reads a bare date as midnight Pacific time, so the floor is the
        previous UTC day. Stale mail is dropped later by ``internalDate``.
        """
        day = (self.not_before - timedelta(days=1)).strftime("%Y/%m/%d")
        return f'from:{self.sender_domain} subject:"{self.subject_contains}" after:{day}'


class CallbackLocation(BaseModel):
    """Where the CAPTCHA completion callback was found in the page."""

    client_id: str
    path: str


# HTTP route layer models


class PostMessageRequest(BaseModel):
    """Body of POST /api/slack/messages."""

    channel: str = Field(min_length=1)
    text: Optional[str] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    ts: Optional[str] = None
    thread_ts: Optional[str] = None
    type: Optional[str] = None
    x_args: Optional[Dict[str, Any]] = Field(default=None, alias="xArgs")
    unfurl: Optional[List[Dict[str, Any]]] = None
    client_context_team_id: Optional[str] = None
    draft_id: Optional[str] = None
    include_channel_perm_error: Optional[bool] = None
    client_msg_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def require_text_or_blocks(self) -> "PostMessageRequest":
        if not self.text and not self.blocks:
            raise ValueError("Either text or blocks is required")
        return self


class DeleteMessageRequest(BaseModel):
    """Body of DELETE /api/slack/messages."""

    channel: str = Field(min_length=1)
    ts: str = Field(min_length=1)


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
    slackApiReady: bool


class ApiStatusResponse(BaseModel):
    status: str = "ready"
    timestamp: str
    endpoints: Dict[str, str]


class ChannelsResponse(BaseModel):
    channels: List[Dict[str, Any]]
    count: int


class ErrorResponse(BaseModel):
    error: str
