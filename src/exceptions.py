"""Error types raised while acquiring and using a Slack browser session."""

from typing import Any, Dict, List, Optional


class SlackSessionError(Exception):
    """Base error for the session service."""
    pass


class ConfigurationError(SlackSessionError):
    """A required setting is missing or invalid."""
    pass


class PollingTimeoutError(SlackSessionError):
    """A polling loop ran out of attempts or time."""

    def __init__(
        self,
        message: str,
        task: Optional[str] = None,
        attempts: Optional[int] = None,
        elapsed_seconds: Optional[float] = None,
    ):
        super().__init__(message)
        self.task = task
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds


class ChallengeTimeoutError(PollingTimeoutError):
    """The CAPTCHA service did not finish a task in time."""
    pass


class InboxTimeoutError(PollingTimeoutError):
    """No matching verification email arrived in time."""
    pass


class TokenCaptureTimeoutError(PollingTimeoutError):
    """No request carrying a session token was observed in time."""
    pass


class UpstreamApiError(SlackSessionError):
    """A third-party API answered with an explicit error."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.description = description


class ChallengeServiceError(UpstreamApiError):
    """The CAPTCHA solving service rejected a request."""
    pass


class SlackApiError(UpstreamApiError):
    """The Slack private API returned ok:false or a non-JSON page."""

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        warning: Optional[str] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=error, description=warning)
        self.error = error
        self.warning = warning
        self.endpoint = endpoint
        self.details = details or {}


class HeuristicMissError(SlackSessionError):
    """No selector, probe or page-side callable matched."""

    def __init__(
        self,
        message: str,
        candidates: Optional[List[str]] = None,
        screenshot: Optional[str] = None,
    ):
        super().__init__(message)
        self.candidates = candidates or []
        self.screenshot = screenshot


class CookieLoadError(SlackSessionError):
    """The stored cookie jar could not be read."""
    pass
