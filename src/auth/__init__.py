"""Slack browser authentication: CAPTCHA, emailed codes, login flow, token capture."""

from .providers import SlackLoginFlowController
from .token_interceptor import capture_token, extract_token_from_body

__all__ = [
    "SlackLoginFlowController",
    "capture_token",
    "extract_token_from_body",
]
