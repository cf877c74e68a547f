"""Email verification code module."""

from .base import InboxPoller
from .code_extractor import extract_code, extract_code_from_message, get_email_body
from .gmail_handler import GmailInboxPoller

__all__ = [
    "InboxPoller",
    "GmailInboxPoller",
    "extract_code",
    "extract_code_from_message",
    "get_email_body",
]
