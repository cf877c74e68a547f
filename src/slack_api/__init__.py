"""Slack private API access."""

from .client import SlackApi
from .factory import SlackApiFactory

__all__ = [
    "SlackApi",
    "SlackApiFactory",
]
