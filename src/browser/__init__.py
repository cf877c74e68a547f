"""Browser management module."""

from .manager import BrowserManager

__all__ = ["BrowserManager"]
