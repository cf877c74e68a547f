"""Login flow controllers."""

from .slack import SlackLoginFlowController

__all__ = ["SlackLoginFlowController"]
