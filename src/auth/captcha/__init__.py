"""CAPTCHA solving module."""

from .base import CaptchaSolver
from .factory import CaptchaSolverFactory, CaptchaSolverType
from .page_bridge import PageScriptBridge, PageScriptExecutor
from .solvers import CapsolverSolver, SolveCaptchaSolver

__all__ = [
    "CaptchaSolver",
    "CaptchaSolverFactory",
    "CaptchaSolverType",
    "PageScriptBridge",
    "PageScriptExecutor",
    "CapsolverSolver",
    "SolveCaptchaSolver",
]
