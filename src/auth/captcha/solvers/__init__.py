"""CAPTCHA solving service backends."""

from .capsolver import CapsolverSolver
from .solvecaptcha import SolveCaptchaSolver

__all__ = [
    "CapsolverSolver",
    "SolveCaptchaSolver",
]
