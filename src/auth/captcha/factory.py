"""Factory for creating CAPTCHA solvers from configuration."""

from enum import Enum
from typing import Dict, List, Optional, Type
from .base import CaptchaSolver
from .solvers import CapsolverSolver, SolveCaptchaSolver
from src.config import settings
from src.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)


class CaptchaSolverType(str, Enum):
    """CAPTCHA solving services."""

    CAPSOLVER = "capsolver"
    SOLVECAPTCHA = "solvecaptcha"


class CaptchaSolverFactory:
    """Factory for creating the configured CAPTCHA solving backend."""

    _solvers: Dict[CaptchaSolverType, Type[CaptchaSolver]] = {
        CaptchaSolverType.CAPSOLVER: CapsolverSolver,
        CaptchaSolverType.SOLVECAPTCHA: SolveCaptchaSolver,
    }

    _api_key_settings: Dict[CaptchaSolverType, str] = {
        CaptchaSolverType.CAPSOLVER: "capsolver_api_key",
        CaptchaSolverType.SOLVECAPTCHA: "solvecaptcha_api_key",
    }

    @classmethod
    def create_solver(
        cls,
        solver_type: Optional[CaptchaSolverType] = None,
        api_key: Optional[str] = None,
        **kwargs,
    ) -> CaptchaSolver:
        """Create a specific CAPTCHA solver.

        Without arguments the backend and key come from settings.
        """
        if solver_type is None:
            try:
                solver_type = CaptchaSolverType(settings.captcha_provider.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown CAPTCHA provider: {settings.captcha_provider}. "
                    f"Supported providers: {[t.value for t in CaptchaSolverType]}"
                )

        solver_class = cls._solvers.get(solver_type)
        if solver_class is None:
            raise ConfigurationError(f"Unknown CAPTCHA solver type: {solver_type}")

        if api_key is None:
            setting_name = cls._api_key_settings[solver_type]
            settings.validate_required(setting_name, context=f"{solver_type.value} solver")
            api_key = getattr(settings, setting_name)

        kwargs.setdefault("timeout", settings.captcha_request_timeout)
        solver = solver_class(api_key=api_key, **kwargs)
        logger.info(f"Created CAPTCHA solver: {solver_type.value}")
        return solver

    @classmethod
    def get_available_solvers(cls) -> List[CaptchaSolverType]:
        """Get list of available CAPTCHA solver types."""
        return list(cls._solvers.keys())
