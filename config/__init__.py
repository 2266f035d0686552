"""Configuration package for the interview backend."""
from .routes import EVALUATOR_KEY, GENERATOR_KEY, AppConfig, LlmRoute, load_config, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "EVALUATOR_KEY",
    "GENERATOR_KEY",
    "LlmRoute",
    "load_config",
    "resolve_route",
    "Settings",
    "settings",
]
