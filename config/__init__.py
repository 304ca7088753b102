"""Configuration package for interview session services."""
from .plans import PlanLimits, get_plan
from .routes import AppConfig, LlmRoute, load_app_registry, load_config, resolve_registry
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_app_registry",
    "load_config",
    "resolve_registry",
    "PlanLimits",
    "get_plan",
    "Settings",
    "settings",
]
