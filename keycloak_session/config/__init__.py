"""Configuration package exports."""

from .loader import load_config_from_env, preferences_path_from_env
from .model import AuthConfig

__all__ = ["AuthConfig", "load_config_from_env", "preferences_path_from_env"]
