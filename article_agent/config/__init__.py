"""Configuration loading."""

from article_agent.config.loader import (
    get_required_env_keys,
    load_settings,
    resolve_settings_path,
    validate_secret_env,
)

__all__ = [
    "get_required_env_keys",
    "load_settings",
    "resolve_settings_path",
    "validate_secret_env",
]
