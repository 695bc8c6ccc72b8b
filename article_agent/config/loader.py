"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from article_agent.models import SettingsConfig

DEFAULT_SETTINGS_PATH = "config/settings.yaml"
SETTINGS_ENV_VAR = "ARTICLE_AGENT_SETTINGS"

# Map model string prefixes to the env var that must be set for that provider.
_PREFIX_TO_ENV: dict[str, str] = {
    "google-gla:": "GEMINI_API_KEY",
    "google-vertex:": "GEMINI_API_KEY",
    "anthropic:": "ANTHROPIC_API_KEY",
    "openai:": "OPENAI_API_KEY",
    "groq:": "GROQ_API_KEY",
    "mistral:": "MISTRAL_API_KEY",
    "cohere:": "CO_API_KEY",
}


def _read_yaml(path: str) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def resolve_settings_path(settings_path: str | None = None) -> str:
    """Explicit path wins, then the environment override, then the default."""
    if settings_path:
        return settings_path
    return os.getenv(SETTINGS_ENV_VAR) or DEFAULT_SETTINGS_PATH


def load_settings(settings_path: str | None = None) -> SettingsConfig:
    load_dotenv()
    return SettingsConfig.model_validate(_read_yaml(resolve_settings_path(settings_path)))


def get_required_env_keys(settings: SettingsConfig) -> list[str]:
    """Derive which API key env vars are required from the configured model prefixes.

    Web search adds TAVILY_API_KEY when enabled. Models with an unknown prefix
    (e.g. "test") require nothing.
    """
    required: set[str] = set()
    for agent_cfg in settings.agents.values():
        for prefix, env_key in _PREFIX_TO_ENV.items():
            if agent_cfg.model.startswith(prefix):
                required.add(env_key)
    if settings.search.web_search_enabled:
        required.add("TAVILY_API_KEY")
    return sorted(required)


def validate_secret_env(settings: SettingsConfig) -> list[str]:
    """Return list of missing required env var names."""
    load_dotenv()
    return [key for key in get_required_env_keys(settings) if not os.getenv(key)]
