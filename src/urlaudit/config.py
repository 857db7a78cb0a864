"""Settings loader: reads an optional urlaudit.yml and applies env overrides."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from urlaudit.schemas.config import Settings

# Environment variable -> dotted settings key
ENV_OVERRIDES: dict[str, str] = {
    "DATABASE_URL": "database_url",
    "DEFAULT_AI_MODEL": "ai_model",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENROUTER_API_KEY": "openrouter_api_key",
    "APP_URL": "app_url",
    "UNLIMITED_ACCESS_KEY": "unlimited_access_key",
    "DEFAULT_CREDITS": "default_credits",
    "URLAUDIT_CREDIT_COST": "credit_cost",
    "URLAUDIT_HEADLESS": "browser.headless",
    "URLAUDIT_AXE_SCRIPT_URL": "browser.axe_script_url",
    "URLAUDIT_TRIAL_LIMIT": "trial.per_fingerprint",
}


def _apply_env(raw: dict) -> dict:
    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        target = raw
        *parents, leaf = key.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return raw


def load_settings(path: str | Path | None = None) -> Settings:
    """Load and validate settings.

    Raises ``FileNotFoundError`` if an explicit path doesn't exist and
    ``pydantic.ValidationError`` if the merged content is invalid.
    """
    load_dotenv()

    raw: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        loaded = yaml.safe_load(path.read_text())
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got {type(loaded).__name__}")
        raw = loaded

    # Commented-out sections load as None; normalize to empty mappings.
    for key in ("browser", "trial"):
        if key in raw and raw[key] is None:
            raw[key] = {}

    return Settings(**_apply_env(raw))
