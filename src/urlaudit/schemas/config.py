"""Configuration schema: validates urlaudit.yml and environment overrides."""

from pydantic import BaseModel, model_validator


class BrowserSettings(BaseModel):
    """Headless browser behaviour for a single scan."""

    headless: bool = True
    default_navigation_timeout_ms: int = 60_000
    goto_timeout_ms: int = 30_000
    viewport_width: int = 1920
    viewport_height: int = 1080
    axe_script_url: str = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"


class TrialSettings(BaseModel):
    """Anonymous usage quota, counted per caller fingerprint."""

    per_fingerprint: int = 5
    window_hours: int = 24
    # Tools that always require sign-in, regardless of remaining trial uses.
    blocked_tools: list[str] = []


class Settings(BaseModel):
    """Top-level settings loaded from an optional YAML file plus env vars.

    Every key can be overridden from the environment (see
    ``urlaudit.config.ENV_OVERRIDES``); API keys are normally only set
    there.
    """

    database_url: str = "sqlite+aiosqlite:///./urlaudit.db"

    # AI enrichment
    ai_model: str = "gpt-4o"
    openai_api_key: str = ""
    openrouter_api_key: str = ""
    app_url: str = "http://localhost:3000"

    # Callers presenting this key may run unbilled audits; empty disables it.
    unlimited_access_key: str = ""

    # Billing
    credit_cost: int = 5
    default_credits: int = 100

    history_limit: int = 20

    browser: BrowserSettings = BrowserSettings()
    trial: TrialSettings = TrialSettings()

    @model_validator(mode="after")
    def check_costs(self) -> "Settings":
        if self.credit_cost < 0:
            raise ValueError("credit_cost must not be negative")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        return self
