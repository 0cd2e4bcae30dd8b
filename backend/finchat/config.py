from functools import lru_cache
import json
import os
from typing import Annotated
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator, model_validator

_ENV_CANDIDATES = (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path(__file__).resolve().parent.parent / ".env",
    Path.cwd() / ".env",
)

for env_path in _ENV_CANDIDATES:
    if env_path.is_file():
        load_dotenv(env_path, override=False)
        break

DEFAULT_ORACLE_MODELS = [
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-4-maverick",
    "deepseek/deepseek-chat-v3-0324",
]


def _split_list(value: object) -> list[str]:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in stripped.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    raise ValueError("Expected a list or a comma separated string.")


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    database_url: str = "postgresql+psycopg://postgres:postgres@db:5432/finchat"
    api_prefix: str = "/api"
    allow_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://localhost:8000",
        ]
    )
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    log_level: str = "INFO"

    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_secret: str | None = None
    public_base_url: str | None = None

    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    oracle_base_url: str = "https://openrouter.ai/api/v1"
    oracle_models: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_ORACLE_MODELS))
    oracle_timeout_seconds: float = 20.0
    oracle_app_url: str = "https://finchat.app"
    oracle_app_title: str = "finchat"

    default_category: str = "Outros"
    currency_symbol: str = "R$"
    query_sample_size: int = 30
    tx_code_attempts: int = 5

    model_config = SettingsConfigDict(env_file=None, populate_by_name=True)

    @field_validator("allow_origins", "oracle_models", mode="before")
    @classmethod
    def parse_list(cls, value: object) -> list[str]:
        return _split_list(value)

    @model_validator(mode="after")
    def populate_from_env(self) -> "Settings":
        if not self.telegram_bot_token:
            self.telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
        if not self.openrouter_api_key:
            self.openrouter_api_key = os.getenv("OPENROUTER_API_KEY")
        return self

    @property
    def intake_configured(self) -> bool:
        """Whether the webhook has everything it needs to reach Telegram and the oracle."""
        return bool(self.telegram_bot_token and self.openrouter_api_key and self.oracle_models)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid repeated environment parsing."""
    return Settings()
