from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    log_level: str = "INFO"

    # Keys
    openai_api_key: str | None = None

    # Models
    openai_text_model: str = "gpt-4o"
    openai_autocomplete_model: str = "gpt-4o-mini"
    # The Responses API rejects max_output_tokens below 16.
    autocomplete_max_tokens: int = 16

    # Inline suggestions
    suggestion_min_chars: int = 2
    single_line_max_context: int = 30
    multi_line_max_context: int = 80
    autocomplete_debounce_ms: int = 300


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
