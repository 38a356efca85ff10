import logging
from typing import Optional

import dotenv
import pydantic
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process level settings that do not change how checks are evaluated."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    REPO_TOKEN: Optional[str] = None
    API_ENDPOINT: Optional[str] = None

    OVERRIDE_LOGGING: int = logging.INFO

    TELEGRAM_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    PUSH_GATEWAY: Optional[str] = None

    @pydantic.field_validator("OVERRIDE_LOGGING", mode="before")
    @classmethod
    def _parse_level(cls, value):
        if isinstance(value, str) and not value.isdigit():
            level = logging.getLevelName(value.upper())
            if not isinstance(level, int):
                raise ValueError(f"Unknown log level {value}")
            return level
        return value


def get_settings() -> Settings:
    dotenv.load_dotenv()
    return Settings()
