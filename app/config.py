from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/goalgate"
    default_tz: str = "UTC"
    gate_api_key: str | None = None

    # Deferral of easier goal edits: "daily" (next local midnight) or "weekly" (next anchor weekday)
    deferral_policy: Literal["daily", "weekly"] = "daily"
    deferral_anchor_weekday: int = Field(default=2, ge=1, le=7)  # 1=Sunday … 7=Saturday

    # Blocked-app selection edits follow the same rules, daily by default
    selection_deferral_policy: Literal["daily", "weekly"] = "daily"

    log_level: str = "INFO"
    log_file: str | None = None

    @field_validator("default_tz")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
