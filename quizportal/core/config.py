from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    autosave_debounce_seconds: float = Field(default=1.0, gt=0, alias="AUTOSAVE_DEBOUNCE_SECONDS")
    autosave_status_display_seconds: float = Field(
        default=2.0,
        gt=0,
        alias="AUTOSAVE_STATUS_DISPLAY_SECONDS",
    )
    timer_tick_seconds: float = Field(default=1.0, gt=0, alias="TIMER_TICK_SECONDS")
    timer_low_time_seconds: int = Field(default=300, ge=0, alias="TIMER_LOW_TIME_SECONDS")
    timer_resume_policy: Literal["restart", "elapsed"] = Field(
        default="restart",
        alias="TIMER_RESUME_POLICY",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
