# app/config.py
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    env: Literal["dev", "stage", "prod"] = "dev"
    debug: bool = False
    port: int = 4000
    log_level: str = "INFO"
    access_log: bool = True
    sql_echo: bool = False
    auto_init_db: bool = True

    # Season lock taken while saving and renumbering a season's games.
    # A timeout of 0 waits indefinitely; backoff doubles between attempts.
    season_lock_timeout_ms: int = Field(default=2000, ge=0)
    season_lock_attempts: int = Field(default=3, ge=1)
    season_lock_backoff_ms: int = Field(default=50, ge=0)

    @property
    def is_dev(self) -> bool:
        return self.env == "dev" or self.debug is True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
