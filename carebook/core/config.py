from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    APP_NAME: str = "carebook"
    ENV: Literal["local", "dev", "prod"] = "local"
    API_PREFIX: str = "/api/v1"

    # DB
    DATABASE_DSN: str = "sqlite+aiosqlite:///./carebook.db"
    DB_MANAGE: str = "create_all"  # create_all | migrations

    # Allocation / concurrency
    LOCK_TIMEOUT_SECONDS: float = 5.0
    ALLOCATION_MAX_RETRIES: int = 3
    TRANSITION_MAX_RETRIES: int = 3
    RETRY_BACKOFF_SECONDS: float = 0.05

    # Whose credit pool pays for a booking without a patient
    ANONYMOUS_FUNDING: Literal["provider", "any"] = "provider"

    @field_validator("DATABASE_DSN")
    @classmethod
    def _must_be_async(cls, v: str):
        if "+asyncpg" not in v and "+aiosqlite" not in v:
            raise ValueError("DATABASE_DSN must use an async driver (postgresql+asyncpg:// or sqlite+aiosqlite://)")
        return v

    @field_validator("ALLOCATION_MAX_RETRIES", "TRANSITION_MAX_RETRIES")
    @classmethod
    def _at_least_one(cls, v: int):
        if v < 1:
            raise ValueError("retry counts must be >= 1")
        return v

settings = Settings()
