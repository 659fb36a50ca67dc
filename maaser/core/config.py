from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from maaser.core.errors import ConfigurationError

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(alias="DATABASE_URL")
    owner_id: str = Field(alias="OWNER_ID")

    workbook_path: str = Field(default="maaser-1.xlsx", alias="WORKBOOK_PATH")
    write_concurrency: int = Field(default=4, ge=1, alias="WRITE_CONCURRENCY")

    @field_validator("database_url", "owner_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

def load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ConfigurationError(f"Invalid configuration: {', '.join(missing) or e}") from e
