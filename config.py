from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RELAY_", extra="ignore")

    host: str = "0.0.0.0"
    # hosting platforms hand out the listen port as plain PORT
    port: int = Field(default=8080, validation_alias=AliasChoices("RELAY_PORT", "PORT"))
    log_level: str = "INFO"
    log_file: Optional[str] = None
    cors_origins: List[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
