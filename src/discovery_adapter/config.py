"""Configuration for the Discovery Adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DISCOVERY_LIST_URL = "https://discovery.googleapis.com/discovery/v1/apis"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="discovery-adapter")

    discovery_list_url: str = Field(default=DEFAULT_DISCOVERY_LIST_URL)
    discovery_cache_seconds: float = Field(default=3600)
    discovery_timeout_seconds: float = Field(default=30)
    execute_timeout_seconds: float = Field(default=30)
    schema_max_depth: int = Field(default=10)

    adapter_transport: str = Field(default="streamable-http")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)
    adapter_auth_token: Optional[str] = Field(default=None)
    adapter_max_concurrency: int = Field(default=20)

    adapter_log_level: str = Field(default="INFO")

    adapter_jwks_url: Optional[str] = Field(default=None)
    adapter_jwt_issuer: Optional[str] = Field(default=None)
    adapter_jwt_audience: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
