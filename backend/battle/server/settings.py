"""Battle server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from battle.market.provider import DEFAULT_TICKER_URL
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class BattleServerSettings(BaseSettings):
    model_config = {"env_prefix": "BATTLE_"}

    log_dir: str = Field(default="backend/logs/battle", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]

    game_max_age_seconds: int = Field(default=86400, ge=60)  # 24 hours
    cache_ttl_seconds: float = Field(default=30, gt=0)
    cache_max_age_seconds: float = Field(default=300, gt=0)
    eviction_interval_seconds: float = Field(default=60, gt=0)

    market_api_url: str = Field(default=DEFAULT_TICKER_URL, min_length=1)
    market_timeout_seconds: float = Field(default=5.0, gt=0, le=60)
    market_cache_seconds: float = Field(default=30, ge=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
