from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.validators import sanitize_display_text


class CreateGameRequest(BaseModel):
    """Body of POST /api/game/create. The name is trimmed, then validated, then sanitized."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    player_name: str = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9 _-]+$")

    @field_validator("player_name", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("player_name", mode="after")
    @classmethod
    def _sanitize(cls, v: str) -> str:
        return sanitize_display_text(v)


class PlayTurnRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    card_id: str = Field(min_length=1, max_length=50)
