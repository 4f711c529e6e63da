"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from misfortune.logic.rules import (
    DEFAULT_INITIAL_HAND_SIZE,
    DEFAULT_MAX_INCORRECT_ATTEMPTS,
    DEFAULT_WINNING_HAND_SIZE,
    GameRules,
)
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "MISFORTUNE_"}

    log_dir: str = Field(default="backend/logs/game", min_length=1)
    database_path: str = Field(default="backend/storage.db", min_length=1)
    cards_file: str | None = None  # JSON catalog imported into an empty cards table at startup
    cors_origins: list[str] = ["http://localhost:5173"]
    identity_header: str = Field(default="X-Player-Id", min_length=1)

    initial_hand_size: int = Field(default=DEFAULT_INITIAL_HAND_SIZE, ge=1)
    winning_hand_size: int = Field(default=DEFAULT_WINNING_HAND_SIZE, ge=2)
    max_incorrect_attempts: int = Field(default=DEFAULT_MAX_INCORRECT_ATTEMPTS, ge=1)
    adopt_guest_games: bool = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    def game_rules(self) -> GameRules:
        return GameRules(
            initial_hand_size=self.initial_hand_size,
            winning_hand_size=self.winning_hand_size,
            max_incorrect_attempts=self.max_incorrect_attempts,
            adopt_guest_games=self.adopt_guest_games,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
