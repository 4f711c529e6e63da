"""Game rules: hand sizes, attempt limit and guest handling."""

from typing import Self

from pydantic import BaseModel, Field, model_validator

DEFAULT_INITIAL_HAND_SIZE = 3
DEFAULT_WINNING_HAND_SIZE = 6
DEFAULT_MAX_INCORRECT_ATTEMPTS = 3


class GameRules(BaseModel, frozen=True):
    """Limits that decide when a member game ends.

    Guest games ignore the limits: their first round always ends the game.
    """

    initial_hand_size: int = Field(default=DEFAULT_INITIAL_HAND_SIZE, ge=1)
    winning_hand_size: int = Field(default=DEFAULT_WINNING_HAND_SIZE, ge=2)
    max_incorrect_attempts: int = Field(default=DEFAULT_MAX_INCORRECT_ATTEMPTS, ge=1)
    # Attach the requester as owner when an authenticated player fetches a round
    # card for an unowned game. The game stays a guest game either way.
    adopt_guest_games: bool = True

    @model_validator(mode="after")
    def _validate_hand_sizes(self) -> Self:
        if self.winning_hand_size <= self.initial_hand_size:
            raise ValueError("winning_hand_size must be greater than initial_hand_size")
        return self
