"""
Pydantic models returned by the round engine.

These cross the engine boundary into the HTTP layer and are serialized with
``model_dump(mode="json", exclude_none=True)``.
"""

from enum import StrEnum
from typing import Self

from pydantic import BaseModel

from shared.dal.models import Card, Game, GameResult, HandCard, RoundReview


class PlacementResult(StrEnum):
    CORRECT = "correct"
    INCORRECT = "incorrect"


class GameWithHand(BaseModel):
    """A newly created game and its initial hand, indices included."""

    game: Game
    cards: list[HandCard]


class GameDetails(BaseModel):
    """Full view of a game: record, hand, and round history."""

    game: Game
    cards: list[HandCard]
    rounds: list[RoundReview]


class RoundCard(BaseModel):
    """Card presented for a round. Never carries the misfortune index."""

    card_id: int
    name: str
    image_url: str
    round_number: int

    @classmethod
    def from_card(cls, card: Card, round_number: int) -> Self:
        return cls(card_id=card.card_id, name=card.name, image_url=card.image_url, round_number=round_number)


class PlacementVerdict(BaseModel):
    """Outcome of a submitted placement.

    correct_position and incorrect_attempts are set only for incorrect
    placements; game_result only once the game is over; is_guest_game and
    message only for guest games.
    """

    result: PlacementResult
    card: Card
    round_number: int
    game_completed: bool
    game_result: GameResult | None = None
    correct_position: int | None = None
    incorrect_attempts: int | None = None
    is_guest_game: bool | None = None
    message: str | None = None
