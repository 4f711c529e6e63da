"""Persistence models for the data access layer."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

MIN_MISFORTUNE_INDEX = 0.0
MAX_MISFORTUNE_INDEX = 100.0
# Largest integer a stored id or position can hold (SQLite INTEGER is signed 64-bit).
MAX_STORED_INTEGER = 2**63 - 1


class GameResult(StrEnum):
    WON = "won"
    LOST = "lost"


class CardSpec(BaseModel, frozen=True):
    """Card content as imported into the catalog, before it has an id."""

    name: str = Field(min_length=1)
    image_url: str
    misfortune_index: float = Field(ge=MIN_MISFORTUNE_INDEX, le=MAX_MISFORTUNE_INDEX)


class Card(CardSpec, frozen=True):
    """Catalog card. Immutable once imported."""

    card_id: int


class HandCard(Card, frozen=True):
    """Card held in a game's hand, with its 1-based acquisition order."""

    acquisition_order: int = Field(ge=1)


class Game(BaseModel, frozen=True):
    """Game record persisted to storage."""

    game_id: int
    owner_id: str | None = None
    is_guest: bool  # frozen at creation; attaching an owner later does not change it
    started_at: datetime
    ended_at: datetime | None = None
    result: GameResult | None = None
    incorrect_attempts: int = Field(default=0, ge=0)
    round_card_id: int | None = None  # card issued for the pending round, if any

    @property
    def is_active(self) -> bool:
        return self.result is None


class GameSummary(Game, frozen=True):
    """Game record with the size of its hand, for history listings."""

    cards_count: int = Field(ge=0)


class RoundRecord(BaseModel, frozen=True):
    """One submitted round. Timeouts are stored with chosen_position == -1."""

    game_id: int
    round_number: int = Field(ge=1)
    presented_card_id: int
    chosen_position: int = Field(ge=-1)
    correct_position: int = Field(ge=0)
    is_correct: bool
    time_taken_seconds: float | None = None
    created_at: datetime


class RoundReview(RoundRecord, frozen=True):
    """Round record joined with the presented card's display fields."""

    card_name: str
    card_image_url: str
    card_misfortune_index: float | None = None  # withheld while the game is active
