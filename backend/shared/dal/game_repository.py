"""Abstract interface for game, hand and round history persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal.models import Game, GameResult, GameSummary, HandCard, RoundRecord, RoundReview


class GameRepository(ABC):
    """Abstract interface for game persistence.

    Every method that writes more than one row is all-or-nothing. Mutations of
    a game are guarded on the game still being active, so a write that lost a
    race reports failure instead of touching a finished game.
    """

    @abstractmethod
    async def create_game(self, owner_id: str | None, started_at: datetime, card_ids: list[int]) -> Game:
        """Insert a game row and its initial hand (acquisition order 1..N) atomically."""
        ...

    @abstractmethod
    async def get_game(self, game_id: int) -> Game | None: ...

    @abstractmethod
    async def get_hand(self, game_id: int) -> list[HandCard]:
        """Return the game's hand ordered by acquisition order."""
        ...

    @abstractmethod
    async def get_rounds(self, game_id: int) -> list[RoundReview]:
        """Return the game's round records ordered by round number, with card display fields."""
        ...

    @abstractmethod
    async def get_last_round(self, game_id: int) -> RoundRecord | None: ...

    @abstractmethod
    async def count_rounds(self, game_id: int) -> int: ...

    @abstractmethod
    async def list_games(self, owner_id: str) -> list[GameSummary]:
        """Return the owner's games, newest first, with hand card counts."""
        ...

    @abstractmethod
    async def set_round_card(self, game_id: int, card_id: int) -> bool:
        """Record the card issued for the pending round. False if the game is not active."""
        ...

    @abstractmethod
    async def assign_owner(self, game_id: int, owner_id: str) -> bool:
        """Attach an owner to an active, unowned game. False if nothing changed."""
        ...

    @abstractmethod
    async def record_round(
        self,
        game_id: int,
        *,
        presented_card_id: int,
        chosen_position: int,
        correct_position: int,
        is_correct: bool,
        time_taken_seconds: float | None,
        expected_hand_size: int,
        expected_incorrect_attempts: int,
        finish_result: GameResult | None,
        recorded_at: datetime,
    ) -> tuple[Game, RoundRecord] | None:
        """Apply one scored round in a single transaction.

        Appends the round record, then either appends the card to the hand
        (correct) or increments incorrect_attempts (incorrect), clears the
        issued round card, and ends the game when finish_result is given.

        Returns None without writing anything when the game is missing, already
        ended, or no longer has the expected hand size and attempt count.
        """
        ...

    @abstractmethod
    async def finish_game(self, game_id: int, result: GameResult, ended_at: datetime) -> bool:
        """End an active game. False if the game is missing or already ended."""
        ...
