"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.card_repository import CardRepository
from shared.dal.game_repository import GameRepository
from shared.dal.models import (
    Card,
    CardSpec,
    Game,
    GameResult,
    GameSummary,
    HandCard,
    RoundRecord,
    RoundReview,
)

__all__ = [
    "Card",
    "CardRepository",
    "CardSpec",
    "Game",
    "GameRepository",
    "GameResult",
    "GameSummary",
    "HandCard",
    "RoundRecord",
    "RoundReview",
]
