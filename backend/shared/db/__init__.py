"""SQLite database layer: connection management and repository implementations."""

from shared.db.card_repository import SqliteCardRepository
from shared.db.connection import Database
from shared.db.game_repository import SqliteGameRepository

__all__ = [
    "Database",
    "SqliteCardRepository",
    "SqliteGameRepository",
]
