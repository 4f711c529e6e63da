"""SQLite-backed game repository: game records, hands and round history."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from shared.dal.game_repository import GameRepository
from shared.dal.models import Game, GameResult, GameSummary, HandCard, RoundRecord, RoundReview

if TYPE_CHECKING:
    import sqlite3

    from shared.db.connection import Database

logger = structlog.get_logger()

_GAME_COLUMNS = "id, owner_id, is_guest, started_at, ended_at, result, incorrect_attempts, round_card_id"
_ROUND_COLUMNS = (
    "game_id, round_number, presented_card_id, chosen_position, correct_position, "
    "is_correct, time_taken_seconds, created_at"
)


def _game_fields(row: sqlite3.Row) -> dict:
    return {
        "game_id": row["id"],
        "owner_id": row["owner_id"],
        "is_guest": bool(row["is_guest"]),
        "started_at": datetime.fromisoformat(row["started_at"]),
        "ended_at": datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
        "result": GameResult(row["result"]) if row["result"] else None,
        "incorrect_attempts": row["incorrect_attempts"],
        "round_card_id": row["round_card_id"],
    }


def _round_fields(row: sqlite3.Row) -> dict:
    return {
        "game_id": row["game_id"],
        "round_number": row["round_number"],
        "presented_card_id": row["presented_card_id"],
        "chosen_position": row["chosen_position"],
        "correct_position": row["correct_position"],
        "is_correct": bool(row["is_correct"]),
        "time_taken_seconds": row["time_taken_seconds"],
        "created_at": datetime.fromisoformat(row["created_at"]),
    }


class SqliteGameRepository(GameRepository):
    """SQLite implementation of GameRepository.

    Games, hand entries and round records live in separate tables. Guarded
    writes re-check the game row inside a BEGIN IMMEDIATE transaction, so a
    second writer always sees the first writer's committed state.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_game(self, owner_id: str | None, started_at: datetime, card_ids: list[int]) -> Game:
        async with self._lock:
            with self._db.transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO games (owner_id, is_guest, started_at) VALUES (?, ?, ?)",
                    (owner_id, owner_id is None, started_at.isoformat()),
                )
                game_id = cursor.lastrowid
                conn.executemany(
                    "INSERT INTO game_cards (game_id, card_id, acquisition_order) VALUES (?, ?, ?)",
                    [(game_id, card_id, order) for order, card_id in enumerate(card_ids, start=1)],
                )
                row = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?", (game_id,)).fetchone()
            return Game(**_game_fields(row))

    async def get_game(self, game_id: int) -> Game | None:
        row = self._db.connection.execute(
            f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?",
            (game_id,),
        ).fetchone()
        if row is None:
            return None
        return Game(**_game_fields(row))

    async def get_hand(self, game_id: int) -> list[HandCard]:
        rows = self._db.connection.execute(
            "SELECT c.id, c.name, c.image_url, c.misfortune_index, gc.acquisition_order "
            "FROM game_cards gc JOIN cards c ON c.id = gc.card_id "
            "WHERE gc.game_id = ? ORDER BY gc.acquisition_order",
            (game_id,),
        ).fetchall()
        return [
            HandCard(
                card_id=row["id"],
                name=row["name"],
                image_url=row["image_url"],
                misfortune_index=row["misfortune_index"],
                acquisition_order=row["acquisition_order"],
            )
            for row in rows
        ]

    async def get_rounds(self, game_id: int) -> list[RoundReview]:
        rows = self._db.connection.execute(
            "SELECT r.game_id, r.round_number, r.presented_card_id, r.chosen_position, r.correct_position, "
            "r.is_correct, r.time_taken_seconds, r.created_at, "
            "c.name AS card_name, c.image_url AS card_image_url, c.misfortune_index AS card_misfortune_index "
            "FROM game_rounds r JOIN cards c ON c.id = r.presented_card_id "
            "WHERE r.game_id = ? ORDER BY r.round_number",
            (game_id,),
        ).fetchall()
        return [
            RoundReview(
                **_round_fields(row),
                card_name=row["card_name"],
                card_image_url=row["card_image_url"],
                card_misfortune_index=row["card_misfortune_index"],
            )
            for row in rows
        ]

    async def get_last_round(self, game_id: int) -> RoundRecord | None:
        row = self._db.connection.execute(
            f"SELECT {_ROUND_COLUMNS} FROM game_rounds WHERE game_id = ? ORDER BY round_number DESC LIMIT 1",
            (game_id,),
        ).fetchone()
        if row is None:
            return None
        return RoundRecord(**_round_fields(row))

    async def count_rounds(self, game_id: int) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM game_rounds WHERE game_id = ?",
            (game_id,),
        ).fetchone()
        return row[0]

    async def list_games(self, owner_id: str) -> list[GameSummary]:
        rows = self._db.connection.execute(
            "SELECT g.id, g.owner_id, g.is_guest, g.started_at, g.ended_at, g.result, "
            "g.incorrect_attempts, g.round_card_id, COUNT(gc.card_id) AS cards_count "
            "FROM games g LEFT JOIN game_cards gc ON gc.game_id = g.id "
            "WHERE g.owner_id = ? GROUP BY g.id ORDER BY g.started_at DESC, g.id DESC",
            (owner_id,),
        ).fetchall()
        return [GameSummary(**_game_fields(row), cards_count=row["cards_count"]) for row in rows]

    async def set_round_card(self, game_id: int, card_id: int) -> bool:
        async with self._lock:
            cursor = self._db.connection.execute(
                "UPDATE games SET round_card_id = ? WHERE id = ? AND result IS NULL",
                (card_id, game_id),
            )
            return cursor.rowcount == 1

    async def assign_owner(self, game_id: int, owner_id: str) -> bool:
        async with self._lock:
            cursor = self._db.connection.execute(
                "UPDATE games SET owner_id = ? WHERE id = ? AND owner_id IS NULL AND result IS NULL",
                (owner_id, game_id),
            )
            return cursor.rowcount == 1

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
        async with self._lock:
            with self._db.transaction() as conn:
                game_row = conn.execute(
                    "SELECT result, incorrect_attempts, "
                    "(SELECT COUNT(*) FROM game_cards WHERE game_id = games.id) AS hand_size, "
                    "(SELECT COALESCE(MAX(round_number), 0) FROM game_rounds WHERE game_id = games.id) AS last_round "
                    "FROM games WHERE id = ?",
                    (game_id,),
                ).fetchone()
                if (
                    game_row is None
                    or game_row["result"] is not None
                    or game_row["hand_size"] != expected_hand_size
                    or game_row["incorrect_attempts"] != expected_incorrect_attempts
                ):
                    logger.warning("record_round had no effect (game missing, ended, or changed)", game_id=game_id)
                    return None

                round_number = game_row["last_round"] + 1
                conn.execute(
                    f"INSERT INTO game_rounds ({_ROUND_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        game_id,
                        round_number,
                        presented_card_id,
                        chosen_position,
                        correct_position,
                        is_correct,
                        time_taken_seconds,
                        recorded_at.isoformat(),
                    ),
                )
                if is_correct:
                    conn.execute(
                        "INSERT INTO game_cards (game_id, card_id, acquisition_order) VALUES (?, ?, ?)",
                        (game_id, presented_card_id, expected_hand_size + 1),
                    )
                else:
                    conn.execute(
                        "UPDATE games SET incorrect_attempts = incorrect_attempts + 1 WHERE id = ?",
                        (game_id,),
                    )
                if finish_result is not None:
                    conn.execute(
                        "UPDATE games SET round_card_id = NULL, ended_at = ?, result = ? WHERE id = ?",
                        (recorded_at.isoformat(), finish_result.value, game_id),
                    )
                else:
                    conn.execute("UPDATE games SET round_card_id = NULL WHERE id = ?", (game_id,))

                row = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?", (game_id,)).fetchone()
                round_row = conn.execute(
                    f"SELECT {_ROUND_COLUMNS} FROM game_rounds WHERE game_id = ? AND round_number = ?",
                    (game_id, round_number),
                ).fetchone()
            return Game(**_game_fields(row)), RoundRecord(**_round_fields(round_row))

    async def finish_game(self, game_id: int, result: GameResult, ended_at: datetime) -> bool:
        async with self._lock:
            cursor = self._db.connection.execute(
                "UPDATE games SET round_card_id = NULL, ended_at = ?, result = ? WHERE id = ? AND result IS NULL",
                (ended_at.isoformat(), result.value, game_id),
            )
            if cursor.rowcount == 0:
                logger.warning("finish_game had no effect (not found or already ended)", game_id=game_id)
                return False
            return True
