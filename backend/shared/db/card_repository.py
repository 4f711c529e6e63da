"""SQLite-backed card catalog repository."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from shared.dal.card_repository import CardRepository
from shared.dal.models import Card

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Collection
    from shared.db.connection import Database


def _card_from_row(row: sqlite3.Row) -> Card:
    return Card(
        card_id=row["id"],
        name=row["name"],
        image_url=row["image_url"],
        misfortune_index=row["misfortune_index"],
    )


class SqliteCardRepository(CardRepository):
    """SQLite implementation of CardRepository.

    Id sets are passed as a single JSON parameter and expanded with json_each,
    so exclusion lists of any size use one statement.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_card(self, card_id: int) -> Card | None:
        row = self._db.connection.execute(
            "SELECT id, name, image_url, misfortune_index FROM cards WHERE id = ?",
            (card_id,),
        ).fetchone()
        if row is None:
            return None
        return _card_from_row(row)

    async def get_cards(self, card_ids: Collection[int]) -> list[Card]:
        """Return the cards with the given ids, ordered by id. Unknown ids are skipped."""
        rows = self._db.connection.execute(
            "SELECT id, name, image_url, misfortune_index FROM cards "
            "WHERE id IN (SELECT value FROM json_each(?)) ORDER BY id",
            (json.dumps(list(card_ids)),),
        ).fetchall()
        return [_card_from_row(row) for row in rows]

    async def get_candidate_ids(self, exclude_ids: Collection[int]) -> list[int]:
        rows = self._db.connection.execute(
            "SELECT id FROM cards WHERE id NOT IN (SELECT value FROM json_each(?)) ORDER BY id",
            (json.dumps(list(exclude_ids)),),
        ).fetchall()
        return [row["id"] for row in rows]
