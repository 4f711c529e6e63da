"""SQLite database connection and schema management."""

from __future__ import annotations

import contextlib
import json
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from shared.dal.models import CardSpec

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    image_url TEXT NOT NULL,
    misfortune_index REAL NOT NULL CHECK (misfortune_index BETWEEN 0 AND 100)
);

CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT,
    is_guest INTEGER NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    result TEXT CHECK (result IN ('won', 'lost')),
    incorrect_attempts INTEGER NOT NULL DEFAULT 0 CHECK (incorrect_attempts >= 0),
    round_card_id INTEGER REFERENCES cards (id)
);

CREATE INDEX IF NOT EXISTS idx_games_owner_started
    ON games (owner_id, started_at);

CREATE TABLE IF NOT EXISTS game_cards (
    game_id INTEGER NOT NULL REFERENCES games (id),
    card_id INTEGER NOT NULL REFERENCES cards (id),
    acquisition_order INTEGER NOT NULL CHECK (acquisition_order >= 1),
    PRIMARY KEY (game_id, acquisition_order),
    UNIQUE (game_id, card_id)
);

CREATE TABLE IF NOT EXISTS game_rounds (
    game_id INTEGER NOT NULL REFERENCES games (id),
    round_number INTEGER NOT NULL CHECK (round_number >= 1),
    presented_card_id INTEGER NOT NULL REFERENCES cards (id),
    chosen_position INTEGER NOT NULL CHECK (chosen_position >= -1),
    correct_position INTEGER NOT NULL CHECK (correct_position >= 0),
    is_correct INTEGER NOT NULL,
    time_taken_seconds REAL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (game_id, round_number)
);
"""


class Database:
    """SQLite database wrapper with schema management and catalog import.

    The connection runs in autocommit mode; multi-statement writes go through
    ``transaction()``, which takes the write lock up front.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions."""
        parent = Path(self._path).parent
        parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside BEGIN IMMEDIATE / COMMIT, rolling back on any error."""
        conn = self.connection
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def import_cards_from_json(self, cards_json_path: str | Path | None) -> int:
        """Import catalog cards from a JSON array file into an empty cards table.

        Returns the number of cards imported. Skips the import when the path is
        None, the file does not exist, or the cards table already has data.
        The whole import runs in one transaction; any invalid record aborts it.
        """
        if cards_json_path is None:
            return 0

        json_path = Path(cards_json_path)
        if not json_path.exists():
            return 0

        row = self.connection.execute("SELECT COUNT(*) FROM cards").fetchone()
        if row[0] > 0:
            logger.info("cards table already has data, skipping import")
            return 0

        cards = self._parse_cards_json(json_path)
        with self.transaction() as conn:
            conn.executemany(
                "INSERT INTO cards (name, image_url, misfortune_index) VALUES (?, ?, ?)",
                [(card.name, card.image_url, card.misfortune_index) for card in cards],
            )

        logger.info("imported catalog cards", count=len(cards), path=str(json_path))
        return len(cards)

    @staticmethod
    def _parse_cards_json(json_path: Path) -> list[CardSpec]:
        """Parse and validate a catalog file: a JSON array of card objects."""
        try:
            raw = json_path.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Failed to read cards file: {json_path}"
            raise OSError(msg) from exc

        try:
            data = json.loads(raw)
        except ValueError as exc:
            msg = f"Malformed JSON in cards file: {json_path}"
            raise OSError(msg) from exc

        if not isinstance(data, list):
            msg = f"Expected JSON array at root in {json_path}"
            raise OSError(msg)

        cards: list[CardSpec] = []
        for position, record in enumerate(data):
            try:
                cards.append(CardSpec.model_validate(record))
            except ValidationError as exc:
                msg = f"Invalid card record at index {position} in {json_path}"
                raise OSError(msg) from exc
        return cards

    def _harden_permissions(self) -> None:
        """Set restrictive file permissions on POSIX systems (best effort)."""
        if os.name != "posix":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
