"""Tests for Database connection, schema, transactions and catalog import."""

from __future__ import annotations

import json
import sqlite3
import sys
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


def _write_cards(path: Path, records: list) -> None:
    path.write_text(json.dumps(records))


def _card(name: str = "Lost keys", index: float = 12.5) -> dict:
    return {"name": name, "image_url": f"/images/{name.lower().replace(' ', '-')}.png", "misfortune_index": index}


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


class TestConnect:
    def test_creates_schema_and_connects(self, db: Database) -> None:
        tables = db.connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name",
        ).fetchall()
        table_names = {t[0] for t in tables}
        assert {"cards", "games", "game_cards", "game_rounds"} <= table_names

    def test_reconnect_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        db.connect()
        db.close()

    def test_connection_raises_when_disconnected(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "test.db")
        db.connect()
        assert db.connection is not None
        db.close()

    def test_rejects_out_of_range_index(self, db: Database) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            db.connection.execute(
                "INSERT INTO cards (name, image_url, misfortune_index) VALUES ('x', 'y', 101)",
            )

    def test_hand_card_is_unique_per_game(self, db: Database) -> None:
        db.connection.execute("INSERT INTO cards (name, image_url, misfortune_index) VALUES ('x', 'y', 1)")
        db.connection.execute("INSERT INTO games (owner_id, is_guest, started_at) VALUES (NULL, 1, '2025-01-01')")
        db.connection.execute("INSERT INTO game_cards (game_id, card_id, acquisition_order) VALUES (1, 1, 1)")
        with pytest.raises(sqlite3.IntegrityError):
            db.connection.execute("INSERT INTO game_cards (game_id, card_id, acquisition_order) VALUES (1, 1, 2)")


class TestTransaction:
    def test_commits_on_success(self, db: Database) -> None:
        with db.transaction() as conn:
            conn.execute("INSERT INTO cards (name, image_url, misfortune_index) VALUES ('x', 'y', 1)")
        assert db.connection.execute("SELECT COUNT(*) FROM cards").fetchone()[0] == 1

    def test_rolls_back_on_error(self, db: Database) -> None:
        with pytest.raises(sqlite3.IntegrityError), db.transaction() as conn:
            conn.execute("INSERT INTO cards (name, image_url, misfortune_index) VALUES ('x', 'y', 1)")
            conn.execute("INSERT INTO cards (name, image_url, misfortune_index) VALUES ('x', 'y', -5)")
        assert db.connection.execute("SELECT COUNT(*) FROM cards").fetchone()[0] == 0


class TestImportCards:
    def test_imports_cards_from_json(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        _write_cards(json_path, [_card("Lost keys", 12.5), _card("Flooded flat", 88)])

        assert db.import_cards_from_json(json_path) == 2

        rows = db.connection.execute("SELECT id, name, misfortune_index FROM cards ORDER BY id").fetchall()
        assert [(r["id"], r["name"], r["misfortune_index"]) for r in rows] == [
            (1, "Lost keys", 12.5),
            (2, "Flooded flat", 88.0),
        ]

    def test_returns_zero_when_path_is_none(self, db: Database) -> None:
        assert db.import_cards_from_json(None) == 0

    def test_returns_zero_when_file_missing(self, tmp_path: Path, db: Database) -> None:
        assert db.import_cards_from_json(str(tmp_path / "nonexistent.json")) == 0

    def test_skips_when_cards_table_nonempty(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        _write_cards(json_path, [_card()])
        db.import_cards_from_json(json_path)

        assert db.import_cards_from_json(json_path) == 0
        assert db.connection.execute("SELECT COUNT(*) FROM cards").fetchone()[0] == 1

    def test_rollback_on_invalid_record(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        _write_cards(json_path, [_card(), {"name": "Bad", "image_url": "", "misfortune_index": 150}])

        with pytest.raises(OSError, match="Invalid card record at index 1"):
            db.import_cards_from_json(json_path)
        assert db.connection.execute("SELECT COUNT(*) FROM cards").fetchone()[0] == 0

    def test_raises_on_non_array_root(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        json_path.write_text('{"cards": []}')
        with pytest.raises(OSError, match="Expected JSON array"):
            db.import_cards_from_json(json_path)

    def test_raises_on_corrupt_json(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        json_path.write_text("[{")
        with pytest.raises(OSError, match="Malformed JSON"):
            db.import_cards_from_json(json_path)

    def test_raises_on_unreadable_file(self, tmp_path: Path, db: Database) -> None:
        json_path = tmp_path / "cards.json"
        json_path.write_text("[]")
        with (
            patch("pathlib.Path.read_text", side_effect=PermissionError("denied")),
            pytest.raises(OSError, match="Failed to read cards file"),
        ):
            db.import_cards_from_json(json_path)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions only")
class TestPermissions:
    def test_db_file_has_restricted_permissions(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        db = Database(db_path)
        db.connect()

        assert db_path.stat().st_mode & 0o777 == 0o600
        db.close()

    def test_harden_permissions_warns_on_failure(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        with patch("pathlib.Path.chmod", side_effect=OSError("permission denied")):
            db.connect()
        assert db.connection is not None
        db.close()
