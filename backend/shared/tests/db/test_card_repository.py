"""Tests for SqliteCardRepository."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from shared.dal.models import CardSpec
from shared.db.card_repository import SqliteCardRepository
from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


CARDS = [
    CardSpec(name="Missed train", image_url="/img/train.png", misfortune_index=15),
    CardSpec(name="Broken phone", image_url="/img/phone.png", misfortune_index=40.5),
    CardSpec(name="Burst pipe", image_url="/img/pipe.png", misfortune_index=72),
    CardSpec(name="Lost passport", image_url="/img/passport.png", misfortune_index=90),
]


@pytest.fixture
def repo(tmp_path: Path):
    cards_file = tmp_path / "cards.json"
    cards_file.write_text(json.dumps([card.model_dump() for card in CARDS]))
    db = Database(tmp_path / "test.db")
    db.connect()
    db.import_cards_from_json(cards_file)
    yield SqliteCardRepository(db)
    db.close()


class TestLookups:
    async def test_get_card(self, repo: SqliteCardRepository) -> None:
        card = await repo.get_card(2)
        assert card is not None
        assert card.name == "Broken phone"
        assert card.misfortune_index == 40.5

    async def test_get_card_unknown(self, repo: SqliteCardRepository) -> None:
        assert await repo.get_card(99) is None

    async def test_get_cards_orders_by_id_and_skips_unknown(self, repo: SqliteCardRepository) -> None:
        cards = await repo.get_cards([3, 99, 1])
        assert [c.card_id for c in cards] == [1, 3]

    async def test_get_cards_empty(self, repo: SqliteCardRepository) -> None:
        assert await repo.get_cards([]) == []


class TestCandidateIds:
    async def test_excludes_ids(self, repo: SqliteCardRepository) -> None:
        assert await repo.get_candidate_ids({2, 4}) == [1, 3]

    async def test_no_exclusions(self, repo: SqliteCardRepository) -> None:
        assert await repo.get_candidate_ids([]) == [1, 2, 3, 4]

    async def test_everything_excluded(self, repo: SqliteCardRepository) -> None:
        assert await repo.get_candidate_ids(range(1, 5)) == []
