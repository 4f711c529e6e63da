"""Shared fixtures for round engine tests."""

import pytest

from misfortune.logic.catalog import CardCatalog
from misfortune.logic.engine import RoundEngine
from misfortune.tests.helpers.engine import ScriptedRandom, TickingClock, catalog_specs
from misfortune.tests.mocks import InMemoryCardRepository, InMemoryGameRepository


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
async def card_repo() -> InMemoryCardRepository:
    repo = InMemoryCardRepository()
    await repo.add_cards(catalog_specs())
    return repo


@pytest.fixture
def game_repo(card_repo: InMemoryCardRepository) -> InMemoryGameRepository:
    return InMemoryGameRepository(card_repo)


@pytest.fixture
def catalog(card_repo: InMemoryCardRepository, rng: ScriptedRandom) -> CardCatalog:
    return CardCatalog(card_repo, rng=rng)


@pytest.fixture
def engine(catalog: CardCatalog, game_repo: InMemoryGameRepository) -> RoundEngine:
    return RoundEngine(catalog, game_repo, clock=TickingClock())
