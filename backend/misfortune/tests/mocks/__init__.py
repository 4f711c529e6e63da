from misfortune.tests.mocks.repositories import (
    FaultyCardRepository,
    InMemoryCardRepository,
    InMemoryGameRepository,
)

__all__ = ["FaultyCardRepository", "InMemoryCardRepository", "InMemoryGameRepository"]
