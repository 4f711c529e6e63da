"""Abstract interface for card catalog persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection

    from shared.dal.models import Card


class CardRepository(ABC):
    """Abstract interface for the card catalog.

    Cards are reference data: they are imported once at startup and never modified.
    """

    @abstractmethod
    async def get_card(self, card_id: int) -> Card | None: ...

    @abstractmethod
    async def get_cards(self, card_ids: Collection[int]) -> list[Card]: ...

    @abstractmethod
    async def get_candidate_ids(self, exclude_ids: Collection[int]) -> list[int]:
        """Return the ids of every card not in exclude_ids, in ascending order."""
        ...
