"""Card catalog: lookups and duplicate-free random draws."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from misfortune.logic.exceptions import InsufficientCardsError

if TYPE_CHECKING:
    from collections.abc import Collection

    from shared.dal.card_repository import CardRepository
    from shared.dal.models import Card


class CardCatalog:
    """Read-only view of the card catalog used by the round engine.

    Draws are a uniform sample without replacement from the candidate ids the
    repository reports after exclusion. Pass a seeded ``random.Random`` for
    reproducible draws.
    """

    def __init__(self, cards: CardRepository, rng: random.Random | None = None) -> None:
        self._cards = cards
        self._rng = rng or random.SystemRandom()

    async def get_by_id(self, card_id: int) -> Card | None:
        return await self._cards.get_card(card_id)

    async def get_random(self, count: int, exclude_ids: Collection[int] = ()) -> list[Card]:
        """Draw ``count`` distinct cards not in ``exclude_ids``, in draw order.

        Raises InsufficientCardsError when fewer than ``count`` candidates remain.
        """
        candidates = await self._cards.get_candidate_ids(exclude_ids)
        if len(candidates) < count:
            msg = f"Requested {count} cards but only {len(candidates)} are available"
            raise InsufficientCardsError(msg)

        drawn_ids = self._rng.sample(candidates, count)
        by_id = {card.card_id: card for card in await self._cards.get_cards(drawn_ids)}
        return [by_id[card_id] for card_id in drawn_ids if card_id in by_id]
