"""Round engine: the server-side state machine for a misfortune card game.

A game starts with a random hand, then runs rounds: the engine issues one card
(index hidden), the player submits where it goes in the sorted hand, and the
engine scores it, records the round, and decides whether the game is over.

Member games end at ``winning_hand_size`` cards (won) or
``max_incorrect_attempts`` errors (lost). Guest games end after their first
round either way; guest status comes only from the stored game row.

All operations on one game are serialized with a per-game asyncio lock, which
is dropped as soon as no call holds or waits for it. Each round is persisted
with one guarded repository write.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, NoReturn

import structlog

from misfortune.logic.exceptions import (
    FatalConsistencyError,
    ForbiddenError,
    GameAlreadyEndedError,
    GameValidationError,
    InsufficientCardsError,
    NoCardsAvailableError,
    NotFoundError,
    StaleSubmissionError,
    UnauthenticatedError,
)
from misfortune.logic.placement import TIMEOUT_POSITION, correct_position, is_placement_correct
from misfortune.logic.rules import GameRules
from misfortune.logic.types import GameDetails, GameWithHand, PlacementResult, PlacementVerdict, RoundCard
from shared.dal.models import MAX_STORED_INTEGER, GameResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Collection

    from misfortune.logic.catalog import CardCatalog
    from shared.dal.game_repository import GameRepository
    from shared.dal.models import Card, Game, GameSummary, HandCard

logger = structlog.get_logger()

GUEST_WON_MESSAGE = "You placed the card correctly! Register to play a full game."
GUEST_LOST_MESSAGE = "Wrong placement, game over. Register to play a full game with more attempts."


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _verify_draw(drawn: list[Card], count: int, exclude_ids: Collection[int]) -> None:
    """Check a catalog draw: exact count, pairwise distinct, disjoint from exclusions."""
    ids = [card.card_id for card in drawn]
    excluded = set(exclude_ids)
    if len(ids) != count or len(set(ids)) != count or excluded.intersection(ids):
        logger.error("catalog draw violated uniqueness", drawn_ids=ids, excluded_ids=sorted(excluded))
        msg = f"Catalog returned an invalid draw: {ids}"
        raise FatalConsistencyError(msg)


class RoundEngine:
    """Create games, issue round cards, score placements and end games."""

    def __init__(
        self,
        catalog: CardCatalog,
        games: GameRepository,
        *,
        rules: GameRules | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._catalog = catalog
        self._games = games
        self._rules = rules or GameRules()
        self._clock = clock
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    @property
    def rules(self) -> GameRules:
        return self._rules

    @contextlib.asynccontextmanager
    async def _game_lock(self, game_id: int) -> AsyncIterator[None]:
        """Hold the lock of one game. Its entry is removed once no call holds or awaits it."""
        lock = self._locks.setdefault(game_id, asyncio.Lock())
        self._lock_users[game_id] = self._lock_users.get(game_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[game_id] -= 1
            if not self._lock_users[game_id]:
                del self._lock_users[game_id]
                del self._locks[game_id]

    async def _load_game(self, game_id: int, requester: str | None) -> Game:
        if not 1 <= game_id <= MAX_STORED_INTEGER:
            raise NotFoundError(f"Game {game_id} not found")
        game = await self._games.get_game(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found")
        if game.owner_id is not None and requester != game.owner_id:
            raise ForbiddenError(f"Game {game_id} belongs to another player")
        return game

    async def create_game(self, owner_id: str | None) -> GameWithHand:
        """Start a game with a random initial hand.

        ``owner_id`` None makes a guest game. The game row and its hand are
        written in one transaction.
        """
        count = self._rules.initial_hand_size
        try:
            cards = await self._catalog.get_random(count)
        except InsufficientCardsError:
            logger.warning("not enough cards to start a game", required=count)
            raise
        _verify_draw(cards, count, ())

        game = await self._games.create_game(owner_id, self._clock(), [card.card_id for card in cards])
        hand = await self._games.get_hand(game.game_id)
        logger.info("game created", game_id=game.game_id, owner_id=owner_id, guest=game.is_guest)
        return GameWithHand(game=game, cards=hand)

    async def get_game(self, game_id: int, requester: str | None) -> GameDetails:
        """Return the game, its hand, and its rounds.

        Presented card indices are only revealed once the game is over.
        """
        game = await self._load_game(game_id, requester)
        hand = await self._games.get_hand(game_id)
        rounds = await self._games.get_rounds(game_id)
        if game.is_active:
            rounds = [r.model_copy(update={"card_misfortune_index": None}) for r in rounds]
        return GameDetails(game=game, cards=hand, rounds=rounds)

    async def list_games(self, requester: str | None) -> list[GameSummary]:
        if requester is None:
            raise UnauthenticatedError("Game history requires an authenticated player")
        return await self._games.list_games(requester)

    async def get_round_card(self, game_id: int, requester: str | None) -> RoundCard:
        """Issue the card for the next round, without its misfortune index.

        The issued card is stored on the game; asking again before submitting
        returns the same card rather than drawing a new one.
        """
        async with self._game_lock(game_id):
            game = await self._load_game(game_id, requester)
            if not game.is_active:
                raise GameAlreadyEndedError(f"Game {game_id} has already ended")

            if game.owner_id is None and requester is not None and self._rules.adopt_guest_games:
                if await self._games.assign_owner(game_id, requester):
                    logger.info("guest game adopted by player", game_id=game_id, owner_id=requester)

            hand_ids = {card.card_id for card in await self._games.get_hand(game_id)}
            round_number = await self._games.count_rounds(game_id) + 1

            if game.round_card_id is not None and game.round_card_id not in hand_ids:
                card = await self._catalog.get_by_id(game.round_card_id)
                if card is not None:
                    logger.debug("round card reissued", game_id=game_id, card_id=card.card_id)
                    return RoundCard.from_card(card, round_number)

            try:
                drawn = await self._catalog.get_random(1, hand_ids)
            except InsufficientCardsError as e:
                raise NoCardsAvailableError(f"No more cards available for game {game_id}") from e
            _verify_draw(drawn, 1, hand_ids)
            card = drawn[0]

            if not await self._games.set_round_card(game_id, card.card_id):
                raise GameAlreadyEndedError(f"Game {game_id} has already ended")
            logger.info("round card issued", game_id=game_id, card_id=card.card_id, round_number=round_number)
            return RoundCard.from_card(card, round_number)

    async def submit_placement(
        self,
        game_id: int,
        requester: str | None,
        card_id: int,
        position: int,
        time_taken_seconds: float | None = None,
    ) -> PlacementVerdict:
        """Score a placement and record the round.

        ``position`` is the insertion index into the hand sorted by misfortune
        index, or -1 when the round timer expired.
        """
        if position < TIMEOUT_POSITION:
            raise GameValidationError("Position must be -1 or a non-negative integer")
        if time_taken_seconds is not None and (not math.isfinite(time_taken_seconds) or time_taken_seconds < 0):
            raise GameValidationError("Time taken must be a finite, non-negative number of seconds")

        async with self._game_lock(game_id):
            game = await self._load_game(game_id, requester)
            if not game.is_active:
                raise GameAlreadyEndedError(f"Game {game_id} has already ended")

            card = await self._catalog.get_by_id(card_id) if 1 <= card_id <= MAX_STORED_INTEGER else None
            if card is None:
                raise NotFoundError(f"Card {card_id} not found")

            hand = await self._games.get_hand(game_id)
            await self._reject_stale_submission(game, hand, card_id)

            expected = correct_position((c.misfortune_index for c in hand), card.misfortune_index)
            is_correct = is_placement_correct(position, expected)
            if is_correct:
                finished = game.is_guest or len(hand) + 1 >= self._rules.winning_hand_size
                finish_result = GameResult.WON if finished else None
            else:
                finished = game.is_guest or game.incorrect_attempts + 1 >= self._rules.max_incorrect_attempts
                finish_result = GameResult.LOST if finished else None

            written = await self._games.record_round(
                game_id,
                presented_card_id=card_id,
                chosen_position=position,
                correct_position=expected,
                is_correct=is_correct,
                time_taken_seconds=time_taken_seconds,
                expected_hand_size=len(hand),
                expected_incorrect_attempts=game.incorrect_attempts,
                finish_result=finish_result,
                recorded_at=self._clock(),
            )
            if written is None:
                await self._raise_lost_race(game_id)
            updated, round_record = written

            logger.info(
                "placement scored",
                game_id=game_id,
                round_number=round_record.round_number,
                card_id=card_id,
                position=position,
                correct_position=expected,
                correct=is_correct,
                timeout=position == TIMEOUT_POSITION,
                incorrect_attempts=updated.incorrect_attempts,
            )
            if finish_result is not None:
                logger.info("game finished", game_id=game_id, result=finish_result, guest=updated.is_guest)

            return self._build_verdict(updated, card, round_record.round_number, expected, is_correct=is_correct)

    async def _reject_stale_submission(self, game: Game, hand: list[HandCard], card_id: int) -> None:
        """Reject a placement for a round the game has already moved past.

        Covers retried submissions: a card already won into the hand, a card
        other than the one currently issued, or a repeat of the round that was
        just scored with no new card issued since.
        """
        reason = None
        if any(c.card_id == card_id for c in hand):
            reason = "card is already in the hand"
        elif game.round_card_id is not None and game.round_card_id != card_id:
            reason = "a different card is issued for this round"
        elif game.round_card_id is None:
            last_round = await self._games.get_last_round(game.game_id)
            if last_round is not None and last_round.presented_card_id == card_id:
                reason = "this card was already scored in the previous round"
        if reason is not None:
            logger.warning("stale placement rejected", game_id=game.game_id, card_id=card_id, reason=reason)
            raise StaleSubmissionError(f"Stale placement for game {game.game_id}: {reason}")

    async def _raise_lost_race(self, game_id: int) -> NoReturn:
        """Explain a guarded write that matched nothing, from the game's current state."""
        current = await self._games.get_game(game_id)
        if current is None:
            raise NotFoundError(f"Game {game_id} not found")
        if not current.is_active:
            raise GameAlreadyEndedError(f"Game {game_id} has already ended")
        logger.warning("placement lost a race with another submission", game_id=game_id)
        raise StaleSubmissionError(f"Game {game_id} changed while the placement was being scored")

    def _build_verdict(
        self,
        game: Game,
        card: Card,
        round_number: int,
        expected: int,
        *,
        is_correct: bool,
    ) -> PlacementVerdict:
        completed = not game.is_active
        verdict = PlacementVerdict(
            result=PlacementResult.CORRECT if is_correct else PlacementResult.INCORRECT,
            card=card,
            round_number=round_number,
            game_completed=completed,
            game_result=game.result,
        )
        if not is_correct:
            verdict = verdict.model_copy(
                update={"correct_position": expected, "incorrect_attempts": game.incorrect_attempts},
            )
        if game.is_guest:
            verdict = verdict.model_copy(
                update={
                    "is_guest_game": True,
                    "message": GUEST_WON_MESSAGE if is_correct else GUEST_LOST_MESSAGE,
                },
            )
        return verdict

    async def end_game(self, game_id: int, requester: str | None, result: str) -> Game:
        """End a game on the client's request. A finished game is never overwritten."""
        try:
            game_result = GameResult(result)
        except ValueError as e:
            raise GameValidationError(f"Result must be one of: {', '.join(GameResult)}") from e

        async with self._game_lock(game_id):
            game = await self._load_game(game_id, requester)
            if not game.is_active or not await self._games.finish_game(game_id, game_result, self._clock()):
                raise GameAlreadyEndedError(f"Game {game_id} has already ended")

        logger.info("game ended by client", game_id=game_id, result=game_result)
        ended = await self._games.get_game(game_id)
        if ended is None:  # pragma: no cover
            raise NotFoundError(f"Game {game_id} not found")
        return ended
