"""Round engine error taxonomy.

Each error carries a stable ``kind`` that the HTTP layer maps to a status code.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"
    VALIDATION = "validation_error"
    INSUFFICIENT_CARDS = "insufficient_cards"
    NO_CARDS_AVAILABLE = "no_cards_available"
    GAME_ALREADY_ENDED = "game_already_ended"
    STALE_SUBMISSION = "stale_submission"
    FATAL_CONSISTENCY = "fatal_consistency_error"


class GameError(Exception):
    """Base class for errors raised by the round engine."""

    kind: ErrorKind


class NotFoundError(GameError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(GameError):
    kind = ErrorKind.FORBIDDEN


class UnauthenticatedError(GameError):
    kind = ErrorKind.UNAUTHENTICATED


class GameValidationError(GameError):
    kind = ErrorKind.VALIDATION


class InsufficientCardsError(GameError):
    """The catalog has fewer eligible cards than requested."""

    kind = ErrorKind.INSUFFICIENT_CARDS


class NoCardsAvailableError(GameError):
    """Every catalog card is already in the game's hand."""

    kind = ErrorKind.NO_CARDS_AVAILABLE


class GameAlreadyEndedError(GameError):
    kind = ErrorKind.GAME_ALREADY_ENDED


class StaleSubmissionError(GameError):
    """A placement for a round the game has already moved past."""

    kind = ErrorKind.STALE_SUBMISSION


class FatalConsistencyError(GameError):
    """The catalog returned a card it was told to exclude, or a duplicate."""

    kind = ErrorKind.FATAL_CONSISTENCY
