"""Placement scoring against the hidden misfortune order."""

from collections.abc import Iterable

TIMEOUT_POSITION = -1


def correct_position(hand_indices: Iterable[float], misfortune_index: float) -> int:
    """Return the insertion index of a card in the hand sorted by misfortune index.

    The slot comes right after every strictly smaller card, so a card whose
    index equals existing cards goes in front of them.
    """
    return sum(1 for index in hand_indices if index < misfortune_index)


def is_placement_correct(position: int, expected: int) -> bool:
    """A timeout (position -1) is never correct."""
    return position != TIMEOUT_POSITION and position == expected
