from enum import Enum
from typing import Sequence

from matchup.models import Choice


class Verdict(str, Enum):
    MATCH = 'match'
    NEUTRAL = 'neutral'
    REJECTED = 'rejected'


def classify(choices: Sequence[Choice]) -> Verdict:
    """Classify one item from its two participants' choices.

    A single NO rejects the item, even next to a YES. Otherwise two YES
    votes are a match, and anything left (some NEUTRAL, no NO) is a neutral
    fallback.
    """
    if len(choices) != 2:
        raise ValueError(f"classify expects exactly 2 choices, got {len(choices)}")
    if Choice.NO in choices:
        return Verdict.REJECTED
    if all(c == Choice.YES for c in choices):
        return Verdict.MATCH
    return Verdict.NEUTRAL
