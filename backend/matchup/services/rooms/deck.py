import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar('T')


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly random permutation of `items`, leaving the input untouched.

    `random.shuffle` is Fisher-Yates: walk i from the end down to 1 and swap
    with a uniform j in [0, i].
    """
    deck = list(items)
    (rng or random).shuffle(deck)
    return deck
