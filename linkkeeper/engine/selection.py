"""
linkkeeper.engine.selection — Random Source for Winner Draws
=============================================================

The distribution service never touches the ``random`` module's global
state.  It asks an injected :class:`RandomSource` to pick one element.

Production uses :class:`random.SystemRandom` (OS entropy, nothing to seed,
safe to share between pool threads).  Tests pass ``random.Random(seed)``,
which already satisfies the protocol.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Protocol, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    def choice(self, seq: Sequence[T]) -> T: ...


def default_random_source() -> RandomSource:
    """OS-entropy backed source for production draws."""
    return random.SystemRandom()
