"""Playback queue — pure business logic, no I/O.

Provides:
- Fisher–Yates shuffle (unbiased)
- Play order kept as a permutation of positions into the original order
- Advance / retreat with optional wrap-around
"""

from __future__ import annotations

import random
from typing import List, Optional, Sequence

from audiocore.models import Track


# ---------------------------------------------------------------------------
# Fisher–Yates Shuffle
# ---------------------------------------------------------------------------

def fisher_yates_shuffle(
    items: List[int],
    rng: Optional[random.Random] = None,
) -> List[int]:
    """In-place unbiased Fisher–Yates (Knuth) shuffle.

    Parameters
    ----------
    items:
        List to shuffle.  Will be **mutated** in place.
    rng:
        Optional ``random.Random`` instance for deterministic testing.

    Returns
    -------
    The same list (shuffled in place) for convenience.
    """
    rng = rng or random.Random()
    n = len(items)
    for i in range(n - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------

class PlaybackQueue:
    """Derived, never persisted: original order, play order and a cursor.

    The play order is stored as positions into ``original_order`` so that
    duplicate tracks keep distinct identities and un-shuffling restores the
    original sequence element for element.
    """

    def __init__(
        self,
        tracks: Sequence[Track] = (),
        index: int = 0,
        *,
        shuffled: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self._rng = rng or random.Random()
        self.original_order: List[Track] = list(tracks)
        self._order: List[int] = list(range(len(self.original_order)))
        self._position = 0
        self.shuffled = False
        if self.original_order:
            if not 0 <= index < len(self.original_order):
                raise IndexError(f"queue index {index} out of range")
            self._position = index
            if shuffled:
                self.set_shuffle(True)

    def __len__(self) -> int:
        return len(self._order)

    @property
    def play_order(self) -> List[Track]:
        return [self.original_order[i] for i in self._order]

    @property
    def current_index(self) -> int:
        return self._position

    @property
    def current(self) -> Optional[Track]:
        if not self._order:
            return None
        return self.original_order[self._order[self._position]]

    def set_shuffle(self, enabled: bool) -> None:
        """Reshuffle (or restore) the play order without changing the current track.

        Shuffling moves the current track to the front and shuffles everything
        else behind it, so a whole pass plays every other track once.
        """
        if not self._order:
            self.shuffled = enabled
            return
        current_slot = self._order[self._position]
        if enabled:
            rest = [i for i in range(len(self.original_order)) if i != current_slot]
            self._order = [current_slot, *fisher_yates_shuffle(rest, rng=self._rng)]
            self._position = 0
        else:
            self._order = list(range(len(self.original_order)))
            self._position = current_slot
        self.shuffled = enabled

    def advance(self, *, wrap: bool = False) -> Optional[Track]:
        """Move to the next track; ``None`` at the end unless *wrap*."""
        if not self._order:
            return None
        nxt = self._position + 1
        if nxt >= len(self._order):
            if not wrap:
                return None
            nxt = 0
        self._position = nxt
        return self.current

    def retreat(self) -> Optional[Track]:
        """Move to the previous track, wrapping to the end."""
        if not self._order:
            return None
        self._position = (self._position - 1) % len(self._order)
        return self.current
