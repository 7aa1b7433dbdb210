"""
Bounded linear undo/redo history over feature snapshots.

Each committed state of the feature collection is kept as an immutable tuple
of :class:`~geosketch.features.Feature` records. Unchanged features are shared
between snapshots, so a snapshot costs one pointer per feature.
"""

from collections import deque
from typing import Deque, Iterable, List, Tuple

from .features import Feature

Snapshot = Tuple[Feature, ...]


class History:
    """
    Linear undo/redo stacks around the present snapshot.

    ``past`` holds at most ``max_depth`` snapshots; once full the oldest entry
    is evicted first. Any new commit clears ``future``.

    Example:
        ```python
        history = History(max_depth=50)
        history.push((feature,))      # present == (feature,)
        history.undo()                # present == ()
        history.redo()                # present == (feature,)
        ```

    Attributes:
        past: Prior snapshots, most recent last
        present: Current snapshot
        future: Snapshots available for redo, next one last
    """

    def __init__(self, present: Iterable[Feature] = (), max_depth: int = 50):
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.max_depth = max_depth
        self.past: Deque[Snapshot] = deque(maxlen=max_depth)
        self.present: Snapshot = tuple(present)
        self.future: List[Snapshot] = []

    def push(self, new_present: Iterable[Feature]) -> None:
        """Commit ``new_present``, moving the current snapshot onto ``past``."""
        self.past.append(self.present)
        self.present = tuple(new_present)
        self.future.clear()

    def undo(self) -> bool:
        """Step back one snapshot. Returns False if there is nothing to undo."""
        if not self.past:
            return False
        self.future.append(self.present)
        self.present = self.past.pop()
        return True

    def redo(self) -> bool:
        """Step forward one snapshot. Returns False if there is nothing to redo."""
        if not self.future:
            return False
        self.past.append(self.present)
        self.present = self.future.pop()
        return True

    def reset(self, present: Iterable[Feature] = ()) -> None:
        """Replace the present snapshot and forget all history."""
        self.past.clear()
        self.future.clear()
        self.present = tuple(present)

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def __repr__(self) -> str:
        return (
            f"History({len(self.past)} past, "
            f"{len(self.present)} present feature(s), "
            f"{len(self.future)} future)"
        )


__all__ = [
    'Snapshot',
    'History',
]
