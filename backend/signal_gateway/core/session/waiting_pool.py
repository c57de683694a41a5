"""
Waiting pool: insertion-ordered set of identifiers looking for a partner.
"""

from __future__ import annotations

from typing import Iterator


class WaitingPool:
    """
    FIFO-ordered set of waiting identifiers.

    Enqueueing a member already present keeps its original position, so a
    client that repeats find-match does not lose its place.
    """

    def __init__(self) -> None:
        self._members: dict[str, None] = {}

    def enqueue(self, user_id: str) -> None:
        self._members.setdefault(user_id, None)

    def dequeue(self, user_id: str) -> bool:
        """Remove a member. Returns False if it was not present."""
        return self._members.pop(user_id, ...) is not ...

    def member(self, user_id: str) -> bool:
        return user_id in self._members

    __contains__ = member

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[str]:
        # Snapshot so callers may dequeue while iterating
        return iter(list(self._members))

    def clear(self) -> None:
        self._members.clear()
