from __future__ import annotations

from typing import Iterator, List, Set

from shared.protocol.messages import ChunkCoordinate


class ChunkSubscriptionRegistry:
    """Chunks currently subscribed to; replayed after every (re)connect."""

    def __init__(self) -> None:
        self._chunks: Set[ChunkCoordinate] = set()

    def add(self, chunk: ChunkCoordinate) -> bool:
        """Record `chunk`; returns False if it was already tracked."""
        if chunk in self._chunks:
            return False
        self._chunks.add(chunk)
        return True

    def discard(self, chunk: ChunkCoordinate) -> bool:
        """Forget `chunk`; returns False if it was not tracked."""
        if chunk not in self._chunks:
            return False
        self._chunks.remove(chunk)
        return True

    def snapshot(self) -> List[ChunkCoordinate]:
        return sorted(self._chunks)

    def __contains__(self, chunk: object) -> bool:
        return chunk in self._chunks

    def __iter__(self) -> Iterator[ChunkCoordinate]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._chunks)
