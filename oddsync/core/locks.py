"""Per-game asyncio locks so a load-merge-upsert runs as one logical transaction."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Tuple

_Key = Tuple[str, int]


class GameLockRegistry:
    """
    Hands out one lock per (external_id, season) key.

    An entry lives only while some task holds or waits on it, so the registry
    stays as small as the number of games in flight.
    """

    def __init__(self) -> None:
        # key -> [lock, holders and waiters]
        self._entries: Dict[_Key, List] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, external_id: str, season: int) -> AsyncIterator[None]:
        key = (str(external_id), int(season))
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]
