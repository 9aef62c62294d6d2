# app/services/room_locks.py
from __future__ import annotations

import asyncio
from collections import defaultdict


class RoomLocks:
    """
    One asyncio.Lock per room id.

    Held across "check for conflicts, then write, then commit" so two
    concurrent requests for the same room can never both observe a free
    slot. Different rooms never contend.

    Locks are process-local and bound to the event loop that first waits on
    them; create one registry per running application.
    """

    def __init__(self, name: str = "room") -> None:
        self.name = name
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_room(self, room_id: int) -> asyncio.Lock:
        return self._locks[room_id]

    def __len__(self) -> int:
        return len(self._locks)
