"""
In-memory sliding-window counters for join velocity and message rate.

Timestamps are kept per key in a deque and trimmed on every access, so
memory stays proportional to the activity inside the window.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Hashable

from automod.datatypes.discord_datatypes import GuildID, UserID


class SlidingWindowCounter:
    """Counts events per key within the last ``window_seconds``."""

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: Dict[Hashable, Deque[float]] = defaultdict(deque)

    def _trim(self, key: Hashable, now: float) -> Deque[float]:
        events = self._events[key]
        while events and now - events[0] > self.window_seconds:
            events.popleft()
        if not events:
            del self._events[key]
            return deque()
        return events

    def record(self, key: Hashable) -> int:
        """Record one event for ``key`` and return the count inside the window."""
        now = self._clock()
        self._trim(key, now)
        events = self._events[key]
        events.append(now)
        return len(events)

    def count(self, key: Hashable) -> int:
        return len(self._trim(key, self._clock()))

    def reset(self, key: Hashable) -> None:
        self._events.pop(key, None)

    def __len__(self) -> int:
        return len(self._events)


class JoinVelocityTracker:
    """Tracks member joins per guild; used as the engine's join velocity counter."""

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._counter = SlidingWindowCounter(window_seconds, clock)

    def record_join(self, guild_id: GuildID) -> int:
        return self._counter.record(str(guild_id))

    async def get_recent_join_count(self, guild_id: GuildID) -> int:
        return self._counter.count(str(guild_id))


class MessageRateTracker:
    """Tracks messages per (guild, user) for the message-rate trigger."""

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._counter = SlidingWindowCounter(window_seconds, clock)

    @property
    def window_ms(self) -> int:
        return int(self._counter.window_seconds * 1000)

    def record_message(self, guild_id: GuildID, user_id: UserID) -> int:
        return self._counter.record((str(guild_id), str(user_id)))

    def message_count(self, guild_id: GuildID, user_id: UserID) -> int:
        return self._counter.count((str(guild_id), str(user_id)))
