"""In-process execution substrate for a race session.

The state machine only ever talks to the capabilities defined here:
ordered publish/subscribe, a logical clock, deferred callbacks and a seeded
random stream. ``LogicalRuntime`` provides all of them deterministically, so
two runtimes fed the same seed and the same event sequence end in the same
state. Nothing here reads wall-clock time; the server clock in
``scheduler.py`` is what turns real seconds into ``advance`` calls.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import random as _random
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

log = logging.getLogger(__name__)

SESSION_TOPIC = 'session'
VIEW_JOIN = 'view-join'
VIEW_EXIT = 'view-exit'

_NO_PAYLOAD = object()

Handler = Callable[..., Any]


class LogicalRuntime:

    def __init__(self, seed: int = 0, start_ms: int = 0):
        self.seed = seed
        self._now = int(start_ms)
        self._rng = _random.Random(seed)
        self._subscriptions: Dict[Tuple[str, str], List[Handler]] = defaultdict(list)
        self._queue: List[Tuple[int, int, Callable[[], Any]]] = []
        self._sequence = itertools.count()

    # clock and randomness
    def now(self) -> int:
        return self._now

    def random(self) -> float:
        return self._rng.random()

    # pub/sub
    def subscribe(self, topic: str, event: str, handler: Handler) -> None:
        self._subscriptions[(topic, event)].append(handler)

    def unsubscribe(self, topic: str, event: str, handler: Handler) -> None:
        handlers = self._subscriptions.get((topic, event))
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._subscriptions[(topic, event)]

    def publish(self, topic: str, event: str, payload: Any = _NO_PAYLOAD) -> None:
        # copy: handlers may subscribe/unsubscribe while we dispatch
        for handler in list(self._subscriptions.get((topic, event), ())):
            if payload is _NO_PAYLOAD:
                handler()
            else:
                handler(payload)

    def has_subscribers(self, topic: str, event: str) -> bool:
        return bool(self._subscriptions.get((topic, event)))

    # lifecycle signals
    def join(self, view_id: str) -> None:
        self.publish(SESSION_TOPIC, VIEW_JOIN, view_id)

    def leave(self, view_id: str) -> None:
        self.publish(SESSION_TOPIC, VIEW_EXIT, view_id)

    # deferred callbacks
    def after(self, delay_ms: int, callback: Callable[[], Any]) -> None:
        due = self._now + max(0, int(delay_ms))
        heapq.heappush(self._queue, (due, next(self._sequence), callback))

    def pending(self) -> int:
        return len(self._queue)

    def next_due(self) -> Optional[int]:
        return self._queue[0][0] if self._queue else None

    def advance(self, ms: int) -> int:
        """Move logical time forward by ``ms``, firing due callbacks in order.

        Returns the number of callbacks fired.
        """
        return self.advance_to(self._now + max(0, int(ms)))

    def advance_to(self, target_ms: int) -> int:
        fired = 0
        while self._queue and self._queue[0][0] <= target_ms:
            due, _, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            callback()
            fired += 1
        self._now = max(self._now, int(target_ms))
        return fired

    def run_until_idle(self, limit: int = 100000) -> int:
        """Fire queued callbacks until none remain (or ``limit`` is hit)."""
        fired = 0
        while self._queue and fired < limit:
            fired += self.advance_to(self._queue[0][0])
        if self._queue:
            log.warning(f"[runtime] stopped with {len(self._queue)} callbacks still queued")
        return fired
