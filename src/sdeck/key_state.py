"""
Key debounce for Stream Deck input reports.

The key contacts glitch: a held key can report a few milliseconds of
"released" while still being pressed.  ``KeyDebouncer`` reports presses
immediately and only honours a release once ``min_up_time_s`` has passed
since the press was first seen.  Releases that arrive earlier are
re-evaluated by a single shared timer, armed for half the hold time while
any key is still waiting.

Events reach the callbacks in the order their passes ran, whichever
thread (input reader or recheck timer) ran them.  A callback that raises
is logged and does not stop delivery of the rest of its batch.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .constants import MIN_UP_TIME_S, NUM_KEYS
from .core.models import KeyState

log = logging.getLogger(__name__)

KeyCallback = Callable[[int], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


def _default_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class KeyDebouncer:
    """Turns raw per-key samples into debounced down/up events.

    Args:
        num_keys: Number of keys tracked.
        min_up_time_s: Minimum time from the first press before a release
            is reported.
        on_down: Called with the key index on each debounced press.
        on_up: Called with the key index on each debounced release.
        clock: Monotonic time source (seconds).
        timer_factory: ``(interval, fn) -> timer`` with start()/cancel();
            defaults to a daemon ``threading.Timer``.
    """

    def __init__(self,
                 num_keys: int = NUM_KEYS,
                 min_up_time_s: float = MIN_UP_TIME_S,
                 on_down: Optional[KeyCallback] = None,
                 on_up: Optional[KeyCallback] = None,
                 clock: Callable[[], float] = time.monotonic,
                 timer_factory: TimerFactory = _default_timer):
        self.num_keys = num_keys
        self.min_up_time_s = min_up_time_s
        self.on_down = on_down
        self.on_up = on_up
        self._clock = clock
        self._timer_factory = timer_factory

        self._raw: List[bool] = [False] * num_keys
        self._states: List[KeyState] = [KeyState() for _ in range(num_keys)]
        self._pending: set[int] = set()
        self._timer: Any = None
        self._closed = False
        self._lock = threading.RLock()
        # Held from evaluation through delivery so batches from the reader
        # and the timer thread reach the callbacks in the order they ran.
        # Always taken before _lock.
        self._dispatch_lock = threading.RLock()

    # ── Input ────────────────────────────────────────────────────────

    def update(self, samples: Sequence[bool]) -> None:
        """Record the latest raw sample per key and run one evaluation pass."""
        with self._dispatch_lock:
            with self._lock:
                for i, pressed in enumerate(samples[:self.num_keys]):
                    self._raw[i] = bool(pressed)
                events = self._evaluate()
            self._dispatch(events)

    def check(self) -> None:
        """Run one evaluation pass against the latest raw samples."""
        with self._dispatch_lock:
            with self._lock:
                events = self._evaluate()
            self._dispatch(events)

    # ── State machine ────────────────────────────────────────────────

    def _evaluate(self) -> List[Tuple[bool, int]]:
        """One atomic pass over all keys.  Caller holds the lock."""
        now = self._clock()
        events: List[Tuple[bool, int]] = []
        self._pending.clear()

        for i, state in enumerate(self._states):
            raw = self._raw[i]
            if state.down == raw:
                continue
            if raw and state.pressed_at is None:
                state.pressed_at = now
            held = now - state.pressed_at if state.pressed_at is not None else None
            if raw or held is None or held >= self.min_up_time_s:
                state.down = raw
                if not raw:
                    state.pressed_at = None
                events.append((raw, i))
            else:
                self._pending.add(i)

        if self._pending:
            self._arm_timer()
        elif self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return events

    def _arm_timer(self) -> None:
        if self._timer is not None or self._closed:
            return
        timer = None

        def fire() -> None:
            self._on_timer(timer)

        timer = self._timer = self._timer_factory(self.min_up_time_s / 2, fire)
        timer.start()
        log.debug("Debounce recheck armed for keys %s", sorted(self._pending))

    def _on_timer(self, timer: Any) -> None:
        with self._dispatch_lock:
            with self._lock:
                # a cancelled timer may still fire once; only the current one counts
                if timer is not self._timer or self._closed:
                    return
                self._timer = None
                events = self._evaluate()
            self._dispatch(events)

    def _dispatch(self, events: List[Tuple[bool, int]]) -> None:
        """Deliver one batch.  Caller holds the dispatch lock, not the state lock."""
        for down, key in events:
            log.debug("Key %d %s", key, 'down' if down else 'up')
            callback = self.on_down if down else self.on_up
            if not callback:
                continue
            try:
                callback(key)
            except Exception:
                log.exception("Key %s handler failed for key %d",
                              'down' if down else 'up', key)

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def states(self) -> List[KeyState]:
        """Snapshot of the debounced state of every key."""
        with self._lock:
            return [KeyState(s.down, s.pressed_at) for s in self._states]

    def is_down(self, key: int) -> bool:
        with self._lock:
            return self._states[key].down

    @property
    def pending(self) -> frozenset:
        """Keys waiting for a delayed release."""
        with self._lock:
            return frozenset(self._pending)

    @property
    def timer_armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    # ── Lifecycle ────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget all state without emitting events."""
        with self._lock:
            self._cancel_timer()
            self._raw = [False] * self.num_keys
            self._states = [KeyState() for _ in range(self.num_keys)]
            self._pending.clear()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
