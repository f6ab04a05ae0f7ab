"""Scroll position bookkeeping for the key-info list.

Scroll lock
  Clicking an entry scrolls the editor; the list then redraws and would
  restore its own scroll position under the user's finger. A short lock
  captured at click time absorbs that restoration:

    Unlocked --click--> Locked(top, left, until=now+duration)
    Locked --scroll at the captured offsets--> Locked
    Locked --scroll elsewhere--> Unlocked      (user is scrolling)
    Locked --queried after until--> Unlocked   (expired)

List scroll context
  The list remembers its last scroll offsets per document and, after a
  document switch, resets to the top exactly once.

All ``now`` values are caller-supplied milliseconds and must not decrease.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Literal


DEFAULT_SCROLL_LOCK_MS = 120


def now_ms() -> float:
    return time.monotonic() * 1000


# ---------------------------------------------------------------------------
# Scroll lock variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Unlocked:
    """No scroll position is protected."""


@dataclass(frozen=True, slots=True)
class Locked:
    """Scroll offsets captured by a click, protected until ``until``."""

    top: float
    left: float
    until: float


type ScrollLock = Unlocked | Locked

UNLOCKED = Unlocked()


def create_scroll_lock(
    top: float,
    left: float,
    now: float,
    duration_ms: float = DEFAULT_SCROLL_LOCK_MS,
) -> Locked:
    return Locked(top=top, left=left, until=now + duration_ms)


def active_scroll_lock(lock: ScrollLock, now: float) -> ScrollLock:
    """The lock if still in effect at *now*, else ``Unlocked``."""
    match lock:
        case Locked(until=until) if now <= until:
            return lock
        case _:
            return UNLOCKED


def release_on_user_scroll(lock: ScrollLock, top: float, left: float) -> ScrollLock:
    """Drop the lock when a scroll event lands away from the captured offsets."""
    match lock:
        case Locked(top=locked_top, left=locked_left) if (top, left) == (locked_top, locked_left):
            return lock
        case _:
            return UNLOCKED


class ScrollLockMachine:
    """Owner of the list's scroll lock, driven from the UI thread."""

    def __init__(self, duration_ms: float = DEFAULT_SCROLL_LOCK_MS) -> None:
        self.duration_ms = duration_ms
        self._lock: ScrollLock = UNLOCKED

    def on_item_click(self, top: float, left: float, now: float | None = None) -> Locked:
        lock = create_scroll_lock(top, left, now_ms() if now is None else now, self.duration_ms)
        self._lock = lock
        return lock

    def on_scroll(self, top: float, left: float, now: float | None = None) -> ScrollLock:
        current = self.current(now)
        self._lock = release_on_user_scroll(current, top, left)
        return self._lock

    def current(self, now: float | None = None) -> ScrollLock:
        self._lock = active_scroll_lock(self._lock, now_ms() if now is None else now)
        return self._lock

    def is_locked(self, now: float | None = None) -> bool:
        return isinstance(self.current(now), Locked)


# ---------------------------------------------------------------------------
# List scroll context
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ListScrollState:
    context_key: str = ""
    last_known_top: float = 0
    last_known_left: float = 0
    pending_reset: bool = False


@dataclass(frozen=True, slots=True)
class PostRenderAction:
    type: Literal["reset", "restore"]
    top: float
    left: float


def set_last_known_scroll(state: ListScrollState, top: float, left: float) -> ListScrollState:
    return replace(state, last_known_top=top, last_known_left=left)


def update_scroll_context(state: ListScrollState, context_key: str) -> ListScrollState:
    """Switching to another context forgets the offsets and schedules a reset."""
    if state.context_key == context_key:
        return state
    return ListScrollState(context_key=context_key, pending_reset=True)


def consume_post_render_action(
    state: ListScrollState,
) -> tuple[ListScrollState, PostRenderAction]:
    if state.pending_reset:
        return replace(state, pending_reset=False), PostRenderAction("reset", 0, 0)
    return state, PostRenderAction("restore", state.last_known_top, state.last_known_left)
