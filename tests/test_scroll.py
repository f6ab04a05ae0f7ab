"""Tests for keyinfo.scroll: click scroll lock and list scroll context."""
import pytest

from keyinfo.scroll import (
    ListScrollState,
    Locked,
    PostRenderAction,
    ScrollLockMachine,
    Unlocked,
    active_scroll_lock,
    consume_post_render_action,
    create_scroll_lock,
    release_on_user_scroll,
    set_last_known_scroll,
    update_scroll_context,
)


class TestScrollLockFunctions:
    def test_create(self) -> None:
        assert create_scroll_lock(120, 8, 1000) == Locked(top=120, left=8, until=1120)
        assert create_scroll_lock(0, 0, 50, duration_ms=10).until == 60

    def test_expiry_boundary(self) -> None:
        lock = create_scroll_lock(0, 0, 1000, 120)
        assert active_scroll_lock(lock, 1119) is lock
        assert active_scroll_lock(lock, 1120) is lock
        assert active_scroll_lock(lock, 1121) == Unlocked()

    @pytest.mark.parametrize("now", [1000, 1001, 1060, 1120])
    def test_active_within_duration(self, now: int) -> None:
        lock = create_scroll_lock(10, 0, 1000, 120)
        assert isinstance(active_scroll_lock(lock, now), Locked)

    def test_unlocked_stays_unlocked(self) -> None:
        assert active_scroll_lock(Unlocked(), 0) == Unlocked()
        assert release_on_user_scroll(Unlocked(), 1, 1) == Unlocked()

    def test_scroll_at_captured_offsets_keeps_lock(self) -> None:
        lock = create_scroll_lock(120, 8, 1000)
        assert release_on_user_scroll(lock, 120, 8) is lock

    def test_user_scroll_releases_lock(self) -> None:
        lock = create_scroll_lock(120, 8, 1000)
        assert release_on_user_scroll(lock, 121, 8) == Unlocked()
        assert release_on_user_scroll(lock, 120, 9) == Unlocked()


class TestScrollLockMachine:
    def test_click_then_expire(self) -> None:
        machine = ScrollLockMachine(duration_ms=120)
        machine.on_item_click(120, 8, now=1000)
        assert machine.is_locked(now=1119)
        assert not machine.is_locked(now=1121)

    def test_user_scroll_releases_before_expiry(self) -> None:
        machine = ScrollLockMachine()
        machine.on_item_click(120, 8, now=1000)
        assert machine.on_scroll(121, 8, now=1010) == Unlocked()
        assert machine.current(now=1011) == Unlocked()

    def test_restoration_scroll_keeps_lock(self) -> None:
        machine = ScrollLockMachine()
        machine.on_item_click(120, 8, now=1000)
        assert machine.on_scroll(120, 8, now=1050) == Locked(120, 8, 1120)

    def test_repeated_queries_are_idempotent(self) -> None:
        machine = ScrollLockMachine()
        machine.on_item_click(5, 5, now=0)
        assert machine.current(now=10) == machine.current(now=10) == Locked(5, 5, 120)

    def test_expired_lock_does_not_come_back(self) -> None:
        machine = ScrollLockMachine()
        machine.on_item_click(5, 5, now=0)
        assert machine.current(now=500) == Unlocked()
        assert machine.on_scroll(5, 5, now=501) == Unlocked()

    def test_new_click_replaces_lock(self) -> None:
        machine = ScrollLockMachine()
        machine.on_item_click(5, 5, now=0)
        machine.on_item_click(7, 7, now=100)
        assert machine.current(now=200) == Locked(7, 7, 220)

    def test_default_clock(self) -> None:
        machine = ScrollLockMachine(duration_ms=60_000)
        machine.on_item_click(1, 2)
        assert machine.is_locked()


class TestListScrollState:
    def test_same_context_keeps_offsets(self) -> None:
        state = set_last_known_scroll(ListScrollState(context_key="doc-1"), 40, 2)
        assert update_scroll_context(state, "doc-1") is state

    def test_context_change_schedules_reset(self) -> None:
        state = set_last_known_scroll(ListScrollState(context_key="doc-1"), 40, 2)
        switched = update_scroll_context(state, "doc-2")
        assert switched == ListScrollState(context_key="doc-2", pending_reset=True)

    def test_reset_consumed_once(self) -> None:
        state = update_scroll_context(ListScrollState(), "doc-1")
        state, action = consume_post_render_action(state)
        assert action == PostRenderAction("reset", 0, 0)
        state = set_last_known_scroll(state, 30, 0)
        state, action = consume_post_render_action(state)
        assert action == PostRenderAction("restore", 30, 0)
        assert consume_post_render_action(state)[1] == PostRenderAction("restore", 30, 0)
