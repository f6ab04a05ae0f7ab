"""Key-info list controller.

Holds the state behind the key-info panel: the current document, its items,
the loading/empty message and the list's scroll bookkeeping. Every refresh
displays the latest pipeline snapshot as-is; a failed refresh of the same
document keeps what is already shown.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from keyinfo.config import KeyInfoConfig, create_logger
from keyinfo.scroll import (
    ListScrollState,
    Locked,
    PostRenderAction,
    ScrollLock,
    ScrollLockMachine,
    consume_post_render_action,
    set_last_known_scroll,
    update_scroll_context,
)
from keyinfo.service import KeyInfoSources, get_doc_key_info
from keyinfo.types import KeyInfoFilter, KeyInfoItem, build_key_info_markdown, filter_key_info_items

_UNSAFE_FILE_CHARS_RE = re.compile(r'[\\/:*?"<>|]')
DEFAULT_EXPORT_BASE = "key-info"


def resolve_key_info_items(
    *,
    is_same_doc: bool,
    has_items: bool,
    current_items: Sequence[KeyInfoItem],
    latest_items: Sequence[KeyInfoItem],
) -> Sequence[KeyInfoItem]:
    """Pick the items to display after a refresh.

    The signature mirrors the refresh context (same document, existing
    items, current snapshot). The snapshot policy ignores those and always
    returns *latest_items*, even for the same document.
    """
    return latest_items


def export_file_name(doc_title: str) -> str:
    """``<title>-key-info.md`` with filesystem-unsafe characters replaced."""
    safe_title = _UNSAFE_FILE_CHARS_RE.sub("_", doc_title or DEFAULT_EXPORT_BASE).strip()
    return f"{safe_title or DEFAULT_EXPORT_BASE}-key-info.md"


@dataclass(frozen=True, slots=True)
class KeyInfoListState:
    doc_id: str = ""
    doc_title: str = ""
    items: Sequence[KeyInfoItem] = ()
    loading: bool = False
    empty_text: str = ""
    scroll: ListScrollState = field(default_factory=ListScrollState)


class KeyInfoController:
    """Drives refreshes and scroll handling for one key-info panel."""

    def __init__(self, sources: KeyInfoSources, config: KeyInfoConfig | None = None) -> None:
        self.sources = sources
        self.config = config or KeyInfoConfig()
        self.log = create_logger("KeyInfoController", self.config)
        self.state = KeyInfoListState(empty_text=self.config.empty_text)
        self.scroll_lock_machine = ScrollLockMachine(self.config.scroll_lock_duration_ms)

    def refresh(self, doc_id: str | None) -> KeyInfoListState:
        if not doc_id:
            self.state = replace(
                self.state,
                doc_id="",
                doc_title="",
                items=(),
                loading=False,
                empty_text=self.config.missing_doc_text,
            )
            return self.state

        previous = self.state
        is_same_doc = previous.doc_id == doc_id
        self.state = replace(previous, loading=True, empty_text=self.config.loading_text)
        try:
            result = get_doc_key_info(doc_id, self.sources, self.config)
        except Exception as exc:
            self.log.warning("refresh of %s failed: %s", doc_id, exc)
            self.state = replace(
                previous,
                doc_id=doc_id,
                doc_title=previous.doc_title if is_same_doc else "",
                items=previous.items if is_same_doc else (),
                loading=False,
                empty_text=self.config.failure_text,
                scroll=update_scroll_context(previous.scroll, doc_id),
            )
            return self.state

        items = resolve_key_info_items(
            is_same_doc=is_same_doc,
            has_items=bool(previous.items),
            current_items=previous.items,
            latest_items=result.items,
        )
        self.log.debug("doc %s refreshed: %d items", result.doc_id, len(items))
        self.state = KeyInfoListState(
            doc_id=result.doc_id,
            doc_title=result.doc_title or result.doc_id,
            items=items,
            loading=False,
            empty_text=self.config.empty_text,
            scroll=update_scroll_context(previous.scroll, result.doc_id),
        )
        return self.state

    def visible_items(self, key_filter: KeyInfoFilter = "all") -> list[KeyInfoItem]:
        return filter_key_info_items(self.state.items, key_filter)

    def export_markdown(self, key_filter: KeyInfoFilter = "all") -> str:
        return build_key_info_markdown(self.visible_items(key_filter))

    def export_file_name(self, doc_title: str | None = None) -> str:
        title = doc_title if doc_title is not None else (self.state.doc_title or self.state.doc_id)
        return export_file_name(title)

    # -- scroll -------------------------------------------------------------

    def on_item_click(
        self,
        item: KeyInfoItem,
        top: float,
        left: float,
        now: float | None = None,
    ) -> str:
        """Protect the list's scroll offsets and return the block to reveal."""
        self.scroll_lock_machine.on_item_click(top, left, now)
        self.state = replace(self.state, scroll=set_last_known_scroll(self.state.scroll, top, left))
        return item.block_id

    def on_list_scroll(self, top: float, left: float, now: float | None = None) -> ScrollLock:
        lock = self.scroll_lock_machine.on_scroll(top, left, now)
        self.state = replace(self.state, scroll=set_last_known_scroll(self.state.scroll, top, left))
        return lock

    def scroll_lock(self, now: float | None = None) -> ScrollLock:
        return self.scroll_lock_machine.current(now)

    def post_render_action(self, now: float | None = None) -> PostRenderAction:
        """Where the list should scroll after it has been redrawn.

        A pending reset (document switch) is consumed once; otherwise the last
        known offsets are restored, or the click-time offsets while locked.
        """
        scroll, action = consume_post_render_action(self.state.scroll)
        self.state = replace(self.state, scroll=scroll)
        if action.type == "restore":
            match self.scroll_lock_machine.current(now):
                case Locked(top=top, left=left):
                    return PostRenderAction("restore", top, left)
        return action
