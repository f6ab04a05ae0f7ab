"""Core types for key-info extraction and fusion.

Every extractor (markdown lexer, span rows, rendered DOM) emits the same
``KeyInfoItem`` record. Items are immutable; re-ranking after fusion creates
copies with ``dataclasses.replace``.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal, get_args


type KeyInfoType = Literal["title", "bold", "italic", "highlight", "remark", "tag"]
type KeyInfoFilter = Literal["all", "title", "bold", "italic", "highlight", "remark", "tag"]

KEY_INFO_TYPES: tuple[KeyInfoType, ...] = get_args(KeyInfoType.__value__)

# Rank for blocks missing from the block-order index.
SORT_LAST = sys.maxsize

_KEY_INFO_TYPE_LABELS: dict[KeyInfoType, str] = {
    "title": "标题",
    "bold": "加粗",
    "italic": "斜体",
    "highlight": "高亮",
    "remark": "备注",
    "tag": "标签",
}

_LIST_MARKER_RE = re.compile(r"^\s*(?:[-+*]|\d+\.)\s+")


@dataclass(frozen=True, slots=True)
class ListLine:
    """List-item context of a block."""

    list_item: bool = False
    list_prefix: str | None = None

    def __post_init__(self) -> None:
        if self.list_item and self.list_prefix is None:
            raise ValueError("list_item requires a list_prefix")


NOT_A_LIST_LINE = ListLine()


@dataclass(frozen=True, slots=True)
class KeyInfoItem:
    """One detected span of interest."""

    id: str
    type: KeyInfoType
    text: str
    raw: str
    offset: int
    block_id: str
    block_sort: int
    order: int = 0
    list_item: bool = False
    list_prefix: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id cannot be empty")
        if self.type not in KEY_INFO_TYPES:
            raise ValueError(f"unknown key info type {self.type!r}")
        if self.list_item and self.list_prefix is None:
            raise ValueError("list_item requires a list_prefix")

    @property
    def key(self) -> tuple[KeyInfoType, str]:
        """Identity used for cross-source suppression."""
        return (self.type, self.text)

    def label(self) -> str:
        return f"{self.type}:{self.text}"


def key_info_type_label(value: KeyInfoType) -> str:
    return _KEY_INFO_TYPE_LABELS.get(value, value)


def filter_key_info_items(
    items: Sequence[KeyInfoItem],
    key_filter: KeyInfoFilter = "all",
) -> list[KeyInfoItem]:
    if key_filter == "all":
        return list(items)
    return [item for item in items if item.type == key_filter]


def build_key_info_markdown(items: Iterable[KeyInfoItem]) -> str:
    """Render items as export markdown, one line per item.

    List items keep their marker (``"- "`` when none was recorded) unless the
    raw text already carries one.
    """
    lines: list[str] = []
    for item in items:
        content = (item.raw or item.text or "").strip()
        if not content:
            continue
        prefix = item.list_prefix or ("- " if item.list_item else "")
        if prefix and not _LIST_MARKER_RE.match(content):
            content = f"{prefix}{content}"
        lines.append(content)
    return "\n".join(lines)
