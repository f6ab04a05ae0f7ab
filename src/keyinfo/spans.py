"""Span-row extractor and the format-tag mapping shared with the DOM scan.

A span row is one inline formatting run as reported by the document store:
its raw format tag (``"textmark strong"``, ``"textmark inline-memo"``...), the
rendered content, the markdown spelling and the enclosing block.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any

from keyinfo.normalization import (
    build_inline_raw,
    clean_inline_text,
    extract_inline_memo_hint,
    format_remark_text,
    normalize_list_decorated_text,
    normalize_sort,
    parse_inline_memo,
    tokenize_type,
)
from keyinfo.types import NOT_A_LIST_LINE, SORT_LAST, KeyInfoItem, KeyInfoType, ListLine

log = logging.getLogger(__name__)

type ListLineResolver = Callable[[str], ListLine]

# ---------------------------------------------------------------------------
# Format tag -> key info type
# ---------------------------------------------------------------------------

# Closed table. The first entry whose tag is present wins.
FORMAT_TAG_TYPES: Mapping[str, KeyInfoType] = MappingProxyType({
    "inline-memo": "remark",
    "tag": "tag",
    "strong": "bold",
    "em": "italic",
    "mark": "highlight",
    "textmark": "highlight",
    "text": "highlight",
})

# Modifiers that disqualify a span whatever its base tag.
EXCLUDED_FORMAT_TAGS: frozenset[str] = frozenset({"sup", "superscript", "sub", "subscript"})


def format_tags(format_tag: str, ial: str | None = None) -> set[str]:
    """Normalized tag set of a raw format tag plus its inline attribute list."""
    tokens = set(tokenize_type(" ".join(part for part in (format_tag, ial) if part)))
    if {"inline", "memo"} <= tokens:
        tokens.add("inline-memo")
    return tokens


def resolve_format_type(format_tag: str, ial: str | None = None) -> KeyInfoType | None:
    """Map a raw format tag to a key info type, None when unmapped."""
    tags = format_tags(format_tag, ial)
    if tags & EXCLUDED_FORMAT_TAGS:
        return None
    for tag, key_type in FORMAT_TAG_TYPES.items():
        if tag in tags:
            return key_type
    return None


# ---------------------------------------------------------------------------
# Span rows
# ---------------------------------------------------------------------------

_OFFSET_KEYS = ("start_offset", "start", "offset", "pos", "position")


@dataclass(frozen=True, slots=True)
class SpanRow:
    """One inline formatting span reported by the document store."""

    id: str
    type: str
    content: str = ""
    markdown: str = ""
    block_id: str = ""
    root_id: str = ""
    ial: str = ""
    start_offset: int | str | None = None
    block_sort: int | str | None = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> SpanRow:
        start = next((row[key] for key in _OFFSET_KEYS if row.get(key) is not None), None)
        return cls(
            id=str(row.get("id") or ""),
            type=str(row.get("type") or ""),
            content=str(row.get("content") or ""),
            markdown=str(row.get("markdown") or ""),
            block_id=str(row.get("block_id") or ""),
            root_id=str(row.get("root_id") or ""),
            ial=str(row.get("ial") or ""),
            start_offset=start,
            block_sort=row.get("block_sort"),
        )


def dedupe_items(items: Iterable[KeyInfoItem]) -> list[KeyInfoItem]:
    """Drop repeats of ``(type, text, block_id, offset)``, keeping the first."""
    seen: set[tuple[str, str, str, int]] = set()
    result: list[KeyInfoItem] = []
    for item in items:
        key = (item.type, item.text, item.block_id, item.offset)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def _place_unpositioned(items: list[KeyInfoItem], unplaced: list[int]) -> None:
    pending = set(unplaced)
    taken: dict[str, set[int]] = {}
    for index, item in enumerate(items):
        if index not in pending:
            taken.setdefault(item.block_id, set()).add(item.offset)
    next_free: dict[str, int] = {}
    for index in unplaced:
        item = items[index]
        used = taken.setdefault(item.block_id, set())
        offset = next_free.get(item.block_id, 0)
        while offset in used:
            offset += 1
        used.add(offset)
        next_free[item.block_id] = offset + 1
        items[index] = replace(item, offset=offset)


def map_span_rows_to_items(
    rows: Iterable[SpanRow],
    block_sort_map: Mapping[str, int],
    resolve_list_line: ListLineResolver | None = None,
) -> list[KeyInfoItem]:
    """Convert span rows into key info items.

    Rows with an unmapped format tag, empty content, or no block identifier are
    skipped silently. Rows without a usable offset are numbered per block,
    skipping offsets that other rows of the block report.
    """
    items: list[KeyInfoItem] = []
    unplaced: list[int] = []
    order = 0
    for row in rows:
        key_type = resolve_format_type(row.type, row.ial)
        if key_type is None:
            continue
        raw = row.markdown.strip()
        content = clean_inline_text(row.content or raw)
        if not content:
            continue
        block_id = row.block_id or row.root_id
        if not block_id:
            log.debug("span %s has no enclosing block, skipped", row.id)
            continue
        block_sort = block_sort_map.get(block_id)
        if block_sort is None:
            block_sort = normalize_sort(row.block_sort, SORT_LAST)

        text = content
        if key_type == "tag":
            text = content.lstrip("#") or content
            raw = raw or f"#{text}"
        elif key_type == "remark":
            marked, memo = parse_inline_memo(content, extract_inline_memo_hint(row.ial))
            text = format_remark_text(marked, memo)
            raw = raw or text
        else:
            raw = raw or build_inline_raw(key_type, text)

        list_line = resolve_list_line(block_id) if resolve_list_line else NOT_A_LIST_LINE
        if list_line.list_prefix:
            text = normalize_list_decorated_text(text)

        offset = normalize_sort(row.start_offset, -1)
        if offset < 0:
            unplaced.append(len(items))

        items.append(KeyInfoItem(
            id=f"span-{row.id or block_id}-{order}",
            type=key_type,
            text=text,
            raw=raw,
            offset=offset,
            block_id=block_id,
            block_sort=block_sort,
            order=order,
            list_item=list_line.list_item,
            list_prefix=list_line.list_prefix,
        ))
        order += 1
    _place_unpositioned(items, unplaced)
    return dedupe_items(items)
