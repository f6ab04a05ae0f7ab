"""Rendered-tree extractor.

Walks the editor's rendered HTML (``data-node-id`` marks block elements) and
emits items for every formatting element, in document order. Element
identity is mapped through the same closed format-tag table as span rows.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from bs4 import BeautifulSoup
from bs4.element import NavigableString, Tag

from keyinfo.html_utils import attr_text, element_text, load_soup, normalize_nbsp, strip_zero_width
from keyinfo.normalization import (
    build_inline_raw,
    format_remark_text,
    normalize_list_decorated_text,
    parse_inline_memo,
)
from keyinfo.spans import ListLineResolver, dedupe_items, resolve_format_type
from keyinfo.types import NOT_A_LIST_LINE, SORT_LAST, KeyInfoItem

log = logging.getLogger(__name__)

FORMAT_SELECTORS: tuple[str, ...] = (
    "strong",
    "b",
    "[data-type='strong']",
    "em",
    "i",
    "[data-type='em']",
    "mark",
    "[data-type='mark']",
    "[data-type='textmark']",
    "[data-type='text']",
    "span[data-type='inline-memo']",
    "span[data-inline-memo-content]",
    "span[data-memo-content]",
    "span[data-memo]",
    "span[data-type='tag']",
)

# HTML element names spelled as format tags.
_ELEMENT_FORMAT_TAGS: dict[str, str] = {
    "strong": "strong",
    "b": "strong",
    "em": "em",
    "i": "em",
    "mark": "mark",
}

_MEMO_ATTRS = ("data-inline-memo-content", "data-memo-content", "data-memo")
_WHITESPACE_RE = re.compile(r"\s+")


def _element_format_tag(element: Tag) -> str:
    parts = [
        _ELEMENT_FORMAT_TAGS.get(element.name.lower(), ""),
        attr_text(element, "data-type"),
        attr_text(element, "data-subtype"),
    ]
    return " ".join(part for part in parts if part)


def _memo_hint(element: Tag) -> str:
    for name in _MEMO_ATTRS:
        value = element.get(name)
        if value:
            return str(value)
    # Memo spans rendered by older editors keep the note in a tooltip.
    if "inline-memo" in attr_text(element, "data-type"):
        return str(element.get("title") or "")
    return ""


def _enclosing_block(element: Tag) -> Tag | None:
    if element.has_attr("data-node-id"):
        return element
    return element.find_parent(attrs={"data-node-id": True})


def _text_offset(block: Tag, element: Tag) -> int:
    """Length of the rendered text of *block* that precedes *element*."""
    if element is block:
        return 0
    parts: list[str] = []
    for node in block.descendants:
        if node is element:
            break
        if type(node) is NavigableString:
            parts.append(str(node))
    prefix = strip_zero_width(normalize_nbsp("".join(parts)))
    return len(_WHITESPACE_RE.sub(" ", prefix).lstrip())


def dom_block_sort_map(html: str | BeautifulSoup | Tag | None) -> dict[str, int]:
    """Rank every ``data-node-id`` element in document order (first wins)."""
    root = load_soup(html)
    ranks: dict[str, int] = {}
    if root is None:
        return ranks
    for element in root.find_all(attrs={"data-node-id": True}):
        block_id = str(element["data-node-id"])
        if not block_id or block_id in ranks:
            continue
        ranks[block_id] = len(ranks)
    return ranks


def extract_dom_items(
    html: str | BeautifulSoup | Tag | None,
    block_sort_map: Mapping[str, int],
    *,
    root_id: str | None = None,
    resolve_list_line: ListLineResolver | None = None,
) -> list[KeyInfoItem]:
    """Extract formatting items from the rendered tree.

    Elements outside any block fall back to *root_id*; without one they are
    skipped. ``offset`` is the position of the element within the rendered
    text of its block, so it sorts alongside markdown offsets.
    """
    root = load_soup(html)
    if root is None:
        return []
    items: list[KeyInfoItem] = []
    order = 0
    for element in root.select(", ".join(FORMAT_SELECTORS)):
        text = element_text(element)
        if not text:
            continue
        memo_hint = _memo_hint(element)
        format_tag = _element_format_tag(element)
        if memo_hint:
            format_tag = f"{format_tag} inline-memo"
        key_type = resolve_format_type(format_tag)
        if key_type is None:
            continue

        match key_type:
            case "remark":
                marked, memo = parse_inline_memo(text, memo_hint)
                text = format_remark_text(marked, memo)
                raw = text
            case "tag":
                text = text.lstrip("#") or text
                raw = f"#{text}"
            case _:
                raw = build_inline_raw(key_type, text)

        block = _enclosing_block(element)
        block_id = str(block["data-node-id"]) if block is not None else ""
        if not block_id:
            if not root_id:
                log.debug("<%s> outside any block, skipped", element.name)
                continue
            block_id, block = root_id, root
        block_sort = block_sort_map.get(block_id)
        if block_sort is None and root_id:
            block_sort = block_sort_map.get(root_id)
        if block_sort is None:
            block_sort = SORT_LAST

        list_line = resolve_list_line(block_id) if resolve_list_line else NOT_A_LIST_LINE
        if list_line.list_prefix:
            text = normalize_list_decorated_text(text)

        items.append(KeyInfoItem(
            id=f"dom-{block_id}-{order}",
            type=key_type,
            text=text,
            raw=raw,
            offset=_text_offset(block if block is not None else root, element),
            block_id=block_id,
            block_sort=block_sort,
            order=order,
            list_item=list_line.list_item,
            list_prefix=list_line.list_prefix,
        ))
        order += 1
    return dedupe_items(items)
