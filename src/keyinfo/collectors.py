"""Per-block collectors feeding the refresh pipeline.

Heading blocks become title items directly from their rendered content.
Other blocks are lexed one block at a time so offsets stay block-relative.
Block attributes (memo, tags) become remark and tag items.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace

from keyinfo.lexer import iter_markdown_items
from keyinfo.normalization import clean_inline_text, normalize_list_decorated_text, split_tags
from keyinfo.order import BlockRow
from keyinfo.spans import ListLineResolver
from keyinfo.types import KeyInfoItem

# Block memos and tags sort after every inline item of their block.
MEMO_OFFSET = 1_000_000

_HEADING_LEVEL_RE = re.compile(r"h([1-6])", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class HeadingCollection:
    items: list[KeyInfoItem]
    heading_block_ids: frozenset[str]
    next_order: int


@dataclass(frozen=True, slots=True)
class MarkdownCollection:
    items: list[KeyInfoItem]
    markdown_inline_items: list[KeyInfoItem]
    next_order: int


def collect_heading_items(
    rows: Sequence[BlockRow],
    block_sort_map: Mapping[str, int],
    resolve_list_line: ListLineResolver,
    start_order: int = 0,
) -> HeadingCollection:
    items: list[KeyInfoItem] = []
    heading_ids: set[str] = set()
    order = start_order
    for row in rows:
        if row.type != "h":
            continue
        heading_ids.add(row.id)
        text = clean_inline_text(row.content)
        if not text:
            continue
        level_match = _HEADING_LEVEL_RE.search(row.subtype)
        level = int(level_match.group(1)) if level_match else 1
        list_line = resolve_list_line(row.id)
        items.append(KeyInfoItem(
            id=f"{row.id}-heading-{order}",
            type="title",
            text=normalize_list_decorated_text(text) if list_line.list_prefix else text,
            raw=f"{'#' * level} {text}",
            offset=0,
            block_id=row.id,
            block_sort=block_sort_map.get(row.id, 0),
            order=order,
            list_item=list_line.list_item,
            list_prefix=list_line.list_prefix,
        ))
        order += 1
    return HeadingCollection(items, frozenset(heading_ids), order)


def collect_markdown_and_meta_items(
    rows: Sequence[BlockRow],
    *,
    root_id: str,
    has_child_blocks: bool,
    block_sort_map: Mapping[str, int],
    is_list_item_with_mapped_child: Callable[[str], bool],
    resolve_list_line: ListLineResolver,
    block_markdown: Mapping[str, str] | None = None,
    start_order: int = 0,
) -> MarkdownCollection:
    """Lex block markdown and collect block attribute items.

    Skipped for markdown extraction: the root document row when child blocks
    exist (its markdown repeats theirs), list containers, and list items whose
    first child already carries the list line. Markdown titles of heading rows
    are dropped since :func:`collect_heading_items` owns them.
    """
    items: list[KeyInfoItem] = []
    inline_items: list[KeyInfoItem] = []
    overrides = block_markdown or {}
    order = start_order

    for index, row in enumerate(rows):
        row_type = row.type.lower()
        block_sort = block_sort_map.get(row.id, index)
        is_root_doc_row = row.id == root_id and row.type == "d"
        should_lex = (
            (not is_root_doc_row or not has_child_blocks)
            and row_type != "l"
            and not is_list_item_with_mapped_child(row.id)
        )
        list_line = resolve_list_line(row.id)

        if should_lex:
            markdown = overrides.get(row.id) or row.markdown
            for lexed in iter_markdown_items(markdown, block_id=row.id, block_sort=block_sort):
                if lexed.type == "title" and row.type == "h":
                    continue
                text = normalize_list_decorated_text(lexed.text) if list_line.list_prefix else lexed.text
                item = replace(
                    lexed,
                    id=f"{row.id}-{'title' if lexed.type == 'title' else 'inline'}-{order}",
                    text=text,
                    order=order,
                    list_item=list_line.list_item,
                    list_prefix=list_line.list_prefix,
                )
                (items if lexed.type == "title" else inline_items).append(item)
                order += 1

        memo = row.memo.strip()
        if memo:
            items.append(KeyInfoItem(
                id=f"{row.id}-memo-{order}",
                type="remark",
                text=normalize_list_decorated_text(memo) if list_line.list_prefix else memo,
                raw=f"%%{memo}%%",
                offset=MEMO_OFFSET,
                block_id=row.id,
                block_sort=block_sort,
                order=order,
                list_item=list_line.list_item,
                list_prefix=list_line.list_prefix,
            ))
            order += 1

        for tag in split_tags(row.tag):
            items.append(KeyInfoItem(
                id=f"{row.id}-tag-{order}",
                type="tag",
                text=tag,
                raw=f"#{tag}",
                offset=MEMO_OFFSET + order,
                block_id=row.id,
                block_sort=block_sort,
                order=order,
                list_item=list_line.list_item,
                list_prefix=list_line.list_prefix,
            ))
            order += 1

    return MarkdownCollection(items, inline_items, order)
