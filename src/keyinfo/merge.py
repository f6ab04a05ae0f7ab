"""Fusion of markdown, span-row and DOM extraction results.

Structural sources (span rows, rendered DOM) are ground truth for what is
rendered. Markdown hits only fill gaps: a markdown item is dropped as soon as
any structural item has the same ``(type, text)``.

Known collision boundary: suppression keys on ``(type, text)`` alone, so two
spans with equal type and text in different blocks are indistinguishable to
it. A markdown-only occurrence is dropped whenever the same text is
structurally confirmed anywhere in the document.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from keyinfo.types import KeyInfoItem


def _position(item: KeyInfoItem) -> tuple[int, int]:
    return (item.block_sort, item.offset)


def rank_items(items: Sequence[KeyInfoItem]) -> list[KeyInfoItem]:
    """Copy *items* with ``order`` set to their index."""
    return [item if item.order == rank else replace(item, order=rank) for rank, item in enumerate(items)]


def sort_key_info_items(items: Sequence[KeyInfoItem]) -> list[KeyInfoItem]:
    """Stable sort by ``(block_sort, offset)`` and re-rank."""
    return rank_items(sorted(items, key=_position))


def _union_structural(
    span_items: Sequence[KeyInfoItem],
    dom_items: Sequence[KeyInfoItem],
) -> tuple[list[KeyInfoItem], set[int]]:
    """DOM items absorb the span item of the same block and text.

    The absorbed span contributes its markdown spelling and block offset;
    unmatched span items follow the DOM items. Also returns the indices of
    DOM items no span row confirmed: their offsets count rendered text.
    """
    buckets: dict[tuple[str, str, str], list[KeyInfoItem]] = {}
    for item in span_items:
        buckets.setdefault((item.type, item.text, item.block_id), []).append(item)

    merged: list[KeyInfoItem] = []
    rendered_only: set[int] = set()
    for item in dom_items:
        bucket = buckets.get((item.type, item.text, item.block_id))
        if bucket:
            span = bucket.pop(0)
            merged.append(replace(item, raw=span.raw or item.raw, offset=span.offset))
        else:
            rendered_only.add(len(merged))
            merged.append(item)
    for bucket in buckets.values():
        merged.extend(bucket)
    return merged, rendered_only


def merge_preferred_inline_items(
    markdown_items: Sequence[KeyInfoItem],
    span_items: Sequence[KeyInfoItem],
    dom_items: Sequence[KeyInfoItem],
) -> list[KeyInfoItem]:
    """Fuse the three sources into one ordered list.

    A rendered-only item that suppresses a markdown item of its own block
    takes over the markdown offset, so it sorts among the surviving markdown
    items of that block by source position.

    Returns a new list; ``order`` is the final 0-based rank.
    """
    preferred, rendered_only = _union_structural(span_items, dom_items)
    if not preferred:
        return rank_items(markdown_items)
    if not markdown_items:
        return sort_key_info_items(preferred)

    index_by_key: dict[tuple[str, str], list[int]] = {}
    for index, item in enumerate(preferred):
        index_by_key.setdefault(item.key, []).append(index)

    survivors: list[KeyInfoItem] = []
    for item in markdown_items:
        matches = index_by_key.get(item.key)
        if not matches:
            survivors.append(item)
            continue
        for index in matches:
            if index in rendered_only and preferred[index].block_id == item.block_id:
                rendered_only.discard(index)
                preferred[index] = replace(preferred[index], offset=item.offset)
                break
        if item.list_item:
            for index in matches:
                confirmed = preferred[index]
                if not confirmed.list_item:
                    preferred[index] = replace(
                        confirmed,
                        list_item=True,
                        list_prefix=item.list_prefix,
                    )
    return sort_key_info_items([*preferred, *survivors])
