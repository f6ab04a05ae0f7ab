"""Block-order index and list-item context.

Two block orderings are available for a document:
  structural: depth-first walk of the parent/sort tree from the root
  document:   externally supplied rank per block (the editor's own file order)

The document order is trusted only when it covers enough of the block rows;
otherwise the structural walk is used.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from keyinfo.normalization import (
    clean_inline_text,
    extract_list_prefix,
    normalize_list_decorated_text,
    normalize_sort,
)
from keyinfo.types import NOT_A_LIST_LINE, SORT_LAST, ListLine


DOC_ORDER_MIN_HIT_RATIO = 0.85
DEFAULT_LIST_PREFIX = "- "

type OrderSource = Literal["document", "structural", "fallback"]


@dataclass(frozen=True, slots=True)
class BlockRow:
    """One structural block of a document."""

    id: str
    parent_id: str = ""
    sort: int | str = 0
    type: str = ""
    subtype: str = ""
    content: str = ""
    markdown: str = ""
    memo: str = ""
    tag: str = ""

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> BlockRow:
        return cls(
            id=str(row["id"]),
            parent_id=str(row.get("parent_id") or ""),
            sort=row.get("sort") if row.get("sort") is not None else 0,
            type=str(row.get("type") or ""),
            subtype=str(row.get("subtype") or ""),
            content=str(row.get("content") or ""),
            markdown=str(row.get("markdown") or ""),
            memo=str(row.get("memo") or ""),
            tag=str(row.get("tag") or ""),
        )


@dataclass(frozen=True, slots=True)
class OrderResolution:
    source: OrderSource
    order_map: Mapping[str, int]
    hit_count: int
    hit_ratio: float


def _children_by_parent(rows: Sequence[BlockRow]) -> dict[str, list[BlockRow]]:
    """Group rows by parent, siblings sorted by (sort, row index)."""
    index_by_id = {row.id: index for index, row in enumerate(rows)}
    children: dict[str, list[BlockRow]] = {}
    for row in rows:
        children.setdefault(row.parent_id, []).append(row)
    for siblings in children.values():
        siblings.sort(key=lambda row: (
            normalize_sort(row.sort, SORT_LAST),
            index_by_id.get(row.id, 0),
        ))
    return children


def build_structural_block_order_map(
    rows: Sequence[BlockRow],
    root_id: str,
) -> dict[str, int]:
    """Pre-order ranks from a depth-first walk starting below *root_id*.

    Rows unreachable from the root are ranked after the walk, by row index.
    Cycles in the parent links are cut at the first revisit.
    """
    children = _children_by_parent(rows)
    order_map: dict[str, int] = {}
    stack: list[BlockRow] = list(reversed(children.get(root_id, [])))
    while stack:
        row = stack.pop()
        if row.id in order_map:
            continue
        order_map[row.id] = len(order_map)
        stack.extend(reversed(children.get(row.id, [])))

    cursor = len(order_map)
    for index, row in enumerate(rows):
        if row.id not in order_map:
            order_map[row.id] = cursor + index
    return order_map


def resolve_block_order_map(
    rows: Sequence[BlockRow],
    document_order: Mapping[str, int],
    structural_order: Mapping[str, int],
    *,
    min_hit_ratio: float = DOC_ORDER_MIN_HIT_RATIO,
) -> OrderResolution:
    """Choose between the document order and the structural walk."""
    if not rows:
        return OrderResolution(source="fallback", order_map={}, hit_count=0, hit_ratio=0.0)
    hit_count = sum(1 for row in rows if row.id in document_order)
    hit_ratio = hit_count / len(rows)
    if document_order and hit_ratio >= min_hit_ratio:
        return OrderResolution("document", document_order, hit_count, hit_ratio)
    if structural_order:
        return OrderResolution("structural", structural_order, hit_count, hit_ratio)
    return OrderResolution("fallback", {}, hit_count, hit_ratio)


# ---------------------------------------------------------------------------
# List context
# ---------------------------------------------------------------------------


def _comparable_text(row: BlockRow) -> str:
    content = clean_inline_text(row.content)
    if content:
        return content
    return normalize_list_decorated_text(row.markdown)


@dataclass(slots=True)
class ListContextResolver:
    """Answers list-item questions about blocks of one document.

    A list item (``type == "i"``) owns its marker. Its first paragraph or
    heading child, when that child carries the list line's own text, is treated
    as the list line too and inherits the marker.
    """

    list_item_ids: set[str] = field(default_factory=set)
    list_prefix_by_id: dict[str, str] = field(default_factory=dict)
    items_with_mapped_child: set[str] = field(default_factory=set)

    @classmethod
    def from_rows(cls, rows: Sequence[BlockRow]) -> ListContextResolver:
        resolver = cls()
        children = _children_by_parent(rows)
        for row in rows:
            if row.type.lower() != "i":
                continue
            prefix = (
                extract_list_prefix(row.markdown.strip())
                or extract_list_prefix(row.content.strip())
                or DEFAULT_LIST_PREFIX
            )
            resolver.list_item_ids.add(row.id)
            resolver.list_prefix_by_id[row.id] = prefix

            item_text = _comparable_text(row)
            if not item_text:
                continue
            first_child = next(
                (
                    child for child in children.get(row.id, [])
                    if child.type.lower() in ("p", "h") and _comparable_text(child)
                ),
                None,
            )
            if first_child is None:
                continue
            child_text = _comparable_text(first_child)
            if not (item_text.startswith(child_text) or child_text.startswith(item_text)):
                continue
            resolver.list_item_ids.add(first_child.id)
            resolver.list_prefix_by_id[first_child.id] = prefix
            resolver.items_with_mapped_child.add(row.id)
        return resolver

    def is_list_item_block(self, block_id: str) -> bool:
        return bool(block_id) and block_id in self.list_item_ids

    def list_prefix(self, block_id: str) -> str | None:
        return self.list_prefix_by_id.get(block_id)

    def has_mapped_list_line_child(self, block_id: str) -> bool:
        return bool(block_id) and block_id in self.items_with_mapped_child

    def resolve_list_line(self, block_id: str) -> ListLine:
        if not self.is_list_item_block(block_id):
            return NOT_A_LIST_LINE
        return ListLine(True, self.list_prefix(block_id) or DEFAULT_LIST_PREFIX)


def rows_from_dicts(rows: Iterable[Mapping[str, Any]]) -> list[BlockRow]:
    return [BlockRow.from_dict(row) for row in rows]
