"""Document refresh pipeline.

``get_doc_key_info`` pulls every input for one document from a
``KeyInfoSources`` implementation, runs the collectors and extractors, fuses
the inline results and returns the final ordered list.

Bundle format accepted by ``StaticKeyInfoSources``::

    {"documents": [
        {"id": "20240101-abc", "title": "Doc",
         "blocks": [{"id": ..., "parent_id": ..., "sort": ..., "type": ...,
                     "subtype": ..., "content": ..., "markdown": ...,
                     "memo": ..., "tag": ...}],
         "markdown": "raw markdown used when blocks are empty",
         "kramdown": {"block-id": "block kramdown, preferred over its markdown"},
         "spans": [{"id": ..., "type": "textmark strong", "content": ...,
                    "markdown": ..., "block_id": ..., "root_id": ...,
                    "ial": ..., "start_offset": ...}],
         "html": "<div data-node-id=...>...</div>",
         "document_order": {"block-id": 0}}
    ]}

A single document object (without the ``documents`` wrapper) is accepted too.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from keyinfo.collectors import collect_heading_items, collect_markdown_and_meta_items
from keyinfo.config import KeyInfoConfig, create_logger
from keyinfo.dom import dom_block_sort_map, extract_dom_items
from keyinfo.io_utils import load_json
from keyinfo.merge import merge_preferred_inline_items, rank_items
from keyinfo.normalization import normalize_sort, normalize_title
from keyinfo.order import (
    BlockRow,
    ListContextResolver,
    OrderSource,
    build_structural_block_order_map,
    resolve_block_order_map,
    rows_from_dicts,
)
from keyinfo.spans import SpanRow, map_span_rows_to_items
from keyinfo.types import KeyInfoItem


class KeyInfoSources(Protocol):
    """Read access to one document store."""

    def doc_title(self, doc_id: str) -> str: ...

    def block_rows(self, doc_id: str) -> list[BlockRow]: ...

    def raw_markdown(self, doc_id: str) -> str: ...

    def block_kramdown(self, doc_id: str) -> Mapping[str, str]: ...

    def span_rows(self, doc_id: str) -> list[SpanRow]: ...

    def rendered_html(self, doc_id: str) -> str | None: ...

    def document_order(self, doc_id: str) -> Mapping[str, int]: ...


@dataclass(slots=True)
class StaticDocument:
    id: str
    title: str = ""
    blocks: list[BlockRow] = field(default_factory=list)
    markdown: str = ""
    kramdown: dict[str, str] = field(default_factory=dict)
    spans: list[SpanRow] = field(default_factory=list)
    html: str | None = None
    document_order: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> StaticDocument:
        if not payload.get("id"):
            raise ValueError("document entry requires an 'id'")
        order = payload.get("document_order") or {}
        if not isinstance(order, Mapping):
            raise ValueError(f"document {payload['id']!r}: document_order must be an object")
        kramdown = payload.get("kramdown") or {}
        if not isinstance(kramdown, Mapping):
            raise ValueError(f"document {payload['id']!r}: kramdown must be an object")
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title") or ""),
            blocks=rows_from_dicts(payload.get("blocks") or []),
            markdown=str(payload.get("markdown") or ""),
            kramdown={str(k): str(v) for k, v in kramdown.items() if v},
            spans=[SpanRow.from_dict(row) for row in payload.get("spans") or []],
            html=payload.get("html"),
            document_order={str(k): normalize_sort(v, 0) for k, v in order.items()},
        )


class StaticKeyInfoSources:
    """In-memory sources backed by a document bundle."""

    def __init__(self, documents: Sequence[StaticDocument] = ()) -> None:
        self._documents = {doc.id: doc for doc in documents}

    @classmethod
    def from_bundle(cls, payload: Mapping[str, Any]) -> StaticKeyInfoSources:
        if not isinstance(payload, Mapping):
            raise ValueError("bundle must be a JSON object")
        entries = payload.get("documents")
        if entries is None:
            entries = [payload]
        if not isinstance(entries, list):
            raise ValueError("'documents' must be a list")
        return cls([StaticDocument.from_dict(entry) for entry in entries])

    @classmethod
    def from_file(cls, path: Path) -> StaticKeyInfoSources:
        return cls.from_bundle(load_json(path))

    @property
    def doc_ids(self) -> list[str]:
        return list(self._documents)

    def _doc(self, doc_id: str) -> StaticDocument:
        try:
            return self._documents[doc_id]
        except KeyError:
            raise KeyError(f"unknown document {doc_id!r}") from None

    def doc_title(self, doc_id: str) -> str:
        return self._doc(doc_id).title

    def block_rows(self, doc_id: str) -> list[BlockRow]:
        return list(self._doc(doc_id).blocks)

    def raw_markdown(self, doc_id: str) -> str:
        return self._doc(doc_id).markdown

    def block_kramdown(self, doc_id: str) -> Mapping[str, str]:
        return dict(self._doc(doc_id).kramdown)

    def span_rows(self, doc_id: str) -> list[SpanRow]:
        return list(self._doc(doc_id).spans)

    def rendered_html(self, doc_id: str) -> str | None:
        return self._doc(doc_id).html

    def document_order(self, doc_id: str) -> Mapping[str, int]:
        return dict(self._doc(doc_id).document_order)


@dataclass(frozen=True, slots=True)
class KeyInfoDocResult:
    doc_id: str
    doc_title: str
    items: list[KeyInfoItem]
    order_source: OrderSource = "fallback"


def _final_sort(items: Sequence[KeyInfoItem]) -> list[KeyInfoItem]:
    return rank_items(sorted(items, key=lambda item: (item.block_sort, item.offset, item.order)))


def get_doc_key_info(
    doc_id: str,
    sources: KeyInfoSources,
    config: KeyInfoConfig | None = None,
) -> KeyInfoDocResult:
    """Extract, fuse and order the key info of one document."""
    config = config or KeyInfoConfig()
    log = create_logger("KeyInfo", config)

    doc_title = sources.doc_title(doc_id)
    rows = sources.block_rows(doc_id)
    if not rows:
        fallback_markdown = sources.raw_markdown(doc_id)
        if fallback_markdown:
            log.debug("doc %s has no block rows, lexing raw markdown", doc_id)
            rows = [BlockRow(id=doc_id, sort=0, markdown=fallback_markdown)]

    has_child_blocks = any(row.id != doc_id for row in rows)
    resolution = resolve_block_order_map(
        rows,
        sources.document_order(doc_id),
        build_structural_block_order_map(rows, doc_id),
        min_hit_ratio=config.doc_order_min_hit_ratio,
    )
    log.debug(
        "doc %s block order: %s (%d/%d hits)",
        doc_id, resolution.source, resolution.hit_count, len(rows),
    )

    block_sort_map: dict[str, int] = {
        row.id: resolution.order_map.get(row.id, index) for index, row in enumerate(rows)
    }
    html = sources.rendered_html(doc_id)
    for block_id, rank in dom_block_sort_map(html).items():
        block_sort_map.setdefault(block_id, rank)
    block_sort_map.setdefault(doc_id, -1)

    list_context = ListContextResolver.from_rows(rows)
    resolve_list_line = list_context.resolve_list_line

    headings = collect_heading_items(rows, block_sort_map, resolve_list_line, 0)
    collected = collect_markdown_and_meta_items(
        rows,
        root_id=doc_id,
        has_child_blocks=has_child_blocks,
        block_sort_map=block_sort_map,
        is_list_item_with_mapped_child=list_context.has_mapped_list_line_child,
        resolve_list_line=resolve_list_line,
        block_markdown=sources.block_kramdown(doc_id),
        start_order=headings.next_order,
    )

    heading_ids = headings.heading_block_ids
    span_items = [
        item
        for item in map_span_rows_to_items(sources.span_rows(doc_id), block_sort_map, resolve_list_line)
        if item.block_id not in heading_ids
    ]
    dom_items = [
        item
        for item in extract_dom_items(
            html, block_sort_map, root_id=doc_id, resolve_list_line=resolve_list_line,
        )
        if item.block_id not in heading_ids
    ]
    inline_items = merge_preferred_inline_items(collected.markdown_inline_items, span_items, dom_items)
    log.debug(
        "doc %s inline: %d markdown, %d span, %d dom -> %d fused",
        doc_id, len(collected.markdown_inline_items), len(span_items), len(dom_items), len(inline_items),
    )

    items = [*headings.items, *collected.items, *inline_items]

    if doc_title:
        normalized_title = normalize_title(doc_title)
        if not any(item.type == "title" and normalize_title(item.text) == normalized_title for item in items):
            items.append(KeyInfoItem(
                id=f"doc-title-{collected.next_order}",
                type="title",
                text=doc_title,
                raw=f"# {doc_title}",
                offset=-1,
                block_id=doc_id,
                block_sort=-1,
                order=collected.next_order,
            ))

    return KeyInfoDocResult(
        doc_id=doc_id,
        doc_title=doc_title,
        items=_final_sort(items),
        order_source=resolution.source,
    )

