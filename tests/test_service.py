"""Tests for keyinfo.service: the per-document refresh pipeline."""
from pathlib import Path
from typing import Any

import pytest

from keyinfo.config import KeyInfoConfig
from keyinfo.io_utils import save_json
from keyinfo.service import StaticKeyInfoSources, get_doc_key_info


def _document(**overrides: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": "doc1",
        "title": "My Doc",
        "blocks": [
            {"id": "doc1", "type": "d", "markdown": "everything", "sort": 0},
            {"id": "h1", "parent_id": "doc1", "type": "h", "subtype": "h1",
             "content": "Intro", "markdown": "# Intro", "sort": 1},
            {"id": "p1", "parent_id": "doc1", "type": "p", "content": "some bold and mark",
             "markdown": "some **bold** and ==mark==", "sort": 2, "memo": "block note"},
            {"id": "p2", "parent_id": "doc1", "type": "p", "markdown": "tail *it*",
             "sort": 3, "tag": "#t1"},
        ],
        "spans": [
            {"id": "s1", "type": "textmark strong", "content": "bold", "markdown": "**bold**",
             "block_id": "p1", "start_offset": 5},
            {"id": "s2", "type": "textmark strong", "content": "Intro", "block_id": "h1"},
        ],
    }
    document.update(overrides)
    return document


def _labels(items: list[Any]) -> list[str]:
    return [item.label() for item in items]


class TestGetDocKeyInfo:
    def test_full_pipeline(self) -> None:
        sources = StaticKeyInfoSources.from_bundle(_document())
        result = get_doc_key_info("doc1", sources)
        assert result.doc_id == "doc1"
        assert result.doc_title == "My Doc"
        assert result.order_source == "structural"
        assert _labels(result.items) == [
            "title:My Doc",
            "title:Intro",
            "bold:bold",
            "highlight:mark",
            "remark:block note",
            "italic:it",
            "tag:t1",
        ]
        assert [item.order for item in result.items] == list(range(7))

    def test_span_confirmed_item_replaces_markdown(self) -> None:
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document()))
        bold = next(item for item in result.items if item.type == "bold")
        assert bold.id.startswith("span-")

    def test_heading_block_spans_discarded(self) -> None:
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document()))
        assert [item.block_id for item in result.items if item.text == "Intro"] == ["h1"]
        assert all(item.type == "title" for item in result.items if item.block_id == "h1")

    def test_synthetic_title_position(self) -> None:
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document()))
        title = result.items[0]
        assert (title.raw, title.block_sort, title.offset, title.block_id) == ("# My Doc", -1, -1, "doc1")

    def test_no_synthetic_title_when_heading_matches(self) -> None:
        document = _document(title="  intro ")
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(document))
        assert [item.text for item in result.items if item.type == "title"] == ["Intro"]

    def test_untitled_document(self) -> None:
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document(title="")))
        assert result.items[0].label() == "title:Intro"

    def test_document_order_preferred(self) -> None:
        document = _document(document_order={"doc1": 0, "p2": 1, "p1": 2, "h1": 3})
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(document))
        assert result.order_source == "document"
        assert _labels(result.items) == [
            "title:My Doc",
            "italic:it",
            "tag:t1",
            "bold:bold",
            "highlight:mark",
            "remark:block note",
            "title:Intro",
        ]

    def test_sparse_document_order_ignored(self) -> None:
        document = _document(document_order={"p2": 0})
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(document))
        assert result.order_source == "structural"

    def test_ratio_from_config(self) -> None:
        document = _document(document_order={"p2": 0})
        config = KeyInfoConfig(doc_order_min_hit_ratio=0.2)
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(document), config)
        assert result.order_source == "document"

    def test_raw_markdown_fallback(self) -> None:
        document = {"id": "doc2", "title": "My Doc", "markdown": "# My Doc\n**x**"}
        result = get_doc_key_info("doc2", StaticKeyInfoSources.from_bundle(document))
        assert _labels(result.items) == ["title:My Doc", "bold:x"]
        assert result.items[1].offset == 9

    def test_empty_document(self) -> None:
        result = get_doc_key_info("doc3", StaticKeyInfoSources.from_bundle({"id": "doc3"}))
        assert result.items == []
        assert result.order_source == "fallback"

    def test_dom_items_fused(self) -> None:
        html = (
            '<div data-node-id="p1"><strong>bold</strong> and <mark>mark</mark></div>'
            '<div data-node-id="extra"><em>dom only</em></div>'
        )
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document(html=html)))
        labels = _labels(result.items)
        assert labels.count("bold:bold") == 1
        assert labels.count("highlight:mark") == 1
        extra = next(item for item in result.items if item.text == "dom only")
        assert extra.block_id == "extra"

    def test_rendered_items_keep_source_order(self) -> None:
        document = {
            "id": "doc5",
            "blocks": [
                {"id": "doc5", "type": "d"},
                {"id": "p1", "parent_id": "doc5", "type": "p", "sort": 1, "markdown": "lead **A**"},
                {"id": "p2", "parent_id": "doc5", "type": "p", "sort": 2,
                 "markdown": "long lead text **B** then *C*"},
            ],
            "html": (
                '<div data-node-id="p1">lead <strong>A</strong></div>'
                '<div data-node-id="p2">long lead text B then <em>C</em></div>'
            ),
        }
        result = get_doc_key_info("doc5", StaticKeyInfoSources.from_bundle(document))
        assert _labels(result.items) == ["bold:A", "bold:B", "italic:C"]
        assert [item.id.split("-")[0] for item in result.items] == ["dom", "p2", "dom"]

    def test_block_kramdown_preferred_over_markdown(self) -> None:
        document = _document(kramdown={"p2": 'tail *it* ==hot== {: style="color: #f00"}'})
        result = get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(document))
        labels = _labels(result.items)
        assert labels[labels.index("italic:it") + 1] == "highlight:hot"
        assert "tag:f00" not in labels
        assert "highlight:hot" not in _labels(
            get_doc_key_info("doc1", StaticKeyInfoSources.from_bundle(_document())).items
        )

    def test_list_item_context(self) -> None:
        document = {
            "id": "doc4",
            "blocks": [
                {"id": "doc4", "type": "d"},
                {"id": "l1", "parent_id": "doc4", "type": "l", "sort": 1},
                {"id": "i1", "parent_id": "l1", "type": "i", "sort": 1,
                 "content": "step one", "markdown": "1. step **one**"},
                {"id": "p1", "parent_id": "i1", "type": "p", "sort": 1,
                 "content": "step one", "markdown": "step **one**"},
            ],
        }
        result = get_doc_key_info("doc4", StaticKeyInfoSources.from_bundle(document))
        assert _labels(result.items) == ["bold:one"]
        assert (result.items[0].list_item, result.items[0].list_prefix) == (True, "1. ")


class TestStaticKeyInfoSources:
    def test_multi_document_bundle(self, tmp_path: Path) -> None:
        path = tmp_path / "bundle.json"
        save_json({"documents": [_document(), {"id": "other", "title": "Other"}]}, path)
        sources = StaticKeyInfoSources.from_file(path)
        assert sources.doc_ids == ["doc1", "other"]
        assert sources.doc_title("other") == "Other"
        assert [row.id for row in sources.block_rows("doc1")] == ["doc1", "h1", "p1", "p2"]
        assert sources.rendered_html("doc1") is None
        assert sources.block_kramdown("doc1") == {}

    def test_unknown_document(self) -> None:
        sources = StaticKeyInfoSources.from_bundle(_document())
        with pytest.raises(KeyError, match="unknown document"):
            sources.doc_title("missing")

    def test_entry_without_id(self) -> None:
        with pytest.raises(ValueError, match="requires an 'id'"):
            StaticKeyInfoSources.from_bundle({"documents": [{"title": "x"}]})

    def test_bad_kramdown_field(self) -> None:
        with pytest.raises(ValueError, match="kramdown must be an object"):
            StaticKeyInfoSources.from_bundle(_document(kramdown=["x"]))

    def test_bad_documents_field(self) -> None:
        with pytest.raises(ValueError):
            StaticKeyInfoSources.from_bundle({"documents": "nope"})
