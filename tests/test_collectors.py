"""Tests for keyinfo.collectors: heading, markdown and block-attribute items."""
from keyinfo.collectors import MEMO_OFFSET, collect_heading_items, collect_markdown_and_meta_items
from keyinfo.order import BlockRow, ListContextResolver
from keyinfo.types import NOT_A_LIST_LINE, ListLine


def _no_list(block_id: str) -> ListLine:
    return NOT_A_LIST_LINE


class TestCollectHeadingItems:
    def test_heading_rows_become_titles(self) -> None:
        rows = [
            BlockRow(id="h1", type="h", subtype="h2", content=" Intro "),
            BlockRow(id="p1", type="p", content="para"),
            BlockRow(id="h2", type="h", subtype="h1", content=""),
        ]
        result = collect_heading_items(rows, {"h1": 4}, _no_list, start_order=3)
        assert [item.label() for item in result.items] == ["title:Intro"]
        title = result.items[0]
        assert (title.raw, title.offset, title.block_sort, title.order) == ("## Intro", 0, 4, 3)
        assert result.heading_block_ids == frozenset({"h1", "h2"})
        assert result.next_order == 4

    def test_missing_subtype_defaults_to_level_one(self) -> None:
        result = collect_heading_items([BlockRow(id="h", type="h", content="T")], {}, _no_list)
        assert result.items[0].raw == "# T"
        assert result.items[0].block_sort == 0


class TestCollectMarkdownAndMetaItems:
    def test_inline_memo_and_tags(self) -> None:
        rows = [
            BlockRow(id="d1", type="d", markdown="**dup** from root"),
            BlockRow(id="p1", parent_id="d1", type="p", markdown="some **bold** text",
                     memo=" note ", tag="#a,#b"),
        ]
        result = collect_markdown_and_meta_items(
            rows,
            root_id="d1",
            has_child_blocks=True,
            block_sort_map={"p1": 2},
            is_list_item_with_mapped_child=lambda block_id: False,
            resolve_list_line=_no_list,
        )
        assert [item.label() for item in result.markdown_inline_items] == ["bold:bold"]
        bold = result.markdown_inline_items[0]
        assert (bold.id, bold.offset, bold.block_sort, bold.order) == ("p1-inline-0", 5, 2, 0)
        assert [item.label() for item in result.items] == ["remark:note", "tag:a", "tag:b"]
        memo, tag_a, tag_b = result.items
        assert (memo.raw, memo.offset) == ("%%note%%", MEMO_OFFSET)
        assert (tag_a.raw, tag_a.offset, tag_b.offset) == ("#a", MEMO_OFFSET + 2, MEMO_OFFSET + 3)
        assert result.next_order == 4

    def test_root_row_lexed_without_children(self) -> None:
        rows = [BlockRow(id="d1", type="d", markdown="# Doc\n==x==")]
        result = collect_markdown_and_meta_items(
            rows,
            root_id="d1",
            has_child_blocks=False,
            block_sort_map={},
            is_list_item_with_mapped_child=lambda block_id: False,
            resolve_list_line=_no_list,
        )
        assert [item.label() for item in result.items] == ["title:Doc"]
        assert [item.label() for item in result.markdown_inline_items] == ["highlight:x"]
        assert result.items[0].block_sort == 0

    def test_heading_row_markdown_titles_skipped(self) -> None:
        rows = [BlockRow(id="h1", type="h", markdown="## Head")]
        result = collect_markdown_and_meta_items(
            rows,
            root_id="d1",
            has_child_blocks=True,
            block_sort_map={"h1": 0},
            is_list_item_with_mapped_child=lambda block_id: False,
            resolve_list_line=_no_list,
        )
        assert result.items == []
        assert result.markdown_inline_items == []

    def test_list_blocks(self) -> None:
        rows = [
            BlockRow(id="d1", type="d"),
            BlockRow(id="l1", parent_id="d1", type="l", markdown="- item **one**"),
            BlockRow(id="i1", parent_id="l1", type="i", content="item one", markdown="- item **one**"),
            BlockRow(id="p2", parent_id="i1", type="p", content="item one", markdown="item **one**"),
        ]
        context = ListContextResolver.from_rows(rows)
        result = collect_markdown_and_meta_items(
            rows,
            root_id="d1",
            has_child_blocks=True,
            block_sort_map={"l1": 0, "i1": 1, "p2": 2},
            is_list_item_with_mapped_child=context.has_mapped_list_line_child,
            resolve_list_line=context.resolve_list_line,
        )
        assert [(item.label(), item.block_id) for item in result.markdown_inline_items] == [
            ("bold:one", "p2"),
        ]
        item = result.markdown_inline_items[0]
        assert (item.list_item, item.list_prefix) == (True, "- ")

    def test_block_markdown_override(self) -> None:
        rows = [BlockRow(id="p1", type="p", markdown="plain")]
        result = collect_markdown_and_meta_items(
            rows,
            root_id="d1",
            has_child_blocks=True,
            block_sort_map={"p1": 0},
            is_list_item_with_mapped_child=lambda block_id: False,
            resolve_list_line=_no_list,
            block_markdown={"p1": "with ==mark== {: style=\"x\"}"},
        )
        assert [item.label() for item in result.markdown_inline_items] == ["highlight:mark"]
