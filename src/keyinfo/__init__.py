"""Key-info extraction: markdown lexer, span/DOM extractors and fusion."""

from keyinfo.config import KeyInfoConfig, create_logger, load_config
from keyinfo.controller import (
    KeyInfoController,
    KeyInfoListState,
    export_file_name,
    resolve_key_info_items,
)
from keyinfo.dom import dom_block_sort_map, extract_dom_items
from keyinfo.lexer import iter_markdown_items, lex_markdown
from keyinfo.merge import merge_preferred_inline_items, sort_key_info_items
from keyinfo.order import BlockRow, ListContextResolver
from keyinfo.scroll import (
    ListScrollState,
    Locked,
    PostRenderAction,
    ScrollLock,
    ScrollLockMachine,
    Unlocked,
    active_scroll_lock,
    create_scroll_lock,
    release_on_user_scroll,
)
from keyinfo.service import (
    KeyInfoDocResult,
    KeyInfoSources,
    StaticKeyInfoSources,
    get_doc_key_info,
)
from keyinfo.spans import SpanRow, map_span_rows_to_items
from keyinfo.types import (
    KeyInfoFilter,
    KeyInfoItem,
    KeyInfoType,
    build_key_info_markdown,
    filter_key_info_items,
    key_info_type_label,
)

__all__ = [
    "BlockRow",
    "KeyInfoConfig",
    "KeyInfoController",
    "KeyInfoDocResult",
    "KeyInfoFilter",
    "KeyInfoItem",
    "KeyInfoListState",
    "KeyInfoSources",
    "KeyInfoType",
    "ListContextResolver",
    "ListScrollState",
    "Locked",
    "PostRenderAction",
    "ScrollLock",
    "ScrollLockMachine",
    "SpanRow",
    "StaticKeyInfoSources",
    "Unlocked",
    "active_scroll_lock",
    "build_key_info_markdown",
    "create_logger",
    "create_scroll_lock",
    "dom_block_sort_map",
    "export_file_name",
    "extract_dom_items",
    "filter_key_info_items",
    "get_doc_key_info",
    "iter_markdown_items",
    "key_info_type_label",
    "lex_markdown",
    "load_config",
    "map_span_rows_to_items",
    "merge_preferred_inline_items",
    "release_on_user_scroll",
    "resolve_key_info_items",
    "sort_key_info_items",
]
