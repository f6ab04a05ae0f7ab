#!/usr/bin/env python3
"""Extract the key info (titles, emphasis, highlights, remarks, tags) of a document.

Reads either a JSON document bundle (block rows, span rows, rendered HTML and
block order for one or more documents) or a plain markdown file, and reports
the fused, ordered key-info list.

Usage:
    # Full pipeline over a document bundle
    python3 scripts/key_info_report.py --bundle data/doc_bundle.json

    # Pick one document of a multi-document bundle, bold items only
    python3 scripts/key_info_report.py --bundle data/doc_bundle.json \
      --doc-id 20240101120000-abcdefg --filter bold

    # Lexer only, one source unit per line, and write the export file
    python3 scripts/key_info_report.py --markdown notes.md --export-md out/notes-key-info.md

Structured JSON output goes to stdout; human messages go to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

from keyinfo.config import KeyInfoConfig, configure_logging, load_config
from keyinfo.html_utils import read_file
from keyinfo.io_utils import dump_json, save_text
from keyinfo.lexer import lex_markdown
from keyinfo.service import KeyInfoDocResult, StaticKeyInfoSources, get_doc_key_info
from keyinfo.types import KEY_INFO_TYPES, build_key_info_markdown, filter_key_info_items

log = logging.getLogger("key_info_report")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract and fuse the key info of a document."
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--bundle", type=Path, help="JSON document bundle (blocks, spans, html, order)"
    )
    source.add_argument(
        "--markdown", type=Path, help="Plain markdown file (lexer only)"
    )
    parser.add_argument(
        "--doc-id",
        default=None,
        help="Document to report from the bundle (default: first document).",
    )
    parser.add_argument(
        "--filter",
        dest="key_filter",
        choices=["all", *KEY_INFO_TYPES],
        default="all",
        help="Only report items of this type (default: all).",
    )
    parser.add_argument(
        "--export-md",
        type=Path,
        default=None,
        help="Also write the visible items as an export markdown file.",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="JSON config overrides"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _resolve_config(args: argparse.Namespace) -> KeyInfoConfig:
    config = KeyInfoConfig.from_env()
    if args.config is not None:
        if not args.config.exists():
            _fail(f"config not found: {args.config}")
        config = load_config(args.config, config)
    return config


def _bundle_result(args: argparse.Namespace, config: KeyInfoConfig) -> KeyInfoDocResult:
    if not args.bundle.exists():
        _fail(f"bundle not found: {args.bundle}")
    sources = StaticKeyInfoSources.from_file(args.bundle)
    if not sources.doc_ids:
        _fail(f"bundle has no documents: {args.bundle}")
    doc_id = args.doc_id or sources.doc_ids[0]
    if doc_id not in sources.doc_ids:
        _fail(f"document not found in bundle: {doc_id}")
    return get_doc_key_info(doc_id, sources, config)


def _markdown_result(args: argparse.Namespace) -> KeyInfoDocResult:
    if not args.markdown.is_file():
        _fail(f"markdown file not found: {args.markdown}")
    text = read_file(args.markdown)
    return KeyInfoDocResult(
        doc_id=args.markdown.stem,
        doc_title="",
        items=lex_markdown(text),
    )


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = _resolve_config(args)
    except ValueError as exc:
        _fail(str(exc))
    configure_logging(verbose=args.verbose, config=config)

    try:
        result = _bundle_result(args, config) if args.bundle else _markdown_result(args)
    except (ValueError, KeyError) as exc:
        _fail(f"invalid input: {exc}")

    items = filter_key_info_items(result.items, args.key_filter)
    log.info("%s: %d of %d items (%s)", result.doc_id, len(items), len(result.items), args.key_filter)

    if args.export_md is not None:
        save_text(build_key_info_markdown(items), args.export_md)
        print(f"Wrote {len(items)} items to {args.export_md}", file=sys.stderr)

    output: dict[str, Any] = {
        "doc_id": result.doc_id,
        "doc_title": result.doc_title,
        "order_source": result.order_source,
        "filter": args.key_filter,
        "count": len(items),
        "items": items,
    }
    dump_json(output)


if __name__ == "__main__":
    main()
