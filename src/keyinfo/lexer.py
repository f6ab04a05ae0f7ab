"""Markdown lexer for key-info spans.

Scans raw markdown and yields ``KeyInfoItem`` records for headings and inline
markup. Code is masked before scanning: fenced blocks and inline code spans
are overwritten with spaces, so offsets stay aligned with the source while no
marker inside code can match and no code text can leak into ``text``/``raw``.

Within one line the scan is left-to-right. At every position all candidate
patterns are tried and the longest match wins; scanning resumes after the
winning match, so a consumed span is never reused.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from keyinfo.normalization import (
    has_meaningful_text,
    normalize_inline_text,
    normalize_tag_text,
)
from keyinfo.types import KeyInfoItem, KeyInfoType


_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")
_HEADING_RE = re.compile(r"^(\s*)(#{1,6})\s+(.*)$")
_HEADING_CLOSING_RE = re.compile(r"\s+#+\s*$")
_WHITESPACE_RE = re.compile(r"\s+")
# Kramdown inline attribute lists: {: id="..." style="..."}
_IAL_RE = re.compile(r"\{:[^{}\n]*\}")
# Characters that can open an inline marker.
_MARKER_START_RE = re.compile(r"[*_=%<#]")


@dataclass(frozen=True, slots=True)
class _Candidate:
    """One inline marker pattern."""

    key_type: KeyInfoType
    pattern: re.Pattern[str]
    clean: Callable[[str], str] = normalize_inline_text


@dataclass(frozen=True, slots=True)
class _Hit:
    key_type: KeyInfoType
    start: int
    end: int
    text: str


# Table order breaks ties between equally long matches.
_INLINE_CANDIDATES: tuple[_Candidate, ...] = (
    _Candidate("highlight", re.compile(r"==([^\n]+?)==")),
    _Candidate("highlight", re.compile(r"<mark\b[^>]*>(.+?)</mark>", re.IGNORECASE)),
    _Candidate("remark", re.compile(r"%%([^\n]+?)%%")),
    _Candidate("bold", re.compile(r"\*\*([^\n]+?)\*\*")),
    _Candidate("bold", re.compile(r"(?<!\w)__([^\n]+?)__(?!\w)")),
    _Candidate("bold", re.compile(r"<(?:strong|b)\b[^>]*>(.+?)</(?:strong|b)>", re.IGNORECASE)),
    _Candidate("italic", re.compile(r"\*(?!\s)([^*\n]+?)(?<!\s)\*")),
    _Candidate("italic", re.compile(r"(?<!\w)_([^_\n]+?)_(?!\w)")),
    _Candidate("italic", re.compile(r"<(?:em|i)\b[^>]*>(.+?)</(?:em|i)>", re.IGNORECASE)),
    _Candidate("tag", re.compile(r"(?<![A-Za-z0-9_&#])#([^\s#]+)"), normalize_tag_text),
)


# ---------------------------------------------------------------------------
# Code masking
# ---------------------------------------------------------------------------


def _blank(text: str) -> str:
    return " " * len(text)


def mask_code_blocks(markdown: str) -> str:
    """Blank every line inside (and including) fenced code blocks."""
    lines = markdown.split("\n")
    in_fence = False
    fence_char = ""
    fence_len = 0
    masked: list[str] = []
    for line in lines:
        match = _FENCE_RE.match(line)
        if match:
            fence = match.group(1)
            if not in_fence:
                in_fence = True
                fence_char = fence[0]
                fence_len = len(fence)
            elif fence[0] == fence_char and len(fence) >= fence_len:
                in_fence = False
            masked.append(_blank(line))
            continue
        masked.append(_blank(line) if in_fence else line)
    return "\n".join(masked)


def mask_inline_code(markdown: str) -> str:
    """Blank inline code spans delimited by equal-length backtick runs.

    A backtick run without a matching closer is left as literal text.
    """
    chars = list(markdown)
    size = len(chars)
    i = 0
    while i < size:
        if chars[i] != "`":
            i += 1
            continue
        tick_len = 1
        while i + tick_len < size and chars[i + tick_len] == "`":
            tick_len += 1
        j = i + tick_len
        found = -1
        while j < size:
            if chars[j] != "`":
                j += 1
                continue
            run = 1
            while j + run < size and chars[j + run] == "`":
                run += 1
            if run == tick_len:
                found = j
                break
            j += run
        if found == -1:
            i += tick_len
            continue
        for k in range(i, found + tick_len):
            if chars[k] != "\n":
                chars[k] = " "
        i = found + tick_len
    return "".join(chars)


def mask_attribute_lists(markdown: str) -> str:
    """Blank kramdown attribute lists; their values are not content."""
    return _IAL_RE.sub(lambda match: _blank(match.group(0)), markdown)


def mask_markdown(markdown: str) -> str:
    return mask_attribute_lists(mask_inline_code(mask_code_blocks(markdown)))


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def _match_at(line: str, pos: int) -> _Hit | None:
    """Longest valid candidate match starting exactly at *pos*."""
    best: _Hit | None = None
    for candidate in _INLINE_CANDIDATES:
        match = candidate.pattern.match(line, pos)
        if match is None:
            continue
        text = candidate.clean(match.group(1))
        if not text or not has_meaningful_text(text):
            continue
        end = match.end()
        if candidate.key_type == "tag":
            # Trailing punctuation stripped from the tag is not consumed.
            end = match.start(1) + match.group(1).find(text) + len(text)
        if best is None or end > best.end:
            best = _Hit(candidate.key_type, match.start(), end, text)
    return best


def scan_inline(line: str) -> Iterator[_Hit]:
    """Yield inline hits of one masked line, left to right."""
    pos = 0
    while True:
        start = _MARKER_START_RE.search(line, pos)
        if start is None:
            return
        hit = _match_at(line, start.start())
        if hit is None:
            pos = start.start() + 1
            continue
        yield hit
        pos = hit.end


def _heading_text(line: str) -> str | None:
    match = _HEADING_RE.match(line)
    if match is None:
        return None
    content = _HEADING_CLOSING_RE.sub("", match.group(3))
    text = normalize_inline_text(content)
    return text if has_meaningful_text(text) else ""


def _collapse(raw: str) -> str:
    return _WHITESPACE_RE.sub(" ", raw).strip()


def iter_markdown_items(
    markdown: str,
    *,
    block_id: str | None = None,
    block_sort: int | None = None,
) -> Iterator[KeyInfoItem]:
    """Lazily lex *markdown* into key-info items in appearance order.

    Without *block_id* every line is its own source unit: items get
    ``block_id="line-<n>"``, ``block_sort=n`` and a column offset. With
    *block_id* the whole text is one block: offsets are relative to the block
    text and every item gets *block_sort* (default 0).
    """
    if not markdown:
        return
    lines = mask_markdown(markdown.replace("\r\n", "\n").replace("\r", "\n")).split("\n")
    seq = 0
    line_start = 0
    for line_index, line in enumerate(lines):
        if block_id is None:
            unit_id = f"line-{line_index}"
            unit_sort = line_index
            base = 0
        else:
            unit_id = block_id
            unit_sort = block_sort if block_sort is not None else 0
            base = line_start
        line_start += len(line) + 1

        heading = _heading_text(line)
        if heading is not None:
            if heading:
                yield KeyInfoItem(
                    id=f"md-{unit_id}-{seq}",
                    type="title",
                    text=heading,
                    raw=_collapse(line),
                    offset=base + (len(line) - len(line.lstrip())),
                    block_id=unit_id,
                    block_sort=unit_sort,
                    order=seq,
                )
                seq += 1
            continue

        for hit in scan_inline(line):
            yield KeyInfoItem(
                id=f"md-{unit_id}-{seq}",
                type=hit.key_type,
                text=hit.text,
                raw=_collapse(line[hit.start:hit.end]),
                offset=base + hit.start,
                block_id=unit_id,
                block_sort=unit_sort,
                order=seq,
            )
            seq += 1


def lex_markdown(
    markdown: str,
    *,
    block_id: str | None = None,
    block_sort: int | None = None,
) -> list[KeyInfoItem]:
    """Eager form of :func:`iter_markdown_items`."""
    return list(iter_markdown_items(markdown, block_id=block_id, block_sort=block_sort))
