"""Deterministic text normalization shared by all extraction sources.

Fusion compares ``(type, text)`` across sources, so every extractor must
reduce its text with the same functions:
1. Remove zero-width characters, treat NBSP as a space.
2. Collapse whitespace runs and trim.
3. Strip inline markup (markdown emphasis, ``<mark>``, links) where the
   source text may still carry it.
"""

from __future__ import annotations

import math
import re

from keyinfo.html_utils import normalize_nbsp, strip_zero_width
from keyinfo.types import KeyInfoType


_WHITESPACE_RE = re.compile(r"\s+")
_TAG_TRAILING_PUNCT_RE = re.compile(r"[)\].,;:!?，。！？、]+$")
_LIST_PREFIX_RE = re.compile(r"^\s*((?:[-+*])|(?:\d+\.))\s+")
_LIST_DECORATED_TEXT_RE = re.compile(r"^\s*(?:[-+]\s*|\*\s+|\d+\.\s*)")
_TYPE_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")
_MEMO_FULLWIDTH_RE = re.compile(r"^(.+?)（(.+?)）$")
_MEMO_ASCII_RE = re.compile(r"^(.+?)\((.+?)\)$")
_MEMO_HINT_RE = re.compile(
    r"(?:inline-memo|memo|data-inline-memo-content|data-memo-content|data-memo)=[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)

# Applied in order; later patterns see the output of earlier ones.
_INLINE_MARKUP_SUBS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\r?\n"), " "),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.+?)\1"), r"\2"),
    (re.compile(r"==(.+?)=="), r"\1"),
    (re.compile(r"%%(.+?)%%"), r"\1"),
    (re.compile(r"<(mark|strong|b|em|i)\b[^>]*>(.+?)</\1>", re.IGNORECASE), r"\2"),
    (re.compile(r"\[\[([^\]]+)\]\]"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
)


def clean_inline_text(text: str) -> str:
    """Collapse whitespace, drop zero-width characters, trim."""
    value = strip_zero_width(normalize_nbsp(text or ""))
    return _WHITESPACE_RE.sub(" ", value).strip()


def normalize_inline_text(text: str) -> str:
    """Strip inline markup and normalize whitespace."""
    value = text or ""
    for pattern, replacement in _INLINE_MARKUP_SUBS:
        value = pattern.sub(replacement, value)
    return clean_inline_text(value)


def has_meaningful_text(text: str) -> bool:
    """True when *text* holds at least one letter or digit.

    Filters hits such as ``<strong>*</strong>`` or ``== = ==`` whose content is
    markup debris.
    """
    return any(ch.isalnum() for ch in text)


def normalize_tag_text(value: str) -> str:
    text = value.strip().lstrip("#")
    text = _TAG_TRAILING_PUNCT_RE.sub("", text)
    return text.strip()


def normalize_title(value: str) -> str:
    """Comparison key for titles: whitespace removed, lowercased."""
    return _WHITESPACE_RE.sub("", value or "").lower()


def split_tags(raw: str) -> list[str]:
    """Split a block tag attribute (``#a,#b c``) into bare tag names."""
    if not raw:
        return []
    parts = re.split(r"[,，\s]+", raw)
    return [part.strip().lstrip("#") for part in parts if part.strip().lstrip("#")]


def normalize_sort(value: object, fallback: int) -> int:
    """Coerce a sort/offset value from a loosely typed row into an int."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else fallback
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return int(parsed) if math.isfinite(parsed) else fallback
    return fallback


# ---------------------------------------------------------------------------
# List markers
# ---------------------------------------------------------------------------


def extract_list_prefix(text: str) -> str | None:
    """Literal list marker of *text* with one trailing space, e.g. ``"3. "``."""
    match = _LIST_PREFIX_RE.match(text or "")
    if not match:
        return None
    return f"{match.group(1)} "


def normalize_list_decorated_text(text: str) -> str:
    """Drop a leading list marker that leaked into extracted text."""
    return clean_inline_text(_LIST_DECORATED_TEXT_RE.sub("", text or "", count=1))


# ---------------------------------------------------------------------------
# Format tags, remarks, raw reconstruction
# ---------------------------------------------------------------------------


def tokenize_type(value: str) -> list[str]:
    return [token for token in _TYPE_TOKEN_SPLIT_RE.split((value or "").lower()) if token]


def extract_inline_memo_hint(ial: str | None) -> str:
    if not ial:
        return ""
    match = _MEMO_HINT_RE.search(ial)
    return match.group(1) if match else ""


def parse_inline_memo(text: str, memo_hint: str = "") -> tuple[str, str]:
    """Split remark text into ``(marked, memo)``.

    An explicit hint wins; otherwise a trailing parenthesized part
    (full-width first) is taken as the memo.
    """
    cleaned = clean_inline_text(text)
    memo = (memo_hint or "").strip()
    if memo:
        return cleaned, memo
    for pattern in (_MEMO_FULLWIDTH_RE, _MEMO_ASCII_RE):
        match = pattern.match(cleaned)
        if match:
            return match.group(1).strip(), match.group(2).strip()
    return cleaned, ""


def format_remark_text(marked: str, memo: str = "") -> str:
    normalized_marked = clean_inline_text(marked)
    normalized_memo = clean_inline_text(memo)
    if not normalized_memo:
        return normalized_marked
    if not normalized_marked:
        return normalized_memo
    return f"{normalized_marked}（{normalized_memo}）"


def build_inline_raw(key_type: KeyInfoType, text: str) -> str:
    """Markdown spelling of an item that was found without source markup."""
    match key_type:
        case "bold":
            return f"**{text}**"
        case "italic":
            return f"*{text}*"
        case "highlight":
            return f"=={text}=="
        case "remark":
            return f"%%{text}%%"
        case "tag":
            return f"#{text}"
        case "title":
            return f"# {text}"
    return text
