"""Rendered-HTML helpers and encoding-safe file reading.

The DOM extractor works on the editor's rendered tree. Rendered text carries
invisible characters (zero-width spaces inserted around inline marks by the
editor, non-breaking spaces from pasted content) that must count as ordinary
whitespace before text is compared across sources.
"""
from __future__ import annotations

import re
from pathlib import Path

from bs4 import BeautifulSoup
from bs4.element import Tag

# ---------------------------------------------------------------------------
# Invisible characters
# ---------------------------------------------------------------------------

# U+200B (ZWSP), U+200C (ZWNJ), U+200D (ZWJ), U+FEFF (BOM)
_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")
# NBSP, narrow NBSP, figure space
_NBSP_RE = re.compile("[\u00a0\u202f\u2007]")


def strip_zero_width(text: str) -> str:
    """Remove zero-width Unicode characters that break text comparison."""
    return _ZERO_WIDTH_RE.sub("", text)


def normalize_nbsp(text: str) -> str:
    """Turn non-breaking space variants into plain spaces."""
    return _NBSP_RE.sub(" ", text)


# ---------------------------------------------------------------------------
# Rendered tree access
# ---------------------------------------------------------------------------


def load_soup(html: str | BeautifulSoup | Tag | None) -> Tag | None:
    """Parse rendered HTML, passing already-parsed trees through.

    Returns None for empty input so callers can short-circuit.
    """
    if html is None:
        return None
    if isinstance(html, Tag):
        return html
    if not html.strip():
        return None
    return BeautifulSoup(html, "html.parser")


def element_text(element: Tag) -> str:
    """Rendered text content of *element*, invisible characters normalized."""
    text = element.get_text()
    text = strip_zero_width(normalize_nbsp(text))
    return re.sub(r"\s+", " ", text).strip()


def attr_text(element: Tag, name: str) -> str:
    """Attribute value as a lowercase string ('' when absent)."""
    value = element.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        value = " ".join(value)
    return str(value).lower()


# ---------------------------------------------------------------------------
# Encoding-safe file reading
# ---------------------------------------------------------------------------


def read_file(fpath: Path, *, min_size: int = 0) -> str:
    """Read a text file with encoding fallback: UTF-8 -> CP1252 -> replace.

    Args:
        fpath: Path to the file.
        min_size: Minimum file size in bytes. Returns empty string if smaller.

    Returns:
        File contents as a string. Empty string on failure or below min_size.
    """
    try:
        if min_size > 0 and fpath.stat().st_size < min_size:
            return ""
        try:
            return fpath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            try:
                return fpath.read_text(encoding="cp1252")
            except UnicodeDecodeError:
                with open(fpath, errors="replace") as f:
                    return f.read()
    except OSError:
        return ""
