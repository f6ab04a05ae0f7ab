"""Runtime configuration and logging setup.

Configuration is an immutable ``KeyInfoConfig`` built from defaults, the
process environment (``KEYINFO_DEBUG``, ``KEYINFO_SCROLL_LOCK_MS``) or a JSON
file. The debug flag is passed explicitly to :func:`create_logger`; there is
no module-level switch.
"""
from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from keyinfo.io_utils import load_json

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"
LOGGER_NAME = "keyinfo"

_TRUE_FLAGS = frozenset({"1", "true", "on", "yes", "y"})
_FALSE_FLAGS = frozenset({"0", "false", "off", "no", "n"})


def parse_boolean_flag(value: object) -> bool | None:
    """Interpret a flag value; None when absent or unrecognized."""
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_FLAGS:
        return True
    if normalized in _FALSE_FLAGS:
        return False
    return None


@dataclass(frozen=True, slots=True)
class KeyInfoConfig:
    debug: bool = False
    scroll_lock_duration_ms: int = 120
    doc_order_min_hit_ratio: float = 0.85
    empty_text: str = "暂无关键内容"
    loading_text: str = "加载中..."
    failure_text: str = "加载失败"
    missing_doc_text: str = "未找到当前文档"

    def __post_init__(self) -> None:
        if self.scroll_lock_duration_ms < 0:
            raise ValueError(
                f"scroll_lock_duration_ms must be >= 0, got {self.scroll_lock_duration_ms}"
            )
        if not 0.0 <= self.doc_order_min_hit_ratio <= 1.0:
            raise ValueError(
                f"doc_order_min_hit_ratio must be in [0, 1], got {self.doc_order_min_hit_ratio}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> KeyInfoConfig:
        env = os.environ if environ is None else environ
        config = cls()
        debug = parse_boolean_flag(env.get("KEYINFO_DEBUG"))
        if debug is not None:
            config = replace(config, debug=debug)
        duration = (env.get("KEYINFO_SCROLL_LOCK_MS") or "").strip()
        if duration:
            try:
                config = replace(config, scroll_lock_duration_ms=int(duration))
            except ValueError as exc:
                raise ValueError(f"KEYINFO_SCROLL_LOCK_MS must be an integer, got {duration!r}") from exc
        return config


def load_config(path: Path, base: KeyInfoConfig | None = None) -> KeyInfoConfig:
    """Load overrides from a JSON object file on top of *base*."""
    payload = load_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: config must be a JSON object")
    known = {f.name for f in fields(KeyInfoConfig)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"{path}: unknown config keys: {', '.join(unknown)}")
    return replace(base or KeyInfoConfig(), **payload)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class ScopedLogger(logging.LoggerAdapter[logging.Logger]):
    """Prefix messages with ``[KeyInfo][scope]``; DEBUG only when enabled."""

    def __init__(self, logger: logging.Logger, scope: str, debug: bool) -> None:
        super().__init__(logger, {"scope": scope})
        self.scope = scope
        self.debug_enabled = debug

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[KeyInfo][{self.scope}] {msg}", kwargs

    def isEnabledFor(self, level: int) -> bool:
        if level < logging.INFO and not self.debug_enabled:
            return False
        return self.logger.isEnabledFor(level)


def create_logger(scope: str, config: KeyInfoConfig | None = None) -> ScopedLogger:
    debug = config.debug if config is not None else False
    return ScopedLogger(logging.getLogger(LOGGER_NAME), scope, debug)


_installed_handlers: list[logging.Handler] = []


def configure_logging(*, verbose: bool = False, config: KeyInfoConfig | None = None) -> None:
    """Configure root logging for scripts: stderr, DEBUG when verbose or debug."""
    debug = verbose or (config is not None and config.debug)
    root = logging.getLogger()
    before = list(root.handlers)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )
    _installed_handlers.extend(h for h in root.handlers if h not in before)


def reset_logging() -> None:
    """Remove the handlers installed by :func:`configure_logging`."""
    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()
