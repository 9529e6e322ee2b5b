from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .config import RoomsRuntimeConfig

_LEVEL_NAMES: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

# Loggers quieted unless [logging.levels] says otherwise.
_DEFAULT_LOGGER_LEVELS: dict[str, int] = {
    "urllib3": logging.WARNING,
}

_FALLBACK_FORMAT = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"


def _parse_level(value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if not text:
        return default
    if text in _LEVEL_NAMES:
        return _LEVEL_NAMES[text]
    try:
        return int(text)
    except ValueError:
        return default


def _clean_optional_path(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


def _resolve_log_file(cfg: RoomsRuntimeConfig, override_file: str | None) -> str | None:
    # An explicit empty override disables file logging.
    if override_file is not None:
        return _clean_optional_path(override_file)
    return _clean_optional_path(cfg.log_file)


def _file_handler(log_file: str) -> logging.Handler:
    p = Path(os.path.expanduser(log_file))
    p.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(p, encoding="utf-8")
    try:
        os.chmod(p, 0o600)
    except OSError:
        pass
    return handler


def logger_levels(pairs: Iterable[tuple[str, Any]]) -> dict[str, int]:
    """Per-logger levels: the library defaults overlaid with configured pairs."""
    levels = dict(_DEFAULT_LOGGER_LEVELS)
    for name, value in pairs:
        levels[str(name)] = _parse_level(value, logging.NOTSET)
    return levels


def configure_logging(
    cfg: RoomsRuntimeConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
) -> None:
    """Install handlers on the root logger and apply voicerooms log levels.

    Replaces any handlers already installed, so calling it again with a new
    config is fine.
    """
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())

    log_file = _resolve_log_file(cfg, override_file)
    if log_file:
        handlers.append(_file_handler(log_file))

    formatter = logging.Formatter(
        fmt=str(cfg.log_format).strip() or _FALLBACK_FORMAT,
        datefmt=_clean_optional_path(cfg.log_datefmt),
    )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    root.setLevel(_parse_level(override_level or cfg.log_level, logging.INFO))

    for name, level in logger_levels(cfg.log_levels).items():
        logging.getLogger(name).setLevel(level)

    logging.captureWarnings(True)
