from __future__ import annotations

import os
from urllib.parse import urlsplit


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def is_http_url(value) -> bool:
    if not isinstance(value, str):
        return False
    s = value.strip()
    if not s:
        return False
    try:
        parts = urlsplit(s)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def format_mm_ss(seconds: float) -> tuple[int, int]:
    s = max(0, int(seconds))
    return s // 60, s % 60
