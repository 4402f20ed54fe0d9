from __future__ import annotations

import hashlib
import pathlib
from datetime import date, datetime

from .errors import UnreadableEntryError


def ensure_dir(p: pathlib.Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def read_text(path: pathlib.Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnreadableEntryError(f"{path}: not valid UTF-8 ({exc.reason})") from None


def content_hash(data: bytes, length: int = 8) -> str:
    return hashlib.sha256(data).hexdigest()[:length]


def _norm_text(s: str) -> str:
    return s.replace('\r\n', '\n').replace('\r', '\n').lstrip('\ufeff')


def _coerce_date_like(v):
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        s = v.strip().strip('"').strip("'")
        try:
            return date.fromisoformat(s[:10])
        except ValueError:
            return v
    return v


def mtime_date(path: pathlib.Path) -> date:
    return datetime.fromtimestamp(path.stat().st_mtime).date()
