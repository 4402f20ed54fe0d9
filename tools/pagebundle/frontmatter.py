"""
Frontmatter handling for entry documents.

Hugo accepts YAML (``---``) and TOML (``+++``) frontmatter. Both are read;
everything written by these tools is YAML, with dates as plain YYYY-MM-DD
scalars so the generator does not shift them across time zones.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import FrontmatterError
from .utils import _coerce_date_like, _norm_text

logger = logging.getLogger(__name__)

DATE_KEYS = ("date", "publishDate", "lastmod", "expiryDate")
KNOWN_KEYS = ("title", "date", "draft", "tags")


def normalize_frontmatter_dates(
    fm: Dict[str, Any],
    keys=DATE_KEYS,
) -> Dict[str, Any]:
    if not isinstance(fm, dict):
        return fm
    for k in keys:
        if k in fm:
            fm[k] = _coerce_date_like(fm[k])
    return fm


def render_frontmatter(data: Dict[str, Any]) -> str:
    def _fmt(v):
        if isinstance(v, datetime):
            return v.date()
        return v

    dumped = yaml.safe_dump(
        {k: _fmt(v) for k, v in data.items()},
        sort_keys=False,
        allow_unicode=True,
    ).rstrip()
    return f"---\n{dumped}\n---\n\n"


def _split(text: str, fence: str) -> Optional[Tuple[str, str]]:
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != fence:
        return None
    for i in range(1, len(lines)):
        if lines[i].strip() == fence:
            return "".join(lines[1:i]), "".join(lines[i + 1 :])
    return None


def parse_frontmatter(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    text = _norm_text(text)

    parts = _split(text, "---")
    if parts is not None:
        fm_text, body = parts
        try:
            fm = yaml.safe_load(fm_text) or {}
        except yaml.YAMLError as exc:
            raise FrontmatterError(f"invalid YAML frontmatter: {exc}") from exc
    else:
        parts = _split(text, "+++")
        if parts is None:
            return None, text
        fm_text, body = parts
        try:
            fm = tomllib.loads(fm_text)
        except tomllib.TOMLDecodeError as exc:
            raise FrontmatterError(f"invalid TOML frontmatter: {exc}") from exc

    if not isinstance(fm, dict):
        raise FrontmatterError("frontmatter must be a mapping")
    return fm, body.lstrip("\n")


def _coerce_tags(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(t) for t in value]
    raise FrontmatterError(f"tags must be a list, got {type(value).__name__}")


@dataclass
class EntryDocument:
    title: str
    date: Optional[date] = None
    draft: bool = False
    tags: List[str] = field(default_factory=list)
    body: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(
        cls, text: str, fallback_title: Optional[str] = None
    ) -> "EntryDocument":
        fm, body = parse_frontmatter(text)
        fm = normalize_frontmatter_dates(dict(fm or {}))

        title = fm.pop("title", None) or fallback_title or ""
        day = fm.pop("date", None)
        if day is not None and not isinstance(day, date):
            logger.debug("ignoring unparseable date %r", day)
            fm["date"] = day
            day = None

        return cls(
            title=str(title),
            date=day,
            draft=bool(fm.pop("draft", False)),
            tags=_coerce_tags(fm.pop("tags", None)),
            body=body,
            extra=fm,
        )

    def frontmatter(self) -> Dict[str, Any]:
        fm: Dict[str, Any] = {"title": self.title}
        day = self.date if self.date is not None else self.extra.get("date")
        if day is not None:
            fm["date"] = day
        fm["draft"] = self.draft
        fm["tags"] = list(self.tags)
        for k, v in self.extra.items():
            if k not in KNOWN_KEYS:
                fm[k] = v
        return fm

    def to_text(self) -> str:
        body = self.body
        if body and not body.endswith("\n"):
            body += "\n"
        return render_frontmatter(self.frontmatter()) + body
