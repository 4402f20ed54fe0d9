"""Directory naming for page bundles: ``<YYYY-MM-DD>-<slug>``."""

from __future__ import annotations

import unicodedata
from datetime import date
from typing import Optional, Tuple

from .config import BUNDLE_NAME_RE, SLUG_RE
from .errors import InvalidTitleError


def slugify(s: str) -> str:
    ascii_text = (
        unicodedata.normalize("NFKD", s)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    return SLUG_RE.sub("-", ascii_text.lower()).strip("-")


def bundle_name(title: str, on_date: date) -> str:
    slug = slugify(title)
    if not slug:
        raise InvalidTitleError(f"title {title!r} has nothing to build a slug from")
    return f"{on_date.isoformat()}-{slug}"


def parse_bundle_name(name: str) -> Optional[Tuple[date, str]]:
    m = BUNDLE_NAME_RE.match(name)
    if not m:
        return None
    try:
        day = date.fromisoformat(m.group("date"))
    except ValueError:
        return None
    return day, m.group("slug")
