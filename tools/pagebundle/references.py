from __future__ import annotations

import logging
import pathlib
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional
from urllib.parse import unquote

from .config import (
    ASSET_DIR_NAME,
    ENTRY_NAME,
    FENCE,
    HTML_SRC_OR_HREF,
    LINK_DEF,
    MD_IMG_REF,
    MD_LINK_IMG,
    PAGE_SUFFIXES,
    SCHEME_RE,
)
from .errors import UnreadableEntryError
from .utils import read_text

if TYPE_CHECKING:
    from .bundle import PageBundle

logger = logging.getLogger(__name__)

INLINE_CODE = re.compile(r'`[^`\n]+`')

MISSING_ASSET = "missing-asset"
ABSOLUTE_PATH = "absolute-path"
ESCAPES_BUNDLE = "escapes-bundle"
OUTSIDE_ASSET_DIR = "outside-asset-dir"
UNREADABLE_ENTRY = "unreadable-entry"


@dataclass(frozen=True)
class AssetReference:
    url: str
    kind: str
    line: int

    @property
    def path(self) -> str:
        """The url without query/fragment, percent-escapes decoded."""
        return unquote(re.split(r"[?#]", self.url, maxsplit=1)[0])

    @property
    def is_absolute(self) -> bool:
        return self.path.startswith("/")


@dataclass(frozen=True)
class IntegrityIssue:
    bundle: pathlib.Path
    reference: AssetReference
    code: str
    message: str

    def __str__(self) -> str:
        return (
            f"{self.bundle.name}:{self.reference.line}: "
            f"{self.code} {self.reference.path} ({self.message})"
        )


def is_local(url: str) -> bool:
    if not url:
        return False
    if SCHEME_RE.match(url) or url.startswith(("#", "//")):
        return False
    return True


def _points_into(path: str, asset_dir_name: str) -> bool:
    parts = [p for p in path.split("/") if p not in ("", ".")]
    return bool(parts) and parts[0] == asset_dir_name


def map_noncode(md: str, fn: Callable[[str], str]) -> str:
    parts, last = [], 0
    for m in FENCE.finditer(md):
        parts.append(fn(md[last : m.start()]))
        parts.append(md[m.start() : m.end()])
        last = m.end()
    parts.append(fn(md[last:]))
    return "".join(parts)


def _blank(m: re.Match) -> str:
    return re.sub(r"[^\n]", " ", m.group(0))


def _mask_code(md: str) -> str:
    """Blank out code spans and fences while keeping offsets intact."""
    md = FENCE.sub(_blank, md)
    return INLINE_CODE.sub(_blank, md)


def find_references(
    markdown: str, asset_dir_name: str = ASSET_DIR_NAME
) -> List[AssetReference]:
    masked = _mask_code(markdown)
    found = []

    def _line(pos: int) -> int:
        return masked.count("\n", 0, pos) + 1

    for m in MD_LINK_IMG.finditer(masked):
        url = m.group("url")
        if not is_local(url):
            continue
        if m.group(1) == "!":
            found.append(
                AssetReference(url, "markdown-image", _line(m.start()))
            )
            continue
        ref = AssetReference(url, "markdown-link", _line(m.start()))
        if _points_into(ref.path, asset_dir_name):
            found.append(ref)

    for m in HTML_SRC_OR_HREF.finditer(masked):
        url = m.group("url")
        if not is_local(url):
            continue
        if m.group("attr") == "src":
            found.append(AssetReference(url, "html-src", _line(m.start())))
            continue
        ref = AssetReference(url, "html-href", _line(m.start()))
        if _points_into(ref.path, asset_dir_name):
            found.append(ref)

    # [id]: url definitions, used by ![alt][id], ![id][] and ![id]
    image_labels = {
        _norm_label(m.group("label") or m.group("alt"))
        for m in MD_IMG_REF.finditer(masked)
    }
    for m in LINK_DEF.finditer(masked):
        url = m.group("url")
        if not is_local(url):
            continue
        ref = AssetReference(url, "link-definition", _line(m.start()))
        suffix = pathlib.PurePosixPath(ref.path).suffix.lower()
        if (
            _norm_label(m.group("label")) in image_labels
            or _points_into(ref.path, asset_dir_name)
            or suffix not in PAGE_SUFFIXES
        ):
            found.append(ref)

    found.sort(key=lambda r: r.line)
    return found


def _norm_label(label: str) -> str:
    return " ".join(label.split()).casefold()


def _classify(
    ref: AssetReference, bundle_dir: pathlib.Path, asset_dir: pathlib.Path
) -> Optional[tuple[str, str]]:
    if ref.is_absolute:
        return ABSOLUTE_PATH, "absolute paths break when the bundle moves"
    target = (bundle_dir / ref.path).resolve()
    if not target.is_relative_to(bundle_dir.resolve()):
        return ESCAPES_BUNDLE, "resolves outside the bundle directory"
    if not target.is_relative_to(asset_dir.resolve()):
        return OUTSIDE_ASSET_DIR, f"not under {asset_dir.name}/"
    if not target.is_file():
        return MISSING_ASSET, "no such file in the bundle"
    return None


def check_bundle(bundle: "PageBundle") -> List[IntegrityIssue]:
    text = read_text(bundle.entry_path)
    issues = []
    for ref in find_references(text, bundle.asset_dir.name):
        problem = _classify(ref, bundle.path, bundle.asset_dir)
        if problem:
            code, message = problem
            issues.append(IntegrityIssue(bundle.path, ref, code, message))
    logger.debug("%s: %d issue(s)", bundle.name, len(issues))
    return issues


def check_content_root(
    content_root: pathlib.Path,
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> List[IntegrityIssue]:
    from .bundle import discover

    bundles, _ = discover(content_root, entry_name, asset_dir_name)
    issues: List[IntegrityIssue] = []
    for bundle in bundles:
        try:
            issues.extend(check_bundle(bundle))
        except UnreadableEntryError as exc:
            ref = AssetReference(bundle.entry_path.name, "entry", 0)
            issues.append(
                IntegrityIssue(bundle.path, ref, UNREADABLE_ENTRY, str(exc))
            )
    return issues


def unreferenced_assets(bundle: "PageBundle") -> List[pathlib.Path]:
    if not bundle.asset_dir.is_dir():
        return []
    text = read_text(bundle.entry_path)
    used = {
        (bundle.path / ref.path).resolve()
        for ref in find_references(text, bundle.asset_dir.name)
        if not ref.is_absolute
    }
    return sorted(
        p
        for p in bundle.asset_dir.rglob("*")
        if p.is_file()
        and not p.name.startswith(".")
        and p.resolve() not in used
    )


def rewrite_local_urls(text: str, fn: Callable[[str], Optional[str]]) -> str:
    """
    Rewrite local markdown/HTML urls outside code fences. ``fn`` returns the
    replacement url, or None to keep the original.
    """

    def _repl(m):
        url = m.group("url")
        new = fn(url) if is_local(url) else None
        if new is None:
            return m.group(0)
        # splice at the url group; the url text may also occur in alt/attr
        start, end = m.span("url")
        whole = m.group(0)
        return whole[: start - m.start()] + new + whole[end - m.start() :]

    def _apply(chunk: str) -> str:
        chunk = MD_LINK_IMG.sub(_repl, chunk)
        chunk = HTML_SRC_OR_HREF.sub(_repl, chunk)
        return LINK_DEF.sub(_repl, chunk)

    return map_noncode(text, _apply)
