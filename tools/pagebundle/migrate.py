"""
Migration of legacy flat posts into page bundles.

- content/posts/my-post.md -> content/posts/<date>-<slug>/index.md
- local images referenced by the post are copied into <bundle>/images/
  and the references rewritten to images/<name>
- notebooks (.ipynb) are rendered to markdown with nbconvert first
- the bundle is staged in a hidden sibling directory and renamed into
  place; the legacy file is deleted last
- without a date in frontmatter or filename, the first git commit of the
  file (else its mtime) dates the bundle
- the new entry records ``migratedFrom`` so a second run is a no-op
- a dry run reads the post and reports the target; nothing is written
"""

from __future__ import annotations

import logging
import pathlib
import shutil
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

from .bundle import PageBundle, discover, load_bundle
from .config import ASSET_DIR_NAME, ENTRY_NAME, LEGACY_SUFFIXES
from .errors import (
    BundleExistsError,
    FrontmatterError,
    NotABundleError,
    PageBundleError,
    UnreadableEntryError,
)
from .frontmatter import EntryDocument, parse_frontmatter
from .git import git_first_commit_date
from .naming import bundle_name, parse_bundle_name, slugify
from .notebooks import notebook_to_markdown
from .references import IntegrityIssue, check_bundle, rewrite_local_urls
from .utils import _coerce_date_like, content_hash, ensure_dir, mtime_date, read_text

logger = logging.getLogger(__name__)

MIGRATED_FROM_KEY = "migratedFrom"


@dataclass
class MigrationResult:
    source: pathlib.Path
    bundle: PageBundle
    changed: bool
    dry_run: bool = False
    copied_assets: List[pathlib.Path] = field(default_factory=list)
    issues: List[IntegrityIssue] = field(default_factory=list)


class _AssetCollector:
    """
    Copies referenced files into the staged asset dir, one name per source.
    With ``write=False`` names are assigned but nothing is written.
    """

    def __init__(
        self,
        base_dir: pathlib.Path,
        out_assets_dir: pathlib.Path,
        static_dir: Optional[pathlib.Path],
        write: bool = True,
    ):
        self.base_dir = base_dir
        self.write = write
        self.out_assets_dir = out_assets_dir
        self.static_dir = static_dir
        self.by_source: Dict[pathlib.Path, str] = {}
        self.taken: Dict[str, str] = {}
        self.copied: List[pathlib.Path] = []

    def _resolve(self, url: str) -> Optional[pathlib.Path]:
        path = unquote(url.split("#", 1)[0].split("?", 1)[0])
        if not path:
            return None
        if path.startswith("/"):
            if self.static_dir is None:
                return None
            cand = (self.static_dir / path.lstrip("/")).resolve()
        else:
            cand = (self.base_dir / path).resolve()
        if cand.suffix.lower() in LEGACY_SUFFIXES:
            # a link to another post, not an asset
            return None
        if cand.exists() and cand.is_file():
            return cand
        return None

    def _copy(self, src: pathlib.Path) -> str:
        if src in self.by_source:
            return self.by_source[src]
        data = src.read_bytes()
        h = content_hash(data)
        fname = src.name
        if self.taken.get(fname, h) != h:
            fname = f"{slugify(src.stem) or 'asset'}.{h}{src.suffix}"
        if self.write:
            ensure_dir(self.out_assets_dir)
            (self.out_assets_dir / fname).write_bytes(data)
        self.taken[fname] = h
        self.by_source[src] = fname
        self.copied.append(src)
        logger.debug("copied %s -> %s", src, fname)
        return fname

    def __call__(self, url: str) -> Optional[str]:
        src = self._resolve(url)
        if src is None:
            return None
        return f"{self.out_assets_dir.name}/{self._copy(src)}"

    def rewrite(self, text: str) -> str:
        return rewrite_local_urls(text, self)


def _title_from_stem(stem: str) -> str:
    parsed = parse_bundle_name(stem)
    slug = parsed[1] if parsed else slugify(stem)
    return slug.replace("-", " ").strip().capitalize() or stem


def _find_migrated(
    legacy_path: pathlib.Path, entry_name: str, asset_dir_name: str
) -> Optional[PageBundle]:
    parent = legacy_path.parent
    if not parent.is_dir():
        return None
    for child in sorted(parent.iterdir()):
        entry = child / entry_name
        if not (child.is_dir() and entry.is_file()):
            continue
        try:
            fm, _ = parse_frontmatter(read_text(entry))
        except (FrontmatterError, UnreadableEntryError):
            continue
        if fm and fm.get(MIGRATED_FROM_KEY) == legacy_path.name:
            return PageBundle(child, entry_name, asset_dir_name)
    return None


def _read_legacy(
    legacy_path: pathlib.Path, collector: _AssetCollector
) -> EntryDocument:
    fallback = _title_from_stem(legacy_path.stem)
    if legacy_path.suffix.lower() == ".ipynb":
        meta, body = notebook_to_markdown(
            legacy_path,
            collector.out_assets_dir,
            rewrite=collector.rewrite,
            write=collector.write,
        )
        tags = meta.get("tags") or []
        return EntryDocument(
            title=str(meta.get("title") or fallback),
            date=_coerce_date_like(meta.get("date")) if meta.get("date") else None,
            tags=[tags] if isinstance(tags, str) else list(tags),
            body=body,
        )

    doc = EntryDocument.from_text(
        read_text(legacy_path), fallback_title=fallback
    )
    doc.body = collector.rewrite(doc.body)
    return doc


def _target_date(doc: EntryDocument, legacy_path: pathlib.Path) -> date:
    if isinstance(doc.date, date):
        return doc.date
    parsed = parse_bundle_name(legacy_path.stem)
    if parsed:
        return parsed[0]
    return git_first_commit_date(legacy_path) or mtime_date(legacy_path)


def _plan(
    legacy_path: pathlib.Path, collector: _AssetCollector
) -> Tuple[EntryDocument, date, pathlib.Path]:
    doc = _read_legacy(legacy_path, collector)
    on_date = _target_date(doc, legacy_path)
    # a title like "日本語" has no slug; the frontmatter keeps it, the
    # directory is named from the file stem
    name_from = doc.title
    if not slugify(name_from):
        name_from = _title_from_stem(legacy_path.stem)
    target = legacy_path.parent / bundle_name(name_from, on_date)
    if target.exists():
        raise BundleExistsError(target)
    return doc, on_date, target


def migrate_post(
    legacy_path: pathlib.Path,
    static_dir: Optional[pathlib.Path] = None,
    dry_run: bool = False,
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> MigrationResult:
    legacy_path = pathlib.Path(legacy_path)

    # Already a bundle: either its directory or its entry document.
    if legacy_path.is_dir():
        bundle = load_bundle(legacy_path, entry_name, asset_dir_name)
        print(f"= {bundle.name} is already a bundle, skip")
        return MigrationResult(legacy_path, bundle, changed=False, dry_run=dry_run)
    if legacy_path.name == entry_name and legacy_path.is_file():
        bundle = PageBundle(legacy_path.parent, entry_name, asset_dir_name)
        print(f"= {bundle.name} is already a bundle, skip")
        return MigrationResult(legacy_path, bundle, changed=False, dry_run=dry_run)

    if not legacy_path.exists():
        bundle = _find_migrated(legacy_path, entry_name, asset_dir_name)
        if bundle is None:
            raise NotABundleError(f"{legacy_path}: no such post")
        print(f"= {legacy_path.name} already migrated to {bundle.name}, skip")
        return MigrationResult(legacy_path, bundle, changed=False, dry_run=dry_run)

    content_root = legacy_path.parent
    staging = content_root / f".{legacy_path.stem}.migrating"
    collector = _AssetCollector(
        content_root, staging / asset_dir_name, static_dir, write=not dry_run
    )

    if dry_run:
        # read-only: staging is neither created nor cleaned up
        _, _, target = _plan(legacy_path, collector)
        print(f"~ would migrate {legacy_path.name} -> {target.name}")
        return MigrationResult(
            legacy_path,
            PageBundle(target, entry_name, asset_dir_name),
            changed=False,
            dry_run=True,
            copied_assets=list(collector.copied),
        )

    if staging.exists():
        shutil.rmtree(staging)
    try:
        ensure_dir(staging)
        doc, on_date, target = _plan(legacy_path, collector)
        doc.date = on_date
        doc.extra[MIGRATED_FROM_KEY] = legacy_path.name
        ensure_dir(collector.out_assets_dir)
        (staging / entry_name).write_text(doc.to_text(), encoding="utf-8")
        staging.rename(target)
    finally:
        if staging.exists():
            shutil.rmtree(staging)

    bundle = PageBundle(target, entry_name, asset_dir_name)
    legacy_path.unlink()
    issues = check_bundle(bundle)
    for issue in issues:
        print(f"! {issue}")
    print(
        f"✓ migrated {legacy_path.name} -> {target.name}"
        + (f" ({len(collector.copied)} assets)" if collector.copied else "")
    )
    return MigrationResult(
        legacy_path,
        bundle,
        changed=True,
        copied_assets=list(collector.copied),
        issues=issues,
    )


def migrate_all(
    content_root: pathlib.Path,
    static_dir: Optional[pathlib.Path] = None,
    dry_run: bool = False,
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> Tuple[List[MigrationResult], List[Tuple[pathlib.Path, PageBundleError]]]:
    _, legacy = discover(content_root, entry_name, asset_dir_name)
    results: List[MigrationResult] = []
    failures: List[Tuple[pathlib.Path, PageBundleError]] = []
    for post in legacy:
        try:
            results.append(
                migrate_post(
                    post.path, static_dir, dry_run, entry_name, asset_dir_name
                )
            )
        except PageBundleError as exc:
            print(f"! {post.name}: {exc}")
            failures.append((post.path, exc))
    return results, failures
