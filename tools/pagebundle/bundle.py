from __future__ import annotations

import logging
import pathlib
import shutil
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .config import ASSET_DIR_NAME, ENTRY_NAME, LEGACY_SUFFIXES
from .errors import BundleExistsError, BundleIntegrityError, NotABundleError
from .frontmatter import EntryDocument
from .naming import bundle_name, parse_bundle_name
from .references import ABSOLUTE_PATH, ESCAPES_BUNDLE, check_bundle
from .utils import ensure_dir, read_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageBundle:
    path: pathlib.Path
    entry_name: str = ENTRY_NAME
    asset_dir_name: str = ASSET_DIR_NAME

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def entry_path(self) -> pathlib.Path:
        return self.path / self.entry_name

    @property
    def asset_dir(self) -> pathlib.Path:
        return self.path / self.asset_dir_name

    @property
    def date(self) -> Optional[date]:
        parsed = parse_bundle_name(self.name)
        return parsed[0] if parsed else None

    def read_entry(self) -> EntryDocument:
        return EntryDocument.from_text(
            read_text(self.entry_path),
            fallback_title=self.name,
        )


@dataclass(frozen=True)
class LegacyPost:
    path: pathlib.Path

    @property
    def name(self) -> str:
        return self.path.name

    def read_entry(self) -> EntryDocument:
        if self.path.suffix.lower() == ".ipynb":
            return EntryDocument(title=self.path.stem)
        return EntryDocument.from_text(
            read_text(self.path),
            fallback_title=self.path.stem,
        )


def create_bundle(
    content_root: pathlib.Path,
    title: str,
    on_date: Optional[date] = None,
    draft: bool = True,
    tags: Iterable[str] = (),
    body: str = "",
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> PageBundle:
    """
    Create ``<content_root>/<date>-<slug>/`` with an entry document and an
    empty asset directory. Same-day posts with the same slug collide; the
    existing bundle is never touched and the caller picks another title.
    """
    on_date = on_date or date.today()
    name = bundle_name(title, on_date)
    bundle = PageBundle(content_root / name, entry_name, asset_dir_name)

    ensure_dir(content_root)
    try:
        bundle.path.mkdir()
    except FileExistsError:
        raise BundleExistsError(bundle.path) from None

    doc = EntryDocument(
        title=title, date=on_date, draft=draft, tags=list(tags), body=body
    )
    bundle.entry_path.write_text(doc.to_text(), encoding="utf-8")
    bundle.asset_dir.mkdir()

    print(f"✓ created bundle {name}")
    return bundle


def load_bundle(
    path: pathlib.Path,
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> PageBundle:
    bundle = PageBundle(path, entry_name, asset_dir_name)
    if not bundle.entry_path.is_file():
        raise NotABundleError(f"{path}: no {entry_name}")
    return bundle


def discover(
    content_root: pathlib.Path,
    entry_name: str = ENTRY_NAME,
    asset_dir_name: str = ASSET_DIR_NAME,
) -> Tuple[List[PageBundle], List[LegacyPost]]:
    bundles: List[PageBundle] = []
    legacy: List[LegacyPost] = []
    if not content_root.is_dir():
        print(f"- no content root at {content_root}")
        return bundles, legacy

    for child in sorted(content_root.iterdir()):
        if child.name.startswith((".", "_")):
            # _index.md is a Hugo section page, not a post
            continue
        if child.is_dir():
            if (child / entry_name).is_file():
                bundles.append(PageBundle(child, entry_name, asset_dir_name))
            else:
                logger.debug("skipping %s: no %s", child, entry_name)
        elif child.suffix.lower() in LEGACY_SUFFIXES:
            legacy.append(LegacyPost(child))
    return bundles, legacy


def move_bundle(
    bundle: PageBundle, dest_root: pathlib.Path, force: bool = False
) -> PageBundle:
    """Move a bundle as one unit, e.g. into an archive directory."""
    if not force:
        # both kinds resolve against the bundle's location, not its contents
        breaking = [
            i
            for i in check_bundle(bundle)
            if i.code in (ABSOLUTE_PATH, ESCAPES_BUNDLE)
        ]
        if breaking:
            raise BundleIntegrityError(bundle.path, breaking)

    target = dest_root / bundle.name
    if target.exists():
        raise BundleExistsError(target)

    ensure_dir(dest_root)
    shutil.move(str(bundle.path), str(target))
    print(f"✓ moved {bundle.name} -> {dest_root}")
    return PageBundle(target, bundle.entry_name, bundle.asset_dir_name)
