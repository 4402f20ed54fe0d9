from __future__ import annotations

import pathlib
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

import yaml

from .errors import ConfigError

# ---------- Defaults

CONFIG_FILE_NAME = "bundler.yml"
CONTENT_DIR = "content/posts"
STATIC_DIR = "static"
ENTRY_NAME = "index.md"
ASSET_DIR_NAME = "images"
LEGACY_SUFFIXES = (".md", ".markdown", ".ipynb")

# Some shared regexes

MD_LINK_IMG = re.compile(
    r'(!?)\[(?P<alt>[^\]]*)\]\((?P<url>[^)\s]+)(?:\s+"[^"]*")?\)'
)
MD_IMG_REF = re.compile(
    r'!\[(?P<alt>[^\]]*)\](?:\[(?P<label>[^\]]*)\]|(?![(\[]))'
)
LINK_DEF = re.compile(
    r'^[ ]{0,3}\[(?P<label>[^\]^][^\]]*)\]:[ \t]*<?(?P<url>[^\s>]+)>?', re.MULTILINE
)
PAGE_SUFFIXES = ("", ".md", ".markdown", ".html", ".htm")
HTML_SRC_OR_HREF = re.compile(
    r'(?P<attr>\bsrc\b|\bhref\b)\s*=\s*([\'"])(?P<url>[^\'"]+)\2'
)
FENCE = re.compile(r"(^(```|~~~).*?$)(.*?)(^\2\s*$)",
                   re.MULTILINE | re.DOTALL)
ATTACHMENT_URL = re.compile(r'\battachment:(?P<name>[^)\s]+)')
SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')
SLUG_RE = re.compile(r"[^a-z0-9]+")
BUNDLE_NAME_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})-(?P<slug>[a-z0-9][a-z0-9-]*)$")


@dataclass
class BundlerConfig:
    """Site-level settings, read from ``bundler.yml`` at the site root."""

    site_root: pathlib.Path = field(default_factory=pathlib.Path.cwd)
    content_dir: str = CONTENT_DIR
    static_dir: str = STATIC_DIR
    entry_name: str = ENTRY_NAME
    asset_dir_name: str = ASSET_DIR_NAME
    default_tags: List[str] = field(default_factory=list)
    draft_by_default: bool = True

    @property
    def content_root(self) -> pathlib.Path:
        return self.site_root / self.content_dir

    @property
    def static_root(self) -> pathlib.Path:
        return self.site_root / self.static_dir


def _validate(raw: Dict[str, Any], path: pathlib.Path) -> Dict[str, Any]:
    known = {f.name for f in fields(BundlerConfig)} - {"site_root"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown keys {', '.join(unknown)}")

    for key in ("content_dir", "static_dir", "entry_name", "asset_dir_name"):
        if key in raw and (not isinstance(raw[key], str) or not raw[key].strip()):
            raise ConfigError(f"{path}: {key} must be a non-empty string")
    for key in ("entry_name", "asset_dir_name"):
        if key in raw and ("/" in raw[key] or "\\" in raw[key]):
            raise ConfigError(f"{path}: {key} must be a plain name, not a path")

    tags = raw.get("default_tags", [])
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ConfigError(f"{path}: default_tags must be a list of strings")
    if "default_tags" in raw:
        raw["default_tags"] = tags

    if "draft_by_default" in raw and not isinstance(raw["draft_by_default"], bool):
        raise ConfigError(f"{path}: draft_by_default must be true or false")
    return raw


def load_config(site_root: pathlib.Path | None = None) -> BundlerConfig:
    site_root = (site_root or pathlib.Path.cwd()).resolve()
    path = site_root / CONFIG_FILE_NAME
    if not path.exists():
        return BundlerConfig(site_root=site_root)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML ({exc})") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    return BundlerConfig(site_root=site_root, **_validate(raw, path))
