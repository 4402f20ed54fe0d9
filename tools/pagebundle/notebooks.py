from __future__ import annotations

import base64
import copy
import pathlib
import re
from typing import Any, Callable, Dict, Optional, Tuple

import nbformat
from nbconvert import MarkdownExporter
from nbformat import NotebookNode
from nbformat.validator import validate

from .config import ATTACHMENT_URL
from .naming import slugify
from .utils import _norm_text, content_hash, ensure_dir

_HIDDEN_INPUT_TAGS = {"hide-input", "remove-input", "hide_input", "remove_input"}
_HIDDEN_OUTPUT_TAGS = {"hide-output", "remove-output", "hide_output", "remove_output"}
_REMOVE_CELL_TAGS = {"remove-cell", "hide-cell", "remove_cell", "hide_cell"}

_H1 = re.compile(r'^\s*#\s+(.+?)\s*$', re.MULTILINE)

_MIME_EXT = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
    "image/webp": ".webp",
}


def _tags(cell: NotebookNode) -> set:
    md = getattr(cell, "metadata", {}) or {}
    return set((md.get("tags") or []))


def _is_effectively_empty(cell: NotebookNode) -> bool:
    src = _norm_text(cell.get("source", "")).strip()
    if cell.get("cell_type") == "code":
        return (src == "") and not cell.get("outputs")
    return (src == "") and not cell.get("attachments")


def _apply_hidden_flags(cell: NotebookNode) -> Optional[NotebookNode]:
    c = copy.deepcopy(cell)
    md = c.get("metadata") or {}
    jup = md.get("jupyter") if isinstance(md.get("jupyter"), dict) else {}
    tags = _tags(c)

    if tags & _REMOVE_CELL_TAGS:
        return None

    source_hidden = bool(jup.get("source_hidden")) or bool(tags & _HIDDEN_INPUT_TAGS)
    if source_hidden:
        if c.get("cell_type") == "markdown":
            return None
        if c.get("cell_type") == "code":
            c["source"] = ""

    outputs_hidden = bool(jup.get("outputs_hidden")) or bool(tags & _HIDDEN_OUTPUT_TAGS)
    if outputs_hidden and c.get("cell_type") == "code":
        c["outputs"] = []
        c["execution_count"] = None

    return c


def filter_and_apply_visibility(nbnode: NotebookNode) -> None:
    new_cells = []
    for cell in nbnode.cells:
        cell2 = _apply_hidden_flags(cell)
        if cell2 is None or _is_effectively_empty(cell2):
            continue
        new_cells.append(cell2)
    nbnode.cells = new_cells


def extract_markdown_attachments(
    cell: NotebookNode, out_assets_dir: pathlib.Path, write: bool = True
) -> str:
    text = cell.get("source", "")
    atts = cell.get("attachments") or {}

    def _repl(m):
        name = m.group("name")
        blob = atts.get(name)
        if not blob:
            return m.group(0)
        mime, b64 = next(iter(blob.items()))
        data = base64.b64decode(b64)
        fname = f"att-{slugify(pathlib.Path(name).stem) or 'image'}.{content_hash(data)}"
        fname += _MIME_EXT.get(mime, ".bin")
        if write:
            ensure_dir(out_assets_dir)
            (out_assets_dir / fname).write_bytes(data)
        return f"{out_assets_dir.name}/{fname}"

    return ATTACHMENT_URL.sub(_repl, text)


def notebook_to_markdown(
    ipynb: pathlib.Path,
    out_assets_dir: pathlib.Path,
    rewrite: Optional[Callable[[str], str]] = None,
    write: bool = True,
) -> Tuple[Dict[str, Any], str]:
    """
    Convert a notebook post to a markdown body.

    Returns the notebook's own metadata (title/date/tags when present, else
    the first H1 as title) and the body. Output blobs and attachments land
    in ``out_assets_dir`` with content-hashed names; with ``write=False``
    only the names are computed.
    """
    nb = nbformat.read(str(ipynb), as_version=4)
    validate(nb)
    filter_and_apply_visibility(nb)

    first_h1 = None
    for cell in nb.cells:
        if cell.get("cell_type") != "markdown":
            continue
        raw = _norm_text(cell.get("source", ""))
        raw = extract_markdown_attachments(
            {"source": raw, "attachments": cell.get("attachments") or {}},
            out_assets_dir,
            write=write,
        )
        if rewrite is not None:
            raw = rewrite(raw)
        cell["source"] = raw
        cell.pop("attachments", None)
        if first_h1 is None:
            m = _H1.search(raw)
            if m:
                first_h1 = m.group(1).strip()

    body, res = MarkdownExporter().from_notebook_node(nb)

    for name, data in (res.get("outputs") or {}).items():
        p = pathlib.Path(name)
        new_name = f"{slugify(p.stem) or 'output'}.{content_hash(data)}{p.suffix}"
        if write:
            ensure_dir(out_assets_dir)
            (out_assets_dir / new_name).write_bytes(data)
        body = body.replace(f"({name})", f"({out_assets_dir.name}/{new_name})")

    meta: Dict[str, Any] = {}
    nb_meta = nb.metadata or {}
    for key in ("title", "date", "tags"):
        if nb_meta.get(key):
            meta[key] = nb_meta[key]
    if "title" not in meta and first_h1:
        meta["title"] = first_h1
    return meta, _norm_text(body)
