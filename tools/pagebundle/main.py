#!/usr/bin/env python3
"""
Page-bundle tools for a Hugo blog.

- new      -> content/posts/<YYYY-MM-DD>-<slug>/index.md + images/
- check    -> every image/asset reference is relative and exists under images/
- migrate  -> legacy flat posts (.md, .ipynb) become bundles, assets copied in
- list     -> bundles and legacy posts under the content root
- archive  -> move a bundle as one unit
- name     -> print the bundle directory name for a title
"""

from __future__ import annotations

import logging
import pathlib
from datetime import date, datetime
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .bundle import create_bundle, discover, load_bundle, move_bundle
from .config import BundlerConfig, load_config
from .errors import BundleIntegrityError, PageBundleError, UnreadableEntryError
from .migrate import migrate_all, migrate_post
from .naming import bundle_name
from .references import check_content_root, unreferenced_assets

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pagebundle",
    help="Create, check and migrate Hugo page bundles",
    add_completion=False,
    no_args_is_help=True,
)

SiteOption = Annotated[
    Optional[pathlib.Path],
    typer.Option("--site", "-s", help="Site root (default: current directory)"),
]


@app.callback()
def _setup(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _config(site: Optional[pathlib.Path]) -> BundlerConfig:
    try:
        cfg = load_config(site)
    except PageBundleError as exc:
        _fail(exc)
    logger.debug("content root: %s", cfg.content_root)
    return cfg


def _fail(exc: Exception) -> None:
    console.print(f"[red]ERROR: {escape(str(exc))}[/red]")
    raise typer.Exit(1)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}") from None


DateOption = Annotated[
    Optional[str],
    typer.Option("--date", "-d", help="Post date as YYYY-MM-DD (default: today)"),
]


@app.command()
def new(
    title: Annotated[str, typer.Argument(help="Post title")],
    on_date: DateOption = None,
    tag: Annotated[
        Optional[List[str]], typer.Option("--tag", "-t", help="Tag (repeatable)")
    ] = None,
    publish: Annotated[
        bool, typer.Option("--publish", help="Create with draft: false")
    ] = False,
    site: SiteOption = None,
) -> None:
    """Create a new page bundle."""
    cfg = _config(site)
    try:
        bundle = create_bundle(
            cfg.content_root,
            title,
            on_date=_parse_date(on_date),
            draft=cfg.draft_by_default and not publish,
            tags=list(tag or cfg.default_tags),
            entry_name=cfg.entry_name,
            asset_dir_name=cfg.asset_dir_name,
        )
    except PageBundleError as exc:
        _fail(exc)
    console.print(str(bundle.entry_path))


@app.command()
def name(
    title: Annotated[str, typer.Argument(help="Post title")],
    on_date: DateOption = None,
) -> None:
    """Print the bundle directory name for TITLE."""
    try:
        typer.echo(bundle_name(title, _parse_date(on_date) or date.today()))
    except PageBundleError as exc:
        _fail(exc)


@app.command()
def check(
    strict: Annotated[
        bool, typer.Option("--strict", help="Also fail on unreferenced assets")
    ] = False,
    site: SiteOption = None,
) -> None:
    """Check asset references in every bundle."""
    cfg = _config(site)
    bundles, legacy = discover(cfg.content_root, cfg.entry_name, cfg.asset_dir_name)

    problems = 0
    for issue in check_content_root(
        cfg.content_root, cfg.entry_name, cfg.asset_dir_name
    ):
        console.print(f"[red]![/red] {escape(str(issue))}")
        problems += 1
    for bundle in bundles:
        try:
            orphans = unreferenced_assets(bundle)
        except UnreadableEntryError:
            # already reported above
            continue
        for orphan in orphans:
            rel = orphan.relative_to(bundle.path).as_posix()
            console.print(f"[yellow]-[/yellow] {bundle.name}: unreferenced {rel}")
            if strict:
                problems += 1
    for post in legacy:
        console.print(f"[yellow]-[/yellow] {post.name}: legacy flat post, not checked")

    if problems:
        console.print(f"[red]{problems} problem(s) in {len(bundles)} bundle(s)[/red]")
        raise typer.Exit(1)
    console.print(f"✓ {len(bundles)} bundle(s) ok")


@app.command()
def migrate(
    paths: Annotated[
        Optional[List[pathlib.Path]],
        typer.Argument(help="Legacy post files to convert"),
    ] = None,
    all_posts: Annotated[
        bool, typer.Option("--all", help="Migrate every legacy post")
    ] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report targets, write nothing")
    ] = False,
    site: SiteOption = None,
) -> None:
    """Move legacy flat posts into page bundles."""
    cfg = _config(site)
    static_dir = cfg.static_root if cfg.static_root.is_dir() else None

    if all_posts:
        _, failures = migrate_all(
            cfg.content_root,
            static_dir,
            dry_run=dry_run,
            entry_name=cfg.entry_name,
            asset_dir_name=cfg.asset_dir_name,
        )
        if failures:
            raise typer.Exit(1)
        return

    if not paths:
        _fail(PageBundleError("give one or more paths, or --all"))

    failed = False
    for path in paths:
        try:
            migrate_post(
                path,
                static_dir,
                dry_run=dry_run,
                entry_name=cfg.entry_name,
                asset_dir_name=cfg.asset_dir_name,
            )
        except PageBundleError as exc:
            console.print(f"[red]! {escape(str(path))}: {escape(str(exc))}[/red]")
            failed = True
    if failed:
        raise typer.Exit(1)


@app.command("list")
def list_posts(site: SiteOption = None) -> None:
    """List bundles and legacy posts."""
    cfg = _config(site)
    bundles, legacy = discover(cfg.content_root, cfg.entry_name, cfg.asset_dir_name)

    table = Table(title=str(cfg.content_root))
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Date")
    table.add_column("Draft")
    table.add_column("Tags")

    for post in [*bundles, *legacy]:
        try:
            doc = post.read_entry()
        except PageBundleError as exc:
            table.add_row(post.name, f"[red]{escape(str(exc))}[/red]", "", "", "")
            continue
        kind = "" if post in bundles else " [yellow](legacy)[/yellow]"
        table.add_row(
            post.name + kind,
            doc.title,
            doc.date.isoformat() if doc.date else "",
            "yes" if doc.draft else "",
            ", ".join(doc.tags),
        )
    console.print(table)


@app.command()
def archive(
    bundle_dir_name: Annotated[str, typer.Argument(metavar="NAME", help="Bundle directory name")],
    dest: Annotated[pathlib.Path, typer.Argument(help="Destination directory")],
    force: Annotated[
        bool,
        typer.Option(
            "--force", help="Move even with absolute or out-of-bundle references"
        ),
    ] = False,
    site: SiteOption = None,
) -> None:
    """Move a bundle, assets included, to DEST."""
    cfg = _config(site)
    try:
        bundle = load_bundle(
            cfg.content_root / bundle_dir_name, cfg.entry_name, cfg.asset_dir_name
        )
        move_bundle(bundle, dest, force=force)
    except BundleIntegrityError as exc:
        for issue in exc.issues:
            console.print(f"[red]![/red] {escape(str(issue))}")
        _fail(exc)
    except PageBundleError as exc:
        _fail(exc)


def main():
    app()


if __name__ == "__main__":
    main()
