"""codemap CLI — discover, classify and inspect cache metadata."""

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from codemap import __version__
from codemap.errors import CodemapError

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """codemap — map the source files of a repository.

    Finds in-scope files (respecting .gitignore), classifies them by
    language, and tracks whether the extraction cache is current.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(error: CodemapError) -> None:
    console.print(f"[red]Error:[/] {escape(str(error))}")
    sys.exit(1)


# ── Files ────────────────────────────────────────────────────────────


@main.command()
@click.argument("repo_root", type=click.Path())
@click.option("--pattern", "-p", multiple=True, help="Glob to include (default: from .codemap.yml)")
@click.option("--include-ignored", multiple=True, help="Glob of ignored files to keep anyway")
@click.option("--exclude", multiple=True, help="Glob of files to drop")
@click.option("--language", "-l", default=None, help="Only list files of this language")
@click.option("--extractable", is_flag=True, help="Only list files with a symbol or structure extractor")
@click.option("--table", "as_table", is_flag=True, help="Show language and capabilities")
def files(
    repo_root: str,
    pattern: tuple[str, ...],
    include_ignored: tuple[str, ...],
    exclude: tuple[str, ...],
    language: str | None,
    extractable: bool,
    as_table: bool,
):
    """List the files in scope under REPO_ROOT."""
    from codemap.config import load_config
    from codemap.utils.file_scanner import discover_files
    from codemap.utils.languages import classify_file

    try:
        config = load_config(repo_root)
        paths = discover_files(
            repo_root,
            list(pattern) or config.patterns,
            include_ignored=config.include_ignored + list(include_ignored),
            exclude=config.exclude + list(exclude),
        )
    except CodemapError as e:
        _fail(e)
        return

    classes = [classify_file(p) for p in paths]
    if language:
        classes = [c for c in classes if c.language.value == language]
    if extractable:
        classes = [c for c in classes if c.extractable]

    if not as_table:
        for c in classes:
            click.echo(c.path)
        return

    table = Table(title=f"Files ({len(classes)} found)")
    table.add_column("Path", style="cyan")
    table.add_column("Language")
    table.add_column("Symbols", justify="center")
    table.add_column("Structure", justify="center")

    for c in classes:
        table.add_row(
            c.path,
            c.language.value,
            "[green]yes[/]" if c.can_extract_symbols else "[dim]no[/]",
            "[green]yes[/]" if c.can_extract_structure else "[dim]no[/]",
        )

    console.print(table)


# ── Meta ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("repo_root", type=click.Path(exists=True, file_okay=False))
@click.option("--init", "init_version", default=None, help="Bootstrap metadata with this extractor version")
@click.option("--touch", is_flag=True, help="Record a completed refresh")
@click.option("--check", "check_version", default=None, help="Exit 2 if the cache was built by another version")
def meta(repo_root: str, init_version: str | None, touch: bool, check_version: str | None):
    """Show or update the cache lifecycle metadata of REPO_ROOT."""
    from codemap.cache.meta_store import open_cache

    try:
        with open_cache(repo_root, init_version) as store:
            if touch:
                store.update_last_updated()
            info = store.read_meta()
            db_path = store.db_path
    except CodemapError as e:
        _fail(e)
        return

    table = Table(title=f"Cache metadata — {db_path}")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("created_at", info.created_at or "[dim]—[/]")
    table.add_row("last_updated_at", info.last_updated_at or "[dim]—[/]")
    table.add_row("extractor_version", info.extractor_version or "[dim]—[/]")
    console.print(table)

    if check_version is not None and info.is_stale(check_version):
        console.print(
            f"[yellow]Stale:[/] cache built by extractor {info.extractor_version or 'unknown'}, "
            f"running {check_version}"
        )
        sys.exit(2)
