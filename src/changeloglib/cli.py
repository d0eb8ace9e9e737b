"""Command line interface for ChangelogLib."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from changeloglib.backup.storage import SQLiteBackupStore
from changeloglib.config import AppConfig
from changeloglib.diff.runner import DiffUnavailableError, compare_documents, is_diff_installed
from changeloglib.matching.detector import UpdateDetector
from changeloglib.utils.files import iter_file_paths, load_candidate, load_new_file
from changeloglib.web.app import app as web_app


console = Console()
app = typer.Typer(help="ChangelogLib - detect which stored document a new upload updates")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _parse_data(pairs: Optional[List[str]]) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        data[key] = value
    return data


def _open_store(db: Optional[Path], *, create: bool = False) -> Optional[SQLiteBackupStore]:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists() and not create:
        return None
    _ensure_db_parent(resolved_db)
    return SQLiteBackupStore(resolved_db)


@app.command()
def backup(
    inputs: List[Path] = typer.Argument(..., help="Files to back up.", resolve_path=True),
    context: str = typer.Option(..., help="Context the backups belong to"),
    scope: str = typer.Option(..., help="Scope within the context"),
    data: Optional[List[str]] = typer.Option(None, "--data", help="Tag as key=value, repeatable"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Store files as backups so later uploads can find them as predecessors."""
    _setup_logging(verbose)
    tags = _parse_data(data)
    paths = list(iter_file_paths(inputs))
    if not paths:
        console.print("[yellow]No files found.[/yellow]")
        return

    store = _open_store(db, create=True)
    try:
        detector = UpdateDetector(store)
        ids = detector.backup_files([load_new_file(path) for path in paths], context, scope, tags)
    finally:
        store.close()
    console.print(f"Stored {len(ids)} backups.")


@app.command()
def match(
    inputs: List[Path] = typer.Argument(..., help="New files to resolve.", resolve_path=True),
    context: str = typer.Option(..., help="Context to search backups in"),
    scope: str = typer.Option(..., help="Scope within the context"),
    candidate: Optional[List[Path]] = typer.Option(
        None, "--candidate", help="Further candidate file, repeatable", resolve_path=True
    ),
    data: Optional[List[str]] = typer.Option(None, "--data", help="Required tag as key=value"),
    min_similarity: float = typer.Option(
        AppConfig().min_similarity, min=0.0, max=1.0, help="Minimum similarity"
    ),
    allow_mime_mismatch: bool = typer.Option(
        False, "--allow-mime-mismatch", help="Treat MIME type as a similarity factor"
    ),
    delete_found: bool = typer.Option(False, "--delete-found", help="Delete consumed backups"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Find the predecessor of every new file."""
    _setup_logging(verbose)
    config = AppConfig()
    tags = _parse_data(data)
    paths = list(iter_file_paths(inputs))
    if not paths:
        console.print("[yellow]No files found.[/yellow]")
        return
    if len(paths) > config.max_batch_size:
        raise typer.BadParameter(
            f"At most {config.max_batch_size} files can be matched at once, got {len(paths)}"
        )

    new_files = [load_new_file(path, tags) for path in paths]
    further = [load_candidate(path) for path in iter_file_paths(candidate or [])]

    store = _open_store(db)
    if store is None:
        console.print("[yellow]Database not found, only further candidates are used.[/yellow]")
    try:
        detector = UpdateDetector(
            store,
            ensure_mime_type=not allow_mime_mismatch,
            min_similarity=min_similarity,
        )
        distribution = detector.detect(new_files, context, scope, further)

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("New file")
        table.add_column("Predecessor")
        table.add_column("Similarity")
        table.add_column("Changed")
        for mapping in distribution.mappings:
            predecessor = mapping.predecessor
            table.add_row(
                mapping.new_file.name,
                predecessor.backup.name if predecessor else "-",
                f"{mapping.similarity:.4f}",
                "yes" if mapping.has_changed() else "no",
            )
            if delete_found:
                detector.delete_found_predecessor(mapping)
    finally:
        if store is not None:
            store.close()

    console.print(table)
    console.print(f"Total similarity: {distribution.similarity:.4f}")


@app.command()
def diff(
    old: Path = typer.Argument(..., help="Previous version", exists=True, resolve_path=True),
    new: Path = typer.Argument(..., help="Updated version", exists=True, resolve_path=True),
    diff_path: str = typer.Option(AppConfig().diff_path, help="Path of the diff tool"),
    max_change_ratio: float = typer.Option(
        AppConfig().max_change_ratio, help="Largest share of changed lines accepted"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show which pages changed between two versions of a document."""
    _setup_logging(verbose)
    old_file = load_new_file(old)
    new_file = load_new_file(new)
    try:
        report = compare_documents(
            old_file.content or b"",
            old_file.mime_type,
            new_file.content or b"",
            new_file.mime_type,
            diff_path=diff_path,
            max_change_ratio=max_change_ratio,
        )
    except DiffUnavailableError as exc:
        console.print(f"[yellow]Diff analysis unavailable: {exc}[/yellow]")
        raise typer.Exit(code=1)

    if report is None:
        console.print("[yellow]Diff analysis not applicable for these file types.[/yellow]")
        return

    console.print(f"Changed pages: {report.summary() or 'none'}")
    console.print(f"Changed lines: {report.changed_lines} ({report.change_ratio:.1%})")
    if report.acceptable:
        console.print("[green]Acceptable amount of changes.[/green]")
    else:
        console.print("[red]Too many changes for a predecessor.[/red]")


@app.command("list")
def list_backups(
    context: Optional[str] = typer.Option(None, help="Only this context"),
    scope: Optional[str] = typer.Option(None, help="Only this scope"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List stored backups."""
    store = _open_store(db)
    if store is None:
        console.print("[yellow]Database not found.[/yellow]")
        return
    try:
        backups = store.list_backups(context, scope)
    finally:
        store.close()

    if not backups:
        console.print("[yellow]No backups stored.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("ID", "Context", "Scope", "Name", "Size", "Stored", "Data"):
        table.add_column(column)
    for entry in backups:
        table.add_row(
            str(entry["id"]),
            entry["context"],
            entry["scope"],
            entry["name"],
            str(entry["size"]),
            datetime.fromtimestamp(entry["timestamp"]).strftime("%Y-%m-%d %H:%M:%S"),
            ", ".join(f"{key}={value}" for key, value in entry["data"].items()),
        )
    console.print(table)


@app.command()
def clean(
    max_age: int = typer.Option(AppConfig().backup_max_age, help="Maximum backup age in seconds"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove backups that are too old to be a predecessor."""
    store = _open_store(db)
    if store is None:
        console.print("[yellow]Database not found, nothing to clean.[/yellow]")
        return
    try:
        removed = store.delete_older_than(max_age)
    finally:
        store.close()
    console.print(f"Removed {removed} old backups.")


@app.command()
def purge(
    context: Optional[str] = typer.Option(None, help="Only this context"),
    scope: Optional[str] = typer.Option(None, help="Only this scope"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove all backups, or those of one context and scope."""
    store = _open_store(db)
    if store is None:
        console.print("[yellow]Database not found, nothing to purge.[/yellow]")
        return
    try:
        removed = store.delete_all(context, scope)
    finally:
        store.close()
    console.print(f"Removed {removed} backups.")


@app.command("check-tools")
def check_tools(
    diff_path: str = typer.Option(AppConfig().diff_path, help="Path of the diff tool"),
) -> None:
    """Check whether the external diff tool can be used."""
    if is_diff_installed(diff_path):
        console.print(f"[green]diff found at {diff_path}.[/green]")
    else:
        console.print(f"[yellow]diff not found at {diff_path}; diff analysis is unavailable.[/yellow]")
        raise typer.Exit(code=1)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    web_app.state.db_path = resolved_db
    if not resolved_db.exists():
        console.print(
            f"[yellow]Database not found at {resolved_db}; it is created by the first backup.[/yellow]"
        )
    console.print(f"Starting HTTP API on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
