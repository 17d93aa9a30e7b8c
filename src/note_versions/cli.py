"""CLI for note-versions."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from note_versions import __version__

app = typer.Typer(
    name="note-versions",
    help="Snapshot history, diffs and line restoration for plain-text notes.",
    no_args_is_help=True,
)
console = Console()

DocumentArg = Annotated[Path, typer.Argument(help="Document path", exists=True, dir_okay=False)]
VersionArg = Annotated[str, typer.Argument(help="Version id (e.g. v003 or 3)")]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"note-versions {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show debug logging")] = False,
) -> None:
    """Manage snapshot history of plain-text notes."""
    from note_versions.logger import configure_logging

    configure_logging(verbose)


def _fail(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]", highlight=False)
    raise typer.Exit(1)


def _read_document(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _fail(f"Could not read {path}: {exc}")


def _format_size(size_bytes: int) -> str:
    """Format byte size as human-readable string."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


@app.command()
def snapshot(
    document: DocumentArg,
    trigger: Annotated[
        str, typer.Option("--trigger", "-t", help="manual-snapshot, manual-save or autosave")
    ] = "manual-snapshot",
) -> None:
    """Record the document's current content as a new version."""
    from note_versions.config import load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.storage import create_snapshot, list_versions

    settings = load_settings()
    content = _read_document(document)
    try:
        entry = create_snapshot(document, content, trigger, settings)
    except (NoteVersionsError, ValueError) as exc:
        _fail(str(exc))

    if entry is None:
        newest = list_versions(document, settings)[-1]
        console.print(f"[yellow]No changes since {newest.id}[/yellow]")
    else:
        console.print(f"[green]Created {entry.id}[/green] ({_format_size(entry.size)}, {entry.lines} lines)")


@app.command()
def history(
    document: DocumentArg,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List the saved versions of a document."""
    from note_versions.config import load_settings
    from note_versions.storage import history_dir, list_versions

    settings = load_settings()
    versions = list_versions(document, settings)

    if json_output:
        console.print_json(data={"document": str(document), "versions": [v.to_dict() for v in versions]})
        return

    if not versions:
        console.print(f"[yellow]No history for {document}[/yellow]")
        return

    table = Table(title=f"{document.name} ({len(versions)} versions)")
    table.add_column("Version", style="cyan")
    table.add_column("Saved")
    table.add_column("Size", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Lines", justify="right")
    table.add_column("Trigger")
    table.add_column("Hash", style="dim")
    for v in reversed(versions):
        table.add_row(
            v.id,
            v.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            _format_size(v.size),
            str(v.words),
            str(v.lines),
            v.trigger,
            v.hash[:12],
        )
    console.print(table)
    console.print(f"History folder: {history_dir(document, settings)}", highlight=False)


@app.command()
def show(document: DocumentArg, version: VersionArg) -> None:
    """Print the content of one version."""
    from note_versions.config import load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.storage import read_snapshot

    try:
        content = read_snapshot(document, version, load_settings())
    except NoteVersionsError as exc:
        _fail(str(exc))

    if content is None:
        _fail(f"Version not found: {version}")
    typer.echo(content, nl=False)


@app.command()
def diff(
    document: DocumentArg,
    version: VersionArg,
    changes_only: Annotated[
        bool, typer.Option("--changes", "-c", help="Hide unchanged lines")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Compare the document with a version, line by line."""
    from dataclasses import asdict

    from note_versions.config import load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.models import ADDED, MODIFIED, REMOVED
    from note_versions.sessions import SessionRegistry

    registry = SessionRegistry(load_settings())
    session_id = registry.open(document)
    try:
        handle = registry.attach_comparison(session_id, version, _read_document(document))
    except NoteVersionsError as exc:
        _fail(str(exc))

    summary = handle.summary
    if json_output:
        console.print_json(
            data={
                "version": handle.version.id,
                "timestamp": handle.version.timestamp,
                "summary": asdict(summary),
                "records": [asdict(r) for r in handle.records],
            }
        )
        registry.close(session_id)
        return

    console.print(f"[bold]{escape(document.name)}[/bold] vs [cyan]{handle.version.id}[/cyan] ({handle.version.timestamp})")
    for index, record in enumerate(handle.records):
        prefix = f"{index:>4} "
        live = escape(record.live or "")
        historical = escape(record.historical or "")
        if record.kind == MODIFIED:
            console.print(f"{prefix}[red]- {live}[/red]", highlight=False)
            console.print(f"{' ' * 5}[green]+ {historical}[/green]", highlight=False)
        elif record.kind == REMOVED:
            console.print(f"{prefix}[red]- {live}[/red]", highlight=False)
        elif record.kind == ADDED:
            console.print(f"{prefix}[green]+ {historical}[/green]", highlight=False)
        elif not changes_only:
            console.print(f"{prefix}[dim]  {live}[/dim]", highlight=False)

    console.print("─" * 50)
    console.print(f"{summary.removed} lines removed, {summary.added} lines added, {summary.selectable} restorable")
    registry.close(session_id)


@app.command()
def restore(
    document: DocumentArg,
    version: VersionArg,
    lines: Annotated[
        list[int] | None,
        typer.Option("--line", "-l", help="Diff index to restore (can repeat)"),
    ] = None,
    restore_all: Annotated[
        bool, typer.Option("--all", "-a", help="Replace the whole document with the version")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-d", help="Print the merged content without saving")
    ] = False,
) -> None:
    """Restore selected lines, or the whole version, into the document."""
    from note_versions.config import RECENT_FILES_PATH, load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.recent import RecentFiles
    from note_versions.sessions import SessionRegistry

    if not restore_all and not lines:
        _fail("Select lines with --line or use --all")

    registry = SessionRegistry(load_settings(), RecentFiles(RECENT_FILES_PATH))
    session_id = registry.open(document)
    try:
        handle = registry.attach_comparison(session_id, version, _read_document(document))

        if restore_all:
            if not yes and not dry_run:
                typer.confirm(
                    f"Replace {document.name} with {handle.version.id}? Lines only in the "
                    "current document will be lost"
                    + (" and individual line selections are ignored" if lines else ""),
                    abort=True,
                )
            content = registry.full_restore(session_id)
        else:
            for index in lines or []:
                if not registry.toggle_line(session_id, index):
                    console.print(f"[yellow]Line {index} has nothing to restore, skipped[/yellow]")
            if not dry_run:
                console.print(handle.coordinator.selection_label())
            content = registry.finalize_restoration(session_id)

        if dry_run:
            typer.echo(content, nl=False)
            return

        if not registry.get(session_id).dirty:
            console.print("[yellow]Document already matches, nothing to restore[/yellow]")
            return

        result = registry.save(session_id, content)
    except NoteVersionsError as exc:
        _fail(str(exc))
    finally:
        if session_id in registry:
            registry.close(session_id)

    console.print(f"[green]Restored from {handle.version.id} into {result.path}[/green]")
    if result.snapshot is not None:
        console.print(f"Saved as {result.snapshot.id}")
    elif result.snapshot_error:
        console.print(f"[yellow]Snapshot failed: {result.snapshot_error}[/yellow]")


@app.command()
def delete(
    document: DocumentArg,
    version: VersionArg,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete one version and its snapshot file."""
    from note_versions.config import load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.storage import delete_snapshot

    if not yes:
        typer.confirm(f"Delete version {version} of {document.name}?", abort=True)

    try:
        deleted = delete_snapshot(document, version, load_settings())
    except NoteVersionsError as exc:
        _fail(str(exc))

    if not deleted:
        _fail(f"Version not found: {version}")
    console.print(f"[green]Deleted {version}[/green]")


@app.command()
def prune(document: DocumentArg) -> None:
    """Apply the retention policy to a document's history now."""
    from note_versions.config import load_settings
    from note_versions.errors import NoteVersionsError
    from note_versions.storage import prune_versions

    try:
        removed = prune_versions(document, load_settings())
    except NoteVersionsError as exc:
        _fail(str(exc))

    if not removed:
        console.print("[green]Nothing to prune[/green]")
        return
    console.print(f"[green]Removed {len(removed)} versions:[/green] {', '.join(e.id for e in removed)}")


@app.command()
def recent(
    clear: Annotated[bool, typer.Option("--clear", help="Forget all recent documents")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List recently restored or saved documents."""
    from note_versions.config import RECENT_FILES_PATH
    from note_versions.recent import RecentFiles

    recent_files = RecentFiles(RECENT_FILES_PATH)
    if clear:
        recent_files.clear()
        console.print("[green]Recent documents cleared[/green]")
        return

    paths = [str(p) for p in recent_files.paths]
    if json_output:
        console.print_json(data={"recent": paths})
        return

    if not paths:
        console.print("[yellow]No recent documents[/yellow]")
        return
    for i, path in enumerate(paths, 1):
        console.print(f"[cyan]{i}[/cyan] {escape(path)}")


@app.command()
def config(
    max_versions: Annotated[
        int | None, typer.Option("--max-versions", help="Versions kept per document")
    ] = None,
    age_cleanup: Annotated[
        bool | None,
        typer.Option("--age-cleanup/--no-age-cleanup", help="Delete versions older than --max-age-days"),
    ] = None,
    max_age_days: Annotated[
        int | None, typer.Option("--max-age-days", help="Age threshold in days")
    ] = None,
    storage: Annotated[
        str | None, typer.Option("--storage", help="Where history lives: local or global")
    ] = None,
    global_dir: Annotated[
        Path | None, typer.Option("--global-dir", help="Folder for global history storage")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show or change retention and storage settings."""
    from note_versions.config import SETTINGS_PATH, load_settings, save_settings, update_settings

    settings = load_settings()
    changes = {
        "max_versions": max_versions,
        "age_cleanup": age_cleanup,
        "max_age_days": max_age_days,
        "storage_location": storage,
        "global_dir": global_dir,
    }
    if any(v is not None for v in changes.values()):
        try:
            settings = update_settings(settings, **changes)
        except ValueError as exc:
            _fail(str(exc))
        save_settings(settings)

    if json_output:
        console.print_json(data=settings.to_dict())
        return

    for key, value in settings.to_dict().items():
        console.print(f"[cyan]{key}[/cyan]: {value}", highlight=False)
    console.print(f"Settings file: {SETTINGS_PATH}", highlight=False)


if __name__ == "__main__":
    app()
