"""
CLI interface for the item tracker.

Usage:
    itemkeeper say "I put the passport in the desk drawer"
    itemkeeper find passport
    itemkeeper sync merge
"""

import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import Tracker
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .kvstore import SqliteKeyValueStore
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .record_store import RecordStore
from .types import ItemRecord, RecycleBinEntry, local_display

# Configure quiet mode by default (suppress verbose library output)
# Set ITEMKEEPER_VERBOSE=1 to enable debug mode via environment
if os.environ.get("ITEMKEEPER_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"itemkeeper {version('itemkeeper')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


app = typer.Typer(
    name="itemkeeper",
    help="Remember where you put things.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="ITEMKEEPER_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Remember where you put things."""


# -----------------------------------------------------------------------------
# Session wiring
# -----------------------------------------------------------------------------


class _Session:
    """Objects for one CLI invocation, built from the store config."""

    def __init__(self, config: StoreConfig):
        self.config = config
        self.kv = SqliteKeyValueStore(config.db_path)
        self.store = RecordStore(self.kv)
        self.store.check_version()
        self.ops_handler: Optional[logging.Handler] = None
        self.ledger = None
        self.owner_id: Optional[str] = None
        if config.remote:
            from .ledger import RestLedger
            self.ledger = RestLedger(
                config.remote.url,
                config.remote.api_key,
                access_token=config.remote.access_token,
            )
            self.owner_id = config.remote.owner_id

    def tracker(self) -> Tracker:
        gateway = None
        if self.ledger is not None:
            from .sync import SyncGateway
            gateway = SyncGateway(self.ledger)
        return Tracker(self.store, gateway=gateway, owner_id=self.owner_id)

    def reconciler(self):
        from .sync import Reconciler
        if self.ledger is None or not self.owner_id:
            typer.echo(
                "Error: sync needs [remote] url, api_key and owner_id "
                "(or ITEMKEEPER_REMOTE_URL / ITEMKEEPER_REMOTE_KEY / ITEMKEEPER_OWNER)",
                err=True,
            )
            raise typer.Exit(1)
        return Reconciler(self.ledger, self.store)

    def close(self) -> None:
        if self.ledger is not None:
            self.ledger.close()
        self.kv.close()
        if self.ops_handler is not None:
            logging.getLogger("itemkeeper").removeHandler(self.ops_handler)
            self.ops_handler.close()
            self.ops_handler = None


def _get_session() -> _Session:
    """Load config for the selected store, handling errors gracefully."""
    import atexit

    store_path = _store_override or get_default_store_path()
    try:
        config = load_or_create_config(Path(store_path).expanduser())
        session = _Session(config)
        session.ops_handler = configure_ops_log(config.path)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(session.close)
    return session


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------


def _format_record(record: ItemRecord) -> str:
    line = f"{record.id}  {local_display(record.created_at)}  {record.item}: {record.location}"
    if record.tags:
        line += "  [" + ", ".join(record.tags) + "]"
    return line


def _format_entry(entry: RecycleBinEntry) -> str:
    return (
        f"{entry.id}  deleted {local_display(entry.deleted_at)}  "
        f"{entry.item}: {entry.location}  ({entry.delete_reason})"
    )


def _echo_records(records: list, empty: str) -> None:
    if _get_json_output():
        typer.echo(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
        return
    if not records:
        typer.echo(empty)
        return
    for r in records:
        typer.echo(_format_entry(r) if isinstance(r, RecycleBinEntry) else _format_record(r))


def _echo_result(result) -> None:
    """Print a sync result; exit non-zero on failure."""
    if _get_json_output():
        typer.echo(json.dumps(result.as_dict(), ensure_ascii=False))
    else:
        typer.echo(result.message, err=not result.success)
    if not result.success:
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Items
# -----------------------------------------------------------------------------


@app.command()
def add(
    item: Annotated[str, typer.Argument(help="What the item is")],
    location: Annotated[str, typer.Argument(help="Where it is")],
    voice: Annotated[bool, typer.Option("--voice", help="Mark as voice input")] = False,
):
    """Record an item and its location directly."""
    tracker = _get_session().tracker()
    record = tracker.record(
        item, location, f"{item} -> {location}",
        source="voice" if voice else "text",
    )
    _echo_records([record], "")


@app.command()
def say(
    text: Annotated[list[str], typer.Argument(help="What you want to do, in plain words")],
):
    """
    Natural-language input: record, find, delete, tag or count items.

    \b
    Examples:
        itemkeeper say I put the passport in the desk drawer
        itemkeeper say where is my passport
        itemkeeper say tag passport as documents
    """
    from .intent import IntentClient, fallback_parse

    session = _get_session()
    tracker = session.tracker()
    raw = " ".join(text)
    if session.config.intent:
        client = IntentClient(session.config.intent.url, session.config.intent.api_key)
        try:
            parsed = client.parse(raw)
        finally:
            client.close()
    else:
        parsed = fallback_parse(raw)
    typer.echo(tracker.handle(parsed, raw))


@app.command()
def find(
    query: Annotated[str, typer.Argument(help="Item, location or words from the original input")],
):
    """Find items by substring."""
    results = _get_session().tracker().search(query)
    _echo_records(results, f"Nothing found for {query!r}")


@app.command("list")
def list_items():
    """List all active items."""
    _echo_records(_get_session().tracker().list_records(), "No items recorded yet")


@app.command()
def tag(
    query: Annotated[str, typer.Argument(help="Items to tag (substring match)")],
    label: Annotated[str, typer.Argument(help="Tag to add")],
):
    """Add a tag to matching items."""
    changed = _get_session().tracker().tag(query, label)
    typer.echo(f"Tagged {len(changed)} items with {label!r}")


@app.command("del")
def del_cmd(
    query: Annotated[str, typer.Argument(help="Items to delete (substring match)")],
):
    """Move matching items to the recycle bin."""
    moved = _get_session().tracker().delete(query)
    if not moved:
        typer.echo(f"Nothing found for {query!r}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Moved {len(moved)} items to the recycle bin")


@app.command()
def stats():
    """Show item statistics."""
    typer.echo(_get_session().tracker().statistics())


# -----------------------------------------------------------------------------
# Recycle bin
# -----------------------------------------------------------------------------

bin_app = typer.Typer(
    name="bin",
    help="Recycle bin: list, restore, purge.",
    rich_markup_mode=None,
)
app.add_typer(bin_app)


@bin_app.command("list")
def bin_list():
    """List recycle bin entries."""
    _echo_records(_get_session().tracker().list_bin(), "Recycle bin is empty")


@bin_app.command("restore")
def bin_restore(id: Annotated[str, typer.Argument(help="Entry id")]):
    """Move an entry back to the active items."""
    record = _get_session().tracker().restore(id)
    if record is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Restored {record.item}")


@bin_app.command("purge")
def bin_purge(id: Annotated[str, typer.Argument(help="Entry id")]):
    """Permanently delete one entry."""
    entry = _get_session().tracker().purge(id)
    if entry is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Permanently deleted {entry.item}")


@bin_app.command("empty")
def bin_empty(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
):
    """Permanently delete every entry in the recycle bin."""
    if not yes and not typer.confirm("Permanently delete everything in the recycle bin?"):
        raise typer.Exit(0)
    count = _get_session().tracker().empty_bin()
    typer.echo(f"Emptied the recycle bin ({count} entries)")


@bin_app.command("sweep")
def bin_sweep():
    """Drop entries deleted more than 30 days ago (local only)."""
    expired = _get_session().tracker().sweep_bin()
    typer.echo(f"Swept {len(expired)} expired entries")


# -----------------------------------------------------------------------------
# Sync
# -----------------------------------------------------------------------------

sync_app = typer.Typer(
    name="sync",
    help="Cloud sync: push, pull, merge, status.",
    rich_markup_mode=None,
)
app.add_typer(sync_app)


@sync_app.command("push")
def sync_push():
    """Upload all local data (local wins)."""
    session = _get_session()
    _echo_result(session.reconciler().push(session.owner_id))


@sync_app.command("pull")
def sync_pull(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
):
    """Replace local data with the cloud copy (cloud wins)."""
    session = _get_session()
    reconciler = session.reconciler()
    if not yes and not typer.confirm(
        "Pull replaces all local data; anything not pushed is lost. Continue?"
    ):
        raise typer.Exit(0)
    _echo_result(reconciler.pull(session.owner_id))


@sync_app.command("merge")
def sync_merge():
    """Exchange records missing on either side."""
    session = _get_session()
    _echo_result(session.reconciler().merge(session.owner_id))


@sync_app.command("status")
def sync_status():
    """Show local and cloud counts."""
    session = _get_session()
    status = session.reconciler().status(session.owner_id)
    if _get_json_output():
        typer.echo(json.dumps(asdict(status)))
        return
    typer.echo(f"Local:  {status.local_records} records, {status.local_bin} in recycle bin")
    typer.echo(f"Cloud:  {status.remote_records} records, {status.remote_bin} in recycle bin")
    if status.last_sync:
        typer.echo(f"Last sync: {local_display(status.last_sync)}")


# -----------------------------------------------------------------------------
# Data Management
# -----------------------------------------------------------------------------

data_app = typer.Typer(
    name="data",
    help="Data management: export, import, clear.",
    rich_markup_mode=None,
)
app.add_typer(data_app)


@data_app.command("export")
def data_export(
    output: Annotated[str, typer.Argument(help="Output file path (use '-' for stdout)")],
):
    """Export items and recycle bin to JSON."""
    session = _get_session()
    payload = session.store.export_data()
    if output == "-":
        sys.stdout.write(payload + "\n")
        return
    Path(output).write_text(payload, encoding="utf-8")
    info = session.store.storage_info()
    typer.echo(
        f"Exported {info.records_count} records and {info.bin_count} "
        f"recycle bin entries to {output}",
        err=True,
    )


@data_app.command("import")
def data_import(
    file: Annotated[str, typer.Argument(help="JSON export file to import")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
):
    """Replace local data from a JSON export file."""
    if file == "-":
        payload = sys.stdin.read()
    else:
        path = Path(file)
        if not path.exists():
            typer.echo(f"Error: file not found: {file}", err=True)
            raise typer.Exit(1)
        payload = path.read_text(encoding="utf-8")

    if not yes and not typer.confirm("This replaces all local data. Continue?"):
        raise typer.Exit(0)

    result = _get_session().store.import_data(payload)
    typer.echo(result["message"], err=not result["success"])
    if not result["success"]:
        raise typer.Exit(1)


@data_app.command("clear")
def data_clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
):
    """Delete all local data. Cloud data is not touched."""
    if not yes and not typer.confirm("Delete all local data? This cannot be undone."):
        raise typer.Exit(0)
    if not _get_session().store.clear_all():
        typer.echo("Error: local storage unavailable", err=True)
        raise typer.Exit(1)
    typer.echo("Cleared all local data")


@data_app.command("info")
def data_info():
    """Show local storage usage."""
    info = _get_session().store.storage_info()
    if _get_json_output():
        typer.echo(json.dumps(asdict(info)))
        return
    typer.echo(
        f"{info.records_count} records, {info.bin_count} in recycle bin, "
        f"{info.storage_used} used"
        + ("" if info.is_available else " (storage unavailable)")
    )


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="itemkeeper CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
