"""attachgc Command Line Interface.

Entry point for the attachgc CLI tool.
"""

import signal
import threading
from dataclasses import dataclass
from pathlib import Path
from types import FrameType

import typer
from pydantic import ValidationError

from attachgc import __version__
from attachgc.contracts import InvalidKeyError
from attachgc.core.blob_store import BlobStore, FilesystemBlobStore
from attachgc.core.config import GcSettings, load_settings
from attachgc.core.index import EventJournal, IndexDB, IndexStore
from attachgc.core.logging import configure_logging
from attachgc.core.paths import make_key, parse_index_path
from attachgc.engine import DispatchConfig, GarbageCollector, TriggerDispatcher

app = typer.Typer(
    name="attachgc",
    help="attachgc: reference-counted garbage collection for attachment blobs.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"attachgc version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """attachgc: reference-counted garbage collection for attachment blobs."""
    pass


@dataclass
class _Runtime:
    """Components wired from settings for one CLI invocation."""

    db: IndexDB
    index_store: IndexStore
    collector: GarbageCollector
    dispatcher: TriggerDispatcher


def _load_config(settings: str) -> GcSettings:
    """Load settings, printing per-field errors and exiting on failure."""
    try:
        return load_settings(Path(settings))
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _build_blob_store(config: GcSettings) -> BlobStore:
    if config.blob_store.backend == "azure":
        from attachgc.plugins.azure.blob_store import AzureBlobStore

        # Presence of both is enforced by BlobStoreSettings
        assert config.blob_store.azure is not None
        assert config.blob_store.container is not None
        return AzureBlobStore.from_config(config.blob_store.azure, config.blob_store.container)
    return FilesystemBlobStore(config.blob_store.base_path)


def _build_runtime(config: GcSettings) -> _Runtime:
    configure_logging(config.logging.level, config.logging.format)
    try:
        db = IndexDB.from_url(config.index.url, echo=config.index.echo)
    except Exception as e:
        typer.echo(f"Error connecting to database: {e}", err=True)
        raise typer.Exit(1) from None

    journal = EventJournal(db)
    index_store = IndexStore(db, journal)
    collector = GarbageCollector(_build_blob_store(config), index_store)
    dispatcher = TriggerDispatcher(
        journal,
        collector,
        DispatchConfig(
            max_workers=config.trigger.max_workers,
            batch_size=config.trigger.batch_size,
            lease_seconds=config.trigger.lease_seconds,
            poll_interval_seconds=config.trigger.poll_interval_seconds,
        ),
    )
    return _Runtime(db=db, index_store=index_store, collector=collector, dispatcher=dispatcher)


@app.command()
def drain(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Deliver every pending index write event to the collector once."""
    runtime = _build_runtime(_load_config(settings))
    try:
        result = runtime.dispatcher.drain()
    finally:
        runtime.db.close()

    typer.echo(f"Drain completed in {result.duration_seconds:.2f}s:")
    typer.echo(f"  Events delivered: {result.delivered}")
    typer.echo(f"  Failed deletes (logged): {result.failed_deletes}")
    if result.crashed:
        typer.echo(f"  Handler crashes (will be redelivered): {result.crashed}")


@app.command()
def serve(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Poll the trigger journal and collect until interrupted."""
    runtime = _build_runtime(_load_config(settings))
    stop_event = threading.Event()

    def _request_stop(signum: int, frame: FrameType | None) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    typer.echo("Collector running. Press Ctrl+C to stop.")
    try:
        runtime.dispatcher.run(stop_event)
    finally:
        runtime.db.close()


@app.command()
def status(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Show trigger journal and index record counts."""
    runtime = _build_runtime(_load_config(settings))
    try:
        stats = runtime.index_store.journal.stats()
        records = runtime.index_store.count()
    finally:
        runtime.db.close()

    typer.echo(f"Index records: {records}")
    typer.echo(f"Pending events: {stats.pending}")
    typer.echo(f"Delivered events: {stats.delivered}")
    typer.echo(f"Redelivered events: {stats.retried}")


@app.command()
def collect(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    owner: str | None = typer.Option(None, "--owner", "-o", help="Owner (user) id."),
    content_hash: str | None = typer.Option(
        None, "--hash", help="Content hash of the attachment."
    ),
    record_path: str | None = typer.Option(
        None,
        "--path",
        "-p",
        help="Index record path, e.g. users/<owner>/attachments_index/<hash>.",
    ),
) -> None:
    """Run the collector for one key against its current index state.

    The key is given either as an index record path or as --owner plus --hash.
    Useful to finish a key whose events were delivered while a store was down.
    """
    try:
        if record_path is not None:
            key = parse_index_path(record_path)
        elif owner is not None and content_hash is not None:
            key = make_key(owner, content_hash)
        else:
            typer.echo("Error: Provide --path, or both --owner and --hash.", err=True)
            raise typer.Exit(1)
    except InvalidKeyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    runtime = _build_runtime(_load_config(settings))
    try:
        after = runtime.index_store.get(key)
        result = runtime.collector.collect(key, after)
    finally:
        runtime.db.close()

    if not result.orphaned:
        typer.echo(f"{key}: still referenced, nothing to do.")
        return

    if result.blob is not None:
        typer.echo(f"{key}: blob {result.blob.outcome.value}")
    if result.index is not None:
        typer.echo(f"{key}: index record {result.index.outcome.value}")
    if result.failed:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
