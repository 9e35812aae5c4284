"""CLI entrypoint that generates previews for every drawing missing one.

Reads the backend URL and the service key from the environment (a ``.env``
file in the working directory is honored) and works against the hosted
backend. Credentials in settings.yaml do not count; the environment
variables must be set. Exits 0 when the pass completes, even if some
drawings failed, and 1 when credentials are missing or the drawing list
cannot be fetched.
"""

from __future__ import annotations

import os

import typer
from dotenv import load_dotenv

from drawing_previews.association import PreviewAssociator
from drawing_previews.backend import MissingCredentials, create_supabase_client
from drawing_previews.backfill import BackfillDriver, BackfillRun, ItemOutcome
from drawing_previews.config import SUPABASE_KEY_ENV_VARS, SUPABASE_URL_ENV_VARS, Settings, load_settings
from drawing_previews.errors import PreviewError
from drawing_previews.pipeline import build_pipeline
from drawing_previews.repository import DocumentRecord, SupabaseDocumentRepository
from drawing_previews.storage import SupabaseObjectStore
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "backfill_cli"})

_RULE = "=" * 60
_OUTCOME_LABELS = {
    ItemOutcome.SUCCEEDED: "ok",
    ItemOutcome.SKIPPED: "skipped",
    ItemOutcome.FAILED: "FAILED",
}


def _echo_progress(position: int, total: int, document: DocumentRecord, outcome: ItemOutcome, detail: str) -> None:
    typer.echo(f"[{position}/{total}] {document.file_name} ({document.id}): {_OUTCOME_LABELS[outcome]} - {detail}")


def _echo_summary(run: BackfillRun) -> None:
    typer.echo(_RULE)
    typer.echo("Summary:")
    typer.echo(f"  Successful: {run.succeeded}")
    typer.echo(f"  Skipped: {run.skipped}")
    typer.echo(f"  Failed: {run.failed}")
    for failure in run.failures:
        typer.echo(f"    - {failure.file_name} ({failure.document_id}): {failure.message}")


def _credentials_in_environment() -> bool:
    has_url = any(os.getenv(name) for name in SUPABASE_URL_ENV_VARS)
    has_key = any(os.getenv(name) for name in SUPABASE_KEY_ENV_VARS)
    return has_url and has_key


def _exit_missing_credentials() -> None:
    typer.echo(
        "Missing environment variables: set one of "
        f"{', '.join(SUPABASE_URL_ENV_VARS)} and one of {', '.join(SUPABASE_KEY_ENV_VARS)}",
        err=True,
    )
    raise typer.Exit(code=1)


def build_driver(settings: Settings) -> BackfillDriver:
    """Wire a backfill driver against the hosted backend described by ``settings``."""

    client = create_supabase_client(settings)
    repository = SupabaseDocumentRepository(client, table=settings.supabase.table)
    store = SupabaseObjectStore(client, bucket=settings.storage.bucket)
    return BackfillDriver(
        repository=repository,
        store=store,
        pipeline=build_pipeline(settings),
        associator=PreviewAssociator(store, repository, prefix=settings.thumbnails.storage_prefix),
        delay_seconds=settings.backfill.delay_seconds,
        on_progress=_echo_progress,
    )


def main() -> None:
    """Generate previews for all drawings that have none."""

    load_dotenv()
    if not _credentials_in_environment():
        _exit_missing_credentials()
    settings = load_settings()

    try:
        driver = build_driver(settings)
    except MissingCredentials:
        _exit_missing_credentials()

    typer.echo("Finding drawings without thumbnails...")
    try:
        run = driver.run()
    except PreviewError as exc:
        LOGGER.error("backfill_listing_failed", extra={"error": exc.message})
        typer.echo(f"Database query failed: {exc.message}", err=True)
        raise typer.Exit(code=1)

    if run.total == 0:
        typer.echo("All drawings already have thumbnails.")
        return

    _echo_summary(run)


def cli() -> None:
    """Console-script entrypoint."""

    typer.run(main)


if __name__ == "__main__":
    cli()


__all__ = ["build_driver", "cli", "main"]
