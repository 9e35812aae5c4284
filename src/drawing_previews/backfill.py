"""Sequential backfill of previews for drawings that have none."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from drawing_previews.association import PreviewAssociator
from drawing_previews.errors import PreviewError
from drawing_previews.media import MediaKind, media_kind_for_document
from drawing_previews.pipeline import ThumbnailPipeline
from drawing_previews.repository import DocumentRecord, DocumentRepository
from drawing_previews.storage import ObjectStore
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "backfill"})


class ItemOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BackfillFailure:
    document_id: str
    file_name: str
    message: str


@dataclass
class BackfillRun:
    """Tally of one backfill pass; lives only for the duration of the run."""

    succeeded: int = 0
    skipped: int = 0
    failures: list[BackfillFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed

    def summary(self) -> dict[str, object]:
        return {
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [
                {"document_id": item.document_id, "file_name": item.file_name, "message": item.message}
                for item in self.failures
            ],
        }


ProgressCallback = Callable[[int, int, DocumentRecord, ItemOutcome, str], None]


class BackfillDriver:
    """Derive and attach previews for every drawing missing one, one at a time.

    Items are processed strictly in listing order (newest first). A failing
    item is recorded and the pass moves on; only a failed listing aborts.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        store: ObjectStore,
        pipeline: ThumbnailPipeline,
        associator: PreviewAssociator,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._repository = repository
        self._store = store
        self._pipeline = pipeline
        self._associator = associator
        self._delay_seconds = max(0.0, delay_seconds)
        self._sleep = sleep
        self._on_progress = on_progress

    def run(self) -> BackfillRun:
        """Process every drawing without a preview and return the tally."""

        documents = self._repository.list_missing_previews()
        total = len(documents)
        run = BackfillRun()

        LOGGER.info("backfill_start", extra={"pending": total})

        for index, document in enumerate(documents):
            outcome, detail = self._process(document)

            if outcome is ItemOutcome.SUCCEEDED:
                run.succeeded += 1
            elif outcome is ItemOutcome.SKIPPED:
                run.skipped += 1
            else:
                run.failures.append(BackfillFailure(document.id, document.file_name, detail))

            if self._on_progress is not None:
                self._on_progress(index + 1, total, document, outcome, detail)

            if self._delay_seconds and index < total - 1:
                self._sleep(self._delay_seconds)

        LOGGER.info(
            "backfill_complete",
            extra={"succeeded": run.succeeded, "skipped": run.skipped, "failed": run.failed},
        )
        return run

    def _process(self, document: DocumentRecord) -> tuple[ItemOutcome, str]:
        kind = media_kind_for_document(document.file_type, document.file_name)
        if kind is MediaKind.UNSUPPORTED:
            LOGGER.info(
                "backfill_item_skipped",
                extra={"document_id": document.id, "file_name": document.file_name, "file_type": document.file_type},
            )
            return ItemOutcome.SKIPPED, f"unsupported file type ({document.file_type or 'unknown'})"

        try:
            source = self._store.download(document.storage_key)
            preview = self._pipeline.derive(source, kind)
            reference = self._associator.attach_preview(document.id, preview)
        except PreviewError as exc:
            LOGGER.error(
                "backfill_item_failed",
                extra={
                    "document_id": document.id,
                    "file_name": document.file_name,
                    "error_type": type(exc).__name__,
                    "error": exc.message,
                },
            )
            return ItemOutcome.FAILED, exc.message
        except Exception as exc:  # pragma: no cover
            LOGGER.exception(
                "backfill_item_crashed",
                extra={"document_id": document.id, "file_name": document.file_name, "error": str(exc)},
            )
            return ItemOutcome.FAILED, str(exc) or type(exc).__name__

        LOGGER.info(
            "backfill_item_succeeded",
            extra={"document_id": document.id, "storage_key": reference.storage_key, "bytes": preview.size},
        )
        return ItemOutcome.SUCCEEDED, reference.storage_key


__all__ = ["BackfillDriver", "BackfillFailure", "BackfillRun", "ItemOutcome"]
