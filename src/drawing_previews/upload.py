"""Live upload flow: store the original, create the record, then try a preview."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, replace
from typing import Any, Mapping

from drawing_previews.association import PreviewAssociator
from drawing_previews.errors import InvalidInput, PreviewError
from drawing_previews.media import MediaKind, classify_media_kind, file_extension
from drawing_previews.pipeline import ThumbnailPipeline
from drawing_previews.repository import DocumentRecord, DocumentRepository
from drawing_previews.storage import ObjectStore
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "upload"})


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one upload; ``preview_error`` is set when no preview was made."""

    document: DocumentRecord
    preview_error: str | None = None


def original_storage_key(file_name: str, now: float | None = None) -> str:
    """Unique key for an uploaded original: ``<millis>-<random>.<ext>``."""

    millis = int((now if now is not None else time.time()) * 1000)
    ext = file_extension(file_name)
    suffix = f".{ext}" if ext else ""
    return f"{millis}-{secrets.token_hex(4)}{suffix}"


def _content_kind(content_type: str | None, file_name: str) -> MediaKind:
    kind = classify_media_kind(content_type)
    if kind is MediaKind.UNSUPPORTED:
        kind = classify_media_kind(file_extension(file_name))
    return kind


def upload_document(
    repository: DocumentRepository,
    store: ObjectStore,
    pipeline: ThumbnailPipeline,
    associator: PreviewAssociator,
    *,
    file_name: str,
    data: bytes,
    content_type: str | None = None,
    extra: Mapping[str, Any] | None = None,
) -> UploadResult:
    """Store an uploaded drawing and create its record.

    The record is created with no preview. A preview is then derived and
    attached; any failure there is logged and leaves the record without a
    preview key, it never fails the upload itself.
    """

    if not file_name or not data:
        raise InvalidInput("Missing file name or file content")

    storage_key = original_storage_key(file_name)
    store.upload(storage_key, data, content_type=content_type or "application/octet-stream")

    try:
        document = repository.create(
            file_name=file_name,
            file_type=file_extension(file_name),
            file_size=len(data),
            storage_key=storage_key,
            extra=extra,
        )
    except PreviewError as exc:
        LOGGER.error(
            "upload_record_failed",
            extra={"file_name": file_name, "storage_key": storage_key, "error": exc.message},
        )
        raise

    LOGGER.info("upload_stored", extra={"document_id": document.id, "storage_key": storage_key})

    kind = _content_kind(content_type, file_name)
    if kind is MediaKind.UNSUPPORTED:
        LOGGER.info("upload_preview_skipped", extra={"document_id": document.id, "content_type": content_type})
        return UploadResult(document=document)

    try:
        preview = pipeline.derive(data, kind)
        reference = associator.attach_preview(document.id, preview)
    except PreviewError as exc:
        LOGGER.warning(
            "upload_preview_failed",
            extra={"document_id": document.id, "error_type": type(exc).__name__, "error": exc.message},
        )
        return UploadResult(document=document, preview_error=exc.message)

    return UploadResult(document=replace(document, preview_key=reference.storage_key))


__all__ = ["UploadResult", "original_storage_key", "upload_document"]
