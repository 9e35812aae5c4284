"""Persist derived previews and link them to their drawing record."""

from __future__ import annotations

from dataclasses import dataclass

from drawing_previews.errors import AssociationPartialFailure, InvalidInput, RepositoryError
from drawing_previews.pipeline import DerivedPreview
from drawing_previews.repository import DocumentRepository
from drawing_previews.storage import ObjectStore
from drawing_previews.thumbnailing import PREVIEW_MIME_TYPE
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "association"})

DEFAULT_PREVIEW_PREFIX = "thumbnails"


@dataclass(frozen=True)
class PreviewReference:
    """Location of a stored preview linked to a drawing."""

    document_id: str
    storage_key: str
    public_url: str


def preview_storage_key(document_id: str, prefix: str = DEFAULT_PREVIEW_PREFIX) -> str:
    """Return the key a document's preview is stored under.

    The key depends only on the document id, so regenerating a preview
    overwrites the previous object instead of leaving it orphaned.
    """

    clean_id = str(document_id).strip()
    if not clean_id or "/" in clean_id:
        raise InvalidInput(f"Invalid drawing id for preview key: {document_id!r}")
    return f"{prefix.strip('/')}/{clean_id}.jpg"


class PreviewAssociator:
    """Store preview bytes, then record the key on the drawing."""

    def __init__(self, store: ObjectStore, repository: DocumentRepository, prefix: str = DEFAULT_PREVIEW_PREFIX) -> None:
        self._store = store
        self._repository = repository
        self._prefix = prefix

    def attach_preview(self, document_id: str, preview: DerivedPreview | bytes) -> PreviewReference:
        """Write ``preview`` and point the drawing at it.

        Raises :class:`StorageWriteError` when the write fails (nothing is
        recorded) and :class:`AssociationPartialFailure` when the write
        succeeded but the record update did not.
        """

        data = preview.data if isinstance(preview, DerivedPreview) else preview
        content_type = preview.mime_type if isinstance(preview, DerivedPreview) else PREVIEW_MIME_TYPE
        storage_key = preview_storage_key(document_id, self._prefix)

        self._store.upload(storage_key, data, content_type=content_type, upsert=True)
        LOGGER.info("preview_stored", extra={"document_id": document_id, "storage_key": storage_key, "bytes": len(data)})

        return self.retry_link(document_id, storage_key)

    def retry_link(self, document_id: str, storage_key: str) -> PreviewReference:
        """Record ``storage_key`` on the drawing without touching stored bytes."""

        try:
            self._repository.set_preview_key(document_id, storage_key)
        except RepositoryError as exc:
            LOGGER.error(
                "preview_link_failed",
                extra={"document_id": document_id, "storage_key": storage_key, "error": str(exc)},
            )
            raise AssociationPartialFailure(
                f"Thumbnail stored at {storage_key} but drawing {document_id} was not updated: {exc.message}",
                document_id=document_id,
                storage_key=storage_key,
            ) from exc

        return PreviewReference(
            document_id=document_id,
            storage_key=storage_key,
            public_url=self._store.public_url(storage_key),
        )


__all__ = ["DEFAULT_PREVIEW_PREFIX", "PreviewAssociator", "PreviewReference", "preview_storage_key"]
