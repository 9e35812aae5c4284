"""Error taxonomy shared by the preview pipeline, storage layer and endpoints."""

from __future__ import annotations


class PreviewError(Exception):
    """Base class for every failure raised while deriving or storing a preview."""

    status_code: int = 500
    summary: str = "Failed to generate thumbnail"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        """Return the ``{"error", "message"}`` body used by the HTTP endpoints."""

        return {"error": self.summary, "message": self.message}


class InvalidInput(PreviewError):
    """Missing or malformed request fields, or an unrecognized media kind."""

    status_code = 400
    summary = "Invalid request"


class InvalidGeometry(PreviewError):
    """Zero or negative source dimensions."""

    status_code = 400
    summary = "Invalid image geometry"


class DecodeError(PreviewError):
    """Raster-image bytes could not be decoded."""

    status_code = 422
    summary = "Failed to decode image"


class RasterizationError(PreviewError):
    """A paginated document could not produce a first-page raster."""

    status_code = 422
    summary = "Failed to render document"


class EncodeError(PreviewError):
    """A pixel buffer could not be compressed to the preview format."""

    summary = "Failed to encode thumbnail"


class UpstreamFetchError(PreviewError):
    """Original bytes could not be retrieved."""

    status_code = 502
    summary = "Failed to download file"


class StorageWriteError(PreviewError):
    """Derived bytes could not be persisted."""

    status_code = 502
    summary = "Failed to upload thumbnail"


class RepositoryError(PreviewError):
    """Document metadata could not be listed, read or written."""

    status_code = 502
    summary = "Database operation failed"


class AssociationPartialFailure(PreviewError):
    """Preview bytes were persisted but the document record was not updated.

    ``storage_key`` points at the stored object so callers can retry the
    metadata update without deriving the preview again.
    """

    status_code = 502
    summary = "Failed to update drawing record"

    def __init__(self, message: str, *, document_id: str, storage_key: str) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.storage_key = storage_key


__all__ = [
    "AssociationPartialFailure",
    "DecodeError",
    "EncodeError",
    "InvalidGeometry",
    "InvalidInput",
    "PreviewError",
    "RasterizationError",
    "RepositoryError",
    "StorageWriteError",
    "UpstreamFetchError",
]
