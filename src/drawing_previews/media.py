"""Media-kind classification from caller-declared types and file names."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from drawing_previews.errors import InvalidInput


class MediaKind(str, Enum):
    """Kinds of source document the preview pipeline distinguishes."""

    PAGINATED_DOCUMENT = "paginated-document"
    RASTER_IMAGE = "raster-image"
    UNSUPPORTED = "unsupported"


RASTER_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp"})
DOCUMENT_EXTENSIONS = frozenset({"pdf"})
CAD_EXTENSIONS = frozenset({"dwg", "dxf"})

_DOCUMENT_MIME_TYPES = frozenset({"application/pdf"})


def classify_media_kind(declared: str | MediaKind | None) -> MediaKind:
    """Map a declared type (extension, MIME type or kind name) to a :class:`MediaKind`.

    Classification relies on the declared value only; the bytes are never
    sniffed.
    """

    if isinstance(declared, MediaKind):
        return declared
    if declared is None:
        return MediaKind.UNSUPPORTED

    value = str(declared).strip().lower()
    if value.startswith("."):
        value = value[1:]
    if not value:
        return MediaKind.UNSUPPORTED

    if value == MediaKind.PAGINATED_DOCUMENT.value or value in DOCUMENT_EXTENSIONS or value in _DOCUMENT_MIME_TYPES:
        return MediaKind.PAGINATED_DOCUMENT
    if value == MediaKind.RASTER_IMAGE.value or value in RASTER_EXTENSIONS or value.startswith("image/"):
        return MediaKind.RASTER_IMAGE
    return MediaKind.UNSUPPORTED


def require_supported_kind(declared: str | MediaKind | None) -> MediaKind:
    """Classify ``declared`` and raise :class:`InvalidInput` when it cannot be previewed."""

    kind = classify_media_kind(declared)
    if kind is MediaKind.UNSUPPORTED:
        raise InvalidInput(f"Unsupported file type: {declared}")
    return kind


def file_extension(name: str | None) -> str:
    """Return the lower-cased extension of ``name`` without the dot, or ``""``."""

    if not name:
        return ""
    return PurePosixPath(name).suffix.lower().lstrip(".")


def media_kind_for_document(file_type: str | None, file_name: str | None) -> MediaKind:
    """Classify a stored document by its declared type, then by its file name."""

    kind = classify_media_kind(file_type)
    if kind is not MediaKind.UNSUPPORTED:
        return kind
    return classify_media_kind(file_extension(file_name))


def fallback_icon_for(file_type: str | None) -> str:
    """Icon key that list views render when a document has no preview."""

    value = (file_type or "").strip().lower().lstrip(".")
    if value in CAD_EXTENSIONS:
        return "cad"
    if value in DOCUMENT_EXTENSIONS:
        return "pdf"
    return "image"


def preview_public_url(preview_key: str | None, base_url: str | None, bucket: str) -> str | None:
    """Expand a stored preview key into a public URL.

    Absolute ``http(s)`` values are returned unchanged; a missing key stays
    ``None``; relative keys without a ``base_url`` are returned as-is.
    """

    if not preview_key:
        return None
    if preview_key.startswith(("http://", "https://")):
        return preview_key
    clean_key = preview_key.lstrip("/")
    if not base_url:
        return clean_key
    return f"{base_url.rstrip('/')}/storage/v1/object/public/{bucket}/{clean_key}"


__all__ = [
    "CAD_EXTENSIONS",
    "DOCUMENT_EXTENSIONS",
    "MediaKind",
    "RASTER_EXTENSIONS",
    "classify_media_kind",
    "fallback_icon_for",
    "file_extension",
    "media_kind_for_document",
    "preview_public_url",
    "require_supported_kind",
]
