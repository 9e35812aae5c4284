"""Byte-in/byte-out preview derivation shared by every entry point."""

from __future__ import annotations

import base64
from dataclasses import dataclass

from PIL import Image

from drawing_previews.config import Settings
from drawing_previews.errors import InvalidInput
from drawing_previews.media import MediaKind, require_supported_kind
from drawing_previews.rasterizers import Rasterizer, build_rasterizer
from drawing_previews.resize_policy import DEFAULT_MAX_WIDTH
from drawing_previews.thumbnailing import (
    DEFAULT_JPEG_QUALITY,
    PREVIEW_MIME_TYPE,
    build_thumbnail_image,
    decode_raster,
    encode_jpeg,
)
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "pipeline"})


@dataclass(frozen=True)
class DerivedPreview:
    """Encoded preview raster ready to be stored or returned to a client."""

    width: int
    height: int
    data: bytes
    mime_type: str = PREVIEW_MIME_TYPE
    quality: int = DEFAULT_JPEG_QUALITY

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class ThumbnailPipeline:
    """Classify, decode or rasterize, resize and encode a source document.

    The pipeline performs no I/O and keeps no per-call state, so one instance
    can be shared across requests.
    """

    def __init__(
        self,
        rasterizer: Rasterizer,
        max_width: int = DEFAULT_MAX_WIDTH,
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._rasterizer = rasterizer
        self.max_width = max_width
        self.quality = quality

    def derive(self, source_bytes: bytes, declared_kind: str | MediaKind | None) -> DerivedPreview:
        """Return the preview for ``source_bytes`` declared as ``declared_kind``."""

        kind = require_supported_kind(declared_kind)
        if not source_bytes:
            raise InvalidInput("Source document is empty")

        raster = self._to_raster(source_bytes, kind)
        resized = build_thumbnail_image(raster, self.max_width)
        data = encode_jpeg(resized, self.quality)

        LOGGER.info(
            "preview_derived",
            extra={
                "kind": kind.value,
                "source_size": [raster.width, raster.height],
                "preview_size": [resized.width, resized.height],
                "bytes": len(data),
            },
        )
        return DerivedPreview(width=resized.width, height=resized.height, data=data, quality=self.quality)

    def _to_raster(self, source_bytes: bytes, kind: MediaKind) -> Image.Image:
        if kind is MediaKind.PAGINATED_DOCUMENT:
            return self._rasterizer.rasterize_first_page(source_bytes)
        return decode_raster(source_bytes)


def build_pipeline(settings: Settings, rasterizer: Rasterizer | None = None) -> ThumbnailPipeline:
    """Build a pipeline from settings, optionally with an explicit rasterizer."""

    thumb_cfg = settings.thumbnails
    return ThumbnailPipeline(
        rasterizer=rasterizer or build_rasterizer(settings),
        max_width=thumb_cfg.max_width,
        quality=thumb_cfg.jpeg_quality,
    )


__all__ = ["DerivedPreview", "ThumbnailPipeline", "build_pipeline"]
