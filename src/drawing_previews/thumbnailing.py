"""Pillow helpers for decoding, resizing and encoding preview rasters."""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError
from PIL.Image import Resampling

from drawing_previews.errors import DecodeError, EncodeError
from drawing_previews.resize_policy import compute_target_size
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "thumbnailing"})

PREVIEW_FORMAT = "JPEG"
PREVIEW_MIME_TYPE = "image/jpeg"
DEFAULT_JPEG_QUALITY = 80

_BACKGROUND = (255, 255, 255)


def _get_resample_filter() -> Resampling:
    """Return the resample filter used for every downscale."""

    return Resampling.LANCZOS


def decode_raster(data: bytes) -> Image.Image:
    """Decode compressed image bytes into a fully loaded, upright PIL image."""

    try:
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            image = ImageOps.exif_transpose(opened)
            if image is opened:
                image = opened.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc

    return image


def build_thumbnail_image(image: Image.Image, max_width: int) -> Image.Image:
    """Return a copy of ``image`` resized to the preview geometry for ``max_width``."""

    target_width, target_height = compute_target_size(image.width, image.height, max_width)
    if (target_width, target_height) == image.size:
        return image.copy()
    return image.resize((target_width, target_height), resample=_get_resample_filter())


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, _BACKGROUND)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode in ("I;16", "I", "F"):
        return image.convert("L").convert("RGB")
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def encode_jpeg(image: Image.Image, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Compress ``image`` to JPEG bytes at ``quality``; transparency is flattened onto white."""

    buffer = io.BytesIO()
    try:
        rgb = _flatten_to_rgb(image)
        rgb.save(buffer, format=PREVIEW_FORMAT, quality=quality)
    except (OSError, ValueError) as exc:
        LOGGER.error(
            "thumbnail_encode_error",
            extra={"mode": image.mode, "size": list(image.size), "quality": quality, "error": str(exc)},
        )
        raise EncodeError(f"Could not encode thumbnail: {exc}") from exc

    return buffer.getvalue()


__all__ = [
    "DEFAULT_JPEG_QUALITY",
    "PREVIEW_FORMAT",
    "PREVIEW_MIME_TYPE",
    "build_thumbnail_image",
    "decode_raster",
    "encode_jpeg",
]
