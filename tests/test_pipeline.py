"""Tests for the byte-in/byte-out preview pipeline."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from drawing_previews.config import Settings
from drawing_previews.errors import DecodeError, InvalidInput, RasterizationError
from drawing_previews.media import MediaKind
from drawing_previews.pipeline import ThumbnailPipeline, build_pipeline
from drawing_previews.rasterizers import PdfiumRasterizer, PyMuPdfRasterizer


class _RecordingRasterizer:
    """Rasterizer double that records calls and returns a fixed raster."""

    def __init__(self, size: tuple[int, int] = (1200, 900)) -> None:
        self.calls = 0
        self.size = size

    def rasterize_first_page(self, data: bytes) -> Image.Image:
        self.calls += 1
        return Image.new("RGB", self.size, "white")


class _FailingRasterizer:
    def rasterize_first_page(self, data: bytes) -> Image.Image:
        raise RasterizationError("Document has no pages")


def _decode(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        decoded = image.copy()
        decoded.format = image.format
        return decoded


def test_large_raster_is_downscaled_to_400_by_300(pipeline, image_bytes) -> None:
    """A 1600x1200 image yields a JPEG that decodes to exactly 400x300."""

    preview = pipeline.derive(image_bytes(1600, 1200), "png")

    assert (preview.width, preview.height) == (400, 300)
    decoded = _decode(preview.data)
    assert decoded.format == "JPEG"
    assert decoded.size == (400, 300)
    assert preview.mime_type == "image/jpeg"
    assert preview.size == len(preview.data)


def test_small_raster_is_not_upscaled(pipeline, image_bytes) -> None:
    """A 300x200 image keeps its size."""

    preview = pipeline.derive(image_bytes(300, 200, fmt="JPEG"), "image/jpeg")

    assert _decode(preview.data).size == (300, 200)


def test_transparent_png_is_flattened_to_rgb(pipeline, image_bytes) -> None:
    data = image_bytes(800, 400, mode="RGBA", color=(255, 0, 0, 0))

    preview = pipeline.derive(data, MediaKind.RASTER_IMAGE)

    decoded = _decode(preview.data)
    assert decoded.mode == "RGB"
    assert decoded.size == (400, 200)
    red, green, blue = decoded.getpixel((200, 100))
    assert min(red, green, blue) > 240


def test_palette_gif_is_supported(pipeline, image_bytes) -> None:
    preview = pipeline.derive(image_bytes(500, 250, fmt="GIF", mode="P", color=3), "gif")

    assert _decode(preview.data).size == (400, 200)


def test_repeated_derivations_have_identical_dimensions(pipeline, image_bytes, pdf_bytes) -> None:
    """Deriving twice from the same input yields the same geometry."""

    raster = image_bytes(1024, 777)
    first = pipeline.derive(raster, "png")
    second = pipeline.derive(raster, "png")
    assert _decode(first.data).size == _decode(second.data).size

    doc_first = pipeline.derive(pdf_bytes, "pdf")
    doc_second = pipeline.derive(pdf_bytes, "pdf")
    assert _decode(doc_first.data).size == _decode(doc_second.data).size


def test_pdf_first_page_is_rendered_and_resized(pipeline, pdf_bytes) -> None:
    """A letter-size page rendered at 1.5x is downscaled to the max width."""

    preview = pipeline.derive(pdf_bytes, "application/pdf")

    # 612x792pt at 1.5x renders 918x1188, which scales to 400x518.
    assert (preview.width, preview.height) == (400, 518)
    assert _decode(preview.data).size == (400, 518)


def test_pdfium_rasterizer_matches_pymupdf_geometry(pdf_bytes) -> None:
    pdfium_pipeline = ThumbnailPipeline(PdfiumRasterizer(scale=1.5))

    preview = pdfium_pipeline.derive(pdf_bytes, "pdf")

    assert preview.width == 400
    assert abs(preview.height - 518) <= 1


@pytest.mark.parametrize("rasterizer", [PyMuPdfRasterizer(), PdfiumRasterizer()])
def test_corrupt_document_raises_rasterization_error(rasterizer) -> None:
    """Garbage declared as a PDF fails with RasterizationError and no bytes."""

    pipeline = ThumbnailPipeline(rasterizer)

    with pytest.raises(RasterizationError):
        pipeline.derive(b"this is not a pdf document at all", "pdf")


def test_zero_page_document_raises_rasterization_error() -> None:
    pipeline = ThumbnailPipeline(_FailingRasterizer())

    with pytest.raises(RasterizationError, match="no pages"):
        pipeline.derive(b"%PDF-1.7", MediaKind.PAGINATED_DOCUMENT)


def test_corrupt_raster_raises_decode_error(pipeline) -> None:
    with pytest.raises(DecodeError):
        pipeline.derive(b"\x89PNG\r\n\x1a\n truncated", "png")


def test_unsupported_kind_is_rejected_before_decoding() -> None:
    """An ``xlsx`` declaration fails with InvalidInput and never reaches a decoder."""

    rasterizer = _RecordingRasterizer()
    pipeline = ThumbnailPipeline(rasterizer)

    with pytest.raises(InvalidInput):
        pipeline.derive(b"PK\x03\x04 spreadsheet bytes", "xlsx")

    assert rasterizer.calls == 0


def test_empty_source_is_invalid_input(pipeline) -> None:
    with pytest.raises(InvalidInput):
        pipeline.derive(b"", "png")


def test_rasterizer_is_injected() -> None:
    """Documents are rendered by the injected rasterizer."""

    rasterizer = _RecordingRasterizer(size=(1600, 1200))
    pipeline = ThumbnailPipeline(rasterizer, max_width=200, quality=70)

    preview = pipeline.derive(b"%PDF-1.7 stub", "pdf")

    assert rasterizer.calls == 1
    assert (preview.width, preview.height) == (200, 150)
    assert preview.quality == 70


def test_build_pipeline_uses_settings() -> None:
    settings = Settings()
    settings.thumbnails.max_width = 256
    settings.thumbnails.jpeg_quality = 60
    settings.thumbnails.rasterizer = "pdfium"

    pipeline = build_pipeline(settings)

    assert pipeline.max_width == 256
    assert pipeline.quality == 60


def test_build_pipeline_rejects_unknown_rasterizer() -> None:
    settings = Settings()
    settings.thumbnails.rasterizer = "chromium"

    with pytest.raises(ValueError):
        build_pipeline(settings)


def test_to_base64_round_trips(pipeline, image_bytes) -> None:
    preview = pipeline.derive(image_bytes(50, 50), "png")

    assert base64.b64decode(preview.to_base64()) == preview.data
