"""First-page rasterizers for paginated documents.

Each adapter owns its rendering engine explicitly: the engine choice and
render scale are constructor arguments so tests can substitute a fake, and
every native handle is closed on every exit path.
"""

from __future__ import annotations

from typing import Protocol

import fitz  # PyMuPDF
import pypdfium2 as pdfium
from PIL import Image

from drawing_previews.config import Settings
from drawing_previews.errors import RasterizationError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "rasterizer"})

DEFAULT_RENDER_SCALE = 1.5


class Rasterizer(Protocol):
    """Turns page 1 of a paginated document into a pixel buffer."""

    def rasterize_first_page(self, data: bytes) -> Image.Image:
        ...


class PyMuPdfRasterizer:
    """Render the first PDF page with PyMuPDF at a fixed scale."""

    name = "pymupdf"

    def __init__(self, scale: float = DEFAULT_RENDER_SCALE) -> None:
        if scale <= 0:
            raise ValueError(f"render scale must be positive, got {scale}")
        self.scale = scale

    def rasterize_first_page(self, data: bytes) -> Image.Image:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise RasterizationError(f"Could not open document: {exc}") from exc

        try:
            if doc.page_count <= 0:
                raise RasterizationError("Document has no pages")
            page = doc.load_page(0)
            pix = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale), alpha=False)
            if pix.width <= 0 or pix.height <= 0:
                raise RasterizationError("First page rendered to an empty raster")
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        except RasterizationError:
            raise
        except Exception as exc:
            raise RasterizationError(f"Could not render first page: {exc}") from exc
        finally:
            doc.close()

        LOGGER.debug(
            "document_page_rasterized",
            extra={"engine": self.name, "scale": self.scale, "width": image.width, "height": image.height},
        )
        return image


class PdfiumRasterizer:
    """Render the first PDF page with pypdfium2 at a fixed scale."""

    name = "pdfium"

    def __init__(self, scale: float = DEFAULT_RENDER_SCALE) -> None:
        if scale <= 0:
            raise ValueError(f"render scale must be positive, got {scale}")
        self.scale = scale

    def rasterize_first_page(self, data: bytes) -> Image.Image:
        try:
            pdf = pdfium.PdfDocument(data)
        except Exception as exc:
            raise RasterizationError(f"Could not open document: {exc}") from exc

        page = None
        try:
            if len(pdf) <= 0:
                raise RasterizationError("Document has no pages")
            page = pdf[0]
            bitmap = page.render(scale=self.scale)
            image = bitmap.to_pil().convert("RGB")
        except RasterizationError:
            raise
        except Exception as exc:
            raise RasterizationError(f"Could not render first page: {exc}") from exc
        finally:
            if page is not None:
                page.close()
            pdf.close()

        LOGGER.debug(
            "document_page_rasterized",
            extra={"engine": self.name, "scale": self.scale, "width": image.width, "height": image.height},
        )
        return image


_RASTERIZERS: dict[str, type[PyMuPdfRasterizer] | type[PdfiumRasterizer]] = {
    PyMuPdfRasterizer.name: PyMuPdfRasterizer,
    PdfiumRasterizer.name: PdfiumRasterizer,
}


def build_rasterizer(settings: Settings) -> Rasterizer:
    """Instantiate the configured rasterizer with the configured render scale."""

    engine = settings.thumbnails.rasterizer.strip().lower()
    factory = _RASTERIZERS.get(engine)
    if factory is None:
        raise ValueError(f"Unsupported rasterizer: {settings.thumbnails.rasterizer!r}")
    return factory(scale=settings.thumbnails.pdf_render_scale)


__all__ = [
    "DEFAULT_RENDER_SCALE",
    "PdfiumRasterizer",
    "PyMuPdfRasterizer",
    "Rasterizer",
    "build_rasterizer",
]
