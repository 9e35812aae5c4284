"""Tests for declared-type classification and list-view fallbacks."""

from __future__ import annotations

import pytest

from drawing_previews.errors import InvalidInput
from drawing_previews.media import (
    MediaKind,
    classify_media_kind,
    fallback_icon_for,
    file_extension,
    media_kind_for_document,
    preview_public_url,
    require_supported_kind,
)


@pytest.mark.parametrize("declared", ["pdf", "PDF", ".pdf", "application/pdf", "paginated-document"])
def test_document_declarations(declared: str) -> None:
    assert classify_media_kind(declared) is MediaKind.PAGINATED_DOCUMENT


@pytest.mark.parametrize("declared", ["png", "JPG", "jpeg", "gif", "webp", "image/png", "image/tiff", "raster-image"])
def test_raster_declarations(declared: str) -> None:
    assert classify_media_kind(declared) is MediaKind.RASTER_IMAGE


@pytest.mark.parametrize("declared", ["xlsx", "dwg", "application/zip", "", None])
def test_unsupported_declarations(declared: str | None) -> None:
    assert classify_media_kind(declared) is MediaKind.UNSUPPORTED


def test_require_supported_kind_rejects_spreadsheets() -> None:
    """An ``xlsx`` declaration is rejected as invalid input."""

    with pytest.raises(InvalidInput, match="xlsx"):
        require_supported_kind("xlsx")


def test_document_kind_falls_back_to_file_name() -> None:
    """Records with an unknown declared type are classified by extension."""

    assert media_kind_for_document("", "Bracket-RevB.PDF") is MediaKind.PAGINATED_DOCUMENT
    assert media_kind_for_document(None, "photo.jpeg") is MediaKind.RASTER_IMAGE
    assert media_kind_for_document("dxf", "plan.dxf") is MediaKind.UNSUPPORTED


def test_declared_type_takes_precedence_over_extension() -> None:
    assert media_kind_for_document("pdf", "scan.png") is MediaKind.PAGINATED_DOCUMENT


def test_file_extension() -> None:
    assert file_extension("a/b/Part.Final.DWG") == "dwg"
    assert file_extension("README") == ""
    assert file_extension(None) == ""


@pytest.mark.parametrize(
    "file_type,expected",
    [("dwg", "cad"), ("DXF", "cad"), ("pdf", "pdf"), ("png", "image"), (None, "image")],
)
def test_fallback_icon_for(file_type: str | None, expected: str) -> None:
    assert fallback_icon_for(file_type) == expected


def test_preview_public_url() -> None:
    base = "https://example.supabase.co/"

    assert preview_public_url(None, base, "drawings") is None
    assert preview_public_url("https://cdn.example.com/t.jpg", base, "drawings") == "https://cdn.example.com/t.jpg"
    assert (
        preview_public_url("/thumbnails/abc.jpg", base, "drawings")
        == "https://example.supabase.co/storage/v1/object/public/drawings/thumbnails/abc.jpg"
    )
    assert preview_public_url("thumbnails/abc.jpg", None, "drawings") == "thumbnails/abc.jpg"
