"""Shared fixtures: synthesized images/PDFs, a filesystem bucket and a SQLite repository."""

from __future__ import annotations

import io
import uuid
from collections.abc import Callable, Iterator

import fitz
import pytest
from PIL import Image

from drawing_previews.association import PreviewAssociator
from drawing_previews.db import SourceDocument, open_primary_session
from drawing_previews.pipeline import ThumbnailPipeline
from drawing_previews.rasterizers import PyMuPdfRasterizer
from drawing_previews.repository import DocumentRecord, SqlDocumentRepository
from drawing_previews.storage import LocalObjectStore


def encode_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB", color: object = "steelblue") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color=color).save(buffer, format=fmt)
    return buffer.getvalue()


def build_pdf(pages: int = 1, width: float = 612, height: float = 792) -> bytes:
    doc = fitz.open()
    for index in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"Drawing sheet {index + 1}", fontsize=18)
        page.draw_rect(fitz.Rect(50, 100, 300, 400), color=(0, 0, 0), width=2)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture
def pdf_bytes() -> bytes:
    return build_pdf()


@pytest.fixture
def store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "storage", bucket="drawings")


@pytest.fixture
def session(tmp_path) -> Iterator[object]:
    db_session = open_primary_session(tmp_path / "drawings.db")
    try:
        yield db_session
    finally:
        db_session.close()


@pytest.fixture
def repository(session) -> SqlDocumentRepository:
    return SqlDocumentRepository(session)


@pytest.fixture
def pipeline() -> ThumbnailPipeline:
    return ThumbnailPipeline(PyMuPdfRasterizer(scale=1.5), max_width=400, quality=80)


@pytest.fixture
def associator(store, repository) -> PreviewAssociator:
    return PreviewAssociator(store, repository)


@pytest.fixture
def add_document(session, store) -> Callable[..., DocumentRecord]:
    """Store ``data`` in the bucket and insert a drawing row pointing at it."""

    def _add(file_name: str, file_type: str, data: bytes, created_at: float, preview_key: str | None = None) -> DocumentRecord:
        document_id = str(uuid.uuid4())
        storage_key = f"{int(created_at * 1000)}-{file_name}"
        store.upload(storage_key, data, content_type="application/octet-stream")
        row = SourceDocument(
            id=document_id,
            file_name=file_name,
            file_type=file_type,
            file_size=len(data),
            file_url=storage_key,
            thumbnail_url=preview_key,
            status="active",
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(row)
        session.commit()
        return DocumentRecord.from_model(row)

    return _add
