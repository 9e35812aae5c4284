"""Document record access for SQL databases and the hosted backend."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drawing_previews.db import SourceDocument
from drawing_previews.errors import RepositoryError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "repository"})


@dataclass(frozen=True)
class DocumentRecord:
    """Snapshot of a stored drawing as seen by the preview service."""

    id: str
    file_name: str
    file_type: str
    file_size: int
    storage_key: str
    preview_key: str | None = None
    created_at: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DocumentRecord":
        """Build a record from a ``drawings`` row returned by the hosted backend."""

        created = row.get("created_at")
        return cls(
            id=str(row["id"]),
            file_name=str(row.get("file_name") or ""),
            file_type=str(row.get("file_type") or ""),
            file_size=int(row.get("file_size") or 0),
            storage_key=str(row.get("file_url") or ""),
            preview_key=row.get("thumbnail_url"),
            created_at=created if isinstance(created, (int, float)) else 0.0,
        )

    @classmethod
    def from_model(cls, model: SourceDocument) -> "DocumentRecord":
        return cls(
            id=model.id,
            file_name=model.file_name,
            file_type=model.file_type,
            file_size=model.file_size,
            storage_key=model.file_url,
            preview_key=model.thumbnail_url,
            created_at=model.created_at,
        )


class DocumentRepository(Protocol):
    """Operations the preview service needs on document records."""

    def list_missing_previews(self) -> list[DocumentRecord]:
        ...

    def get(self, document_id: str) -> DocumentRecord | None:
        ...

    def create(
        self,
        *,
        file_name: str,
        file_type: str,
        file_size: int,
        storage_key: str,
        preview_key: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> DocumentRecord:
        ...

    def set_preview_key(self, document_id: str, preview_key: str) -> None:
        ...


_EXTRA_COLUMNS = ("part_number", "revision", "title", "description", "status")


class SqlDocumentRepository:
    """Repository over the SQLAlchemy ``drawings`` table."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_missing_previews(self) -> list[DocumentRecord]:
        stmt = (
            select(SourceDocument)
            .where(SourceDocument.thumbnail_url.is_(None))
            .order_by(SourceDocument.created_at.desc(), SourceDocument.id)
        )
        try:
            rows = self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Listing drawings without previews failed: {exc}") from exc
        return [DocumentRecord.from_model(row) for row in rows]

    def get(self, document_id: str) -> DocumentRecord | None:
        try:
            row = self._session.get(SourceDocument, document_id)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Loading drawing {document_id} failed: {exc}") from exc
        return DocumentRecord.from_model(row) if row is not None else None

    def create(
        self,
        *,
        file_name: str,
        file_type: str,
        file_size: int,
        storage_key: str,
        preview_key: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> DocumentRecord:
        now = time.time()
        model = SourceDocument(
            id=str(uuid.uuid4()),
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            file_url=storage_key,
            thumbnail_url=preview_key,
            status="active",
            created_at=now,
            updated_at=now,
        )
        for column in _EXTRA_COLUMNS:
            if extra and column in extra:
                setattr(model, column, extra[column])

        try:
            self._session.add(model)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RepositoryError(f"Creating drawing {file_name} failed: {exc}") from exc
        return DocumentRecord.from_model(model)

    def set_preview_key(self, document_id: str, preview_key: str) -> None:
        try:
            model = self._session.get(SourceDocument, document_id)
            if model is None:
                raise RepositoryError(f"Drawing {document_id} does not exist")
            model.thumbnail_url = preview_key
            model.updated_at = time.time()
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RepositoryError(f"Updating drawing {document_id} failed: {exc}") from exc


class SupabaseDocumentRepository:
    """Repository over the hosted backend's ``drawings`` table via supabase-py."""

    def __init__(self, client: Any, table: str = "drawings") -> None:
        self._client = client
        self._table = table

    def _query(self) -> Any:
        return self._client.table(self._table)

    def list_missing_previews(self) -> list[DocumentRecord]:
        try:
            response = (
                self._query().select("*").is_("thumbnail_url", "null").order("created_at", desc=True).execute()
            )
        except Exception as exc:
            raise RepositoryError(f"Listing drawings without previews failed: {exc}") from exc
        return [DocumentRecord.from_row(row) for row in response.data or []]

    def get(self, document_id: str) -> DocumentRecord | None:
        try:
            response = self._query().select("*").eq("id", document_id).limit(1).execute()
        except Exception as exc:
            raise RepositoryError(f"Loading drawing {document_id} failed: {exc}") from exc
        rows = response.data or []
        return DocumentRecord.from_row(rows[0]) if rows else None

    def create(
        self,
        *,
        file_name: str,
        file_type: str,
        file_size: int,
        storage_key: str,
        preview_key: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> DocumentRecord:
        row: dict[str, Any] = {
            "file_name": file_name,
            "file_type": file_type,
            "file_size": file_size,
            "file_url": storage_key,
            "thumbnail_url": preview_key,
            "status": "active",
        }
        for column in _EXTRA_COLUMNS:
            if extra and column in extra:
                row[column] = extra[column]

        try:
            response = self._query().insert(row).execute()
        except Exception as exc:
            raise RepositoryError(f"Creating drawing {file_name} failed: {exc}") from exc
        rows = response.data or []
        if not rows:
            raise RepositoryError(f"Creating drawing {file_name} returned no row")
        return DocumentRecord.from_row(rows[0])

    def set_preview_key(self, document_id: str, preview_key: str) -> None:
        try:
            response = self._query().update({"thumbnail_url": preview_key}).eq("id", document_id).execute()
        except Exception as exc:
            raise RepositoryError(f"Updating drawing {document_id} failed: {exc}") from exc
        if not response.data:
            LOGGER.warning("preview_key_update_matched_no_rows", extra={"document_id": document_id})
            raise RepositoryError(f"Drawing {document_id} does not exist")


__all__ = [
    "DocumentRecord",
    "DocumentRepository",
    "SqlDocumentRepository",
    "SupabaseDocumentRepository",
]
