"""Construction of storage/repository collaborators from settings."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Any

from supabase import Client, create_client

from drawing_previews.config import Settings
from drawing_previews.db import open_primary_session
from drawing_previews.repository import DocumentRepository, SqlDocumentRepository, SupabaseDocumentRepository
from drawing_previews.storage import ObjectStore, build_object_store

RepositoryScope = Callable[[], AbstractContextManager[DocumentRepository]]


class MissingCredentials(RuntimeError):
    """Raised when the hosted backend URL or service key is not configured."""


def create_supabase_client(settings: Settings) -> Client:
    """Create a privileged supabase client from settings/environment."""

    supabase_cfg = settings.supabase
    if not supabase_cfg.url or not supabase_cfg.service_key:
        raise MissingCredentials("Supabase URL and service key must both be set")
    return create_client(supabase_cfg.url, supabase_cfg.service_key)


def sql_repository_scope(database_url: str) -> RepositoryScope:
    """Return a factory yielding a SQL repository bound to a fresh session."""

    @contextmanager
    def _scope() -> Iterator[DocumentRepository]:
        session = open_primary_session(database_url)
        try:
            yield SqlDocumentRepository(session)
        finally:
            session.close()

    return _scope


def supabase_repository_scope(client: Any, table: str) -> RepositoryScope:
    """Return a factory yielding a repository over the hosted ``table``."""

    @contextmanager
    def _scope() -> Iterator[DocumentRepository]:
        yield SupabaseDocumentRepository(client, table=table)

    return _scope


def build_backend(settings: Settings) -> tuple[ObjectStore, RepositoryScope]:
    """Return the object store and repository scope selected by settings."""

    if settings.storage.backend.strip().lower() == "supabase":
        client = create_supabase_client(settings)
        return (
            build_object_store(settings, client=client),
            supabase_repository_scope(client, settings.supabase.table),
        )
    return build_object_store(settings), sql_repository_scope(settings.databases.primary_url)


__all__ = [
    "MissingCredentials",
    "RepositoryScope",
    "build_backend",
    "create_supabase_client",
    "sql_repository_scope",
    "supabase_repository_scope",
]
