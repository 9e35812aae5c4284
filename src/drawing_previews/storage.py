"""Object storage backends for original documents and derived previews."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any, Protocol

from drawing_previews.config import Settings
from drawing_previews.errors import StorageWriteError, UpstreamFetchError
from drawing_previews.media import preview_public_url
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "storage"})


class ObjectStore(Protocol):
    """Minimal bucket interface used by the preview service."""

    bucket: str

    def download(self, key: str) -> bytes:
        ...

    def upload(self, key: str, data: bytes, *, content_type: str, upsert: bool = False) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...


def _validate_key(key: str) -> PurePosixPath:
    raw = (key or "").strip()
    if not raw:
        raise ValueError("storage key cannot be empty")
    path = PurePosixPath(raw.lstrip("/"))
    if ".." in path.parts:
        raise ValueError(f"storage key may not traverse directories: {key!r}")
    return path


class LocalObjectStore:
    """Bucket emulation on the local filesystem (``<root>/<bucket>/<key>``)."""

    def __init__(self, root: Path, bucket: str = "drawings", public_base_url: str | None = None) -> None:
        self.bucket = bucket
        self._bucket_root = (Path(root) / bucket).resolve()
        self._bucket_root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url

    def _path_for(self, key: str) -> Path:
        return self._bucket_root.joinpath(*_validate_key(key).parts)

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def download(self, key: str) -> bytes:
        try:
            return self._path_for(key).read_bytes()
        except (OSError, ValueError) as exc:
            raise UpstreamFetchError(f"Download failed for {key}: {exc}") from exc

    def upload(self, key: str, data: bytes, *, content_type: str, upsert: bool = False) -> None:
        try:
            path = self._path_for(key)
            if path.exists() and not upsert:
                raise StorageWriteError(f"Upload failed for {key}: object already exists")
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except StorageWriteError:
            raise
        except (OSError, ValueError) as exc:
            raise StorageWriteError(f"Upload failed for {key}: {exc}") from exc

        LOGGER.debug("object_stored", extra={"bucket": self.bucket, "key": key, "bytes": len(data), "content_type": content_type})

    def public_url(self, key: str) -> str:
        url = preview_public_url(key, self._public_base_url, self.bucket)
        return url or key


class SupabaseObjectStore:
    """Bucket access through the supabase-py storage client."""

    def __init__(self, client: Any, bucket: str = "drawings") -> None:
        self._client = client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self._client.storage.from_(self.bucket)

    def download(self, key: str) -> bytes:
        try:
            data = self._bucket().download(key)
        except Exception as exc:
            raise UpstreamFetchError(f"Download failed for {key}: {exc}") from exc
        if not data:
            raise UpstreamFetchError(f"Download failed for {key}: no data returned")
        return data

    def upload(self, key: str, data: bytes, *, content_type: str, upsert: bool = False) -> None:
        try:
            self._bucket().upload(
                key,
                data,
                file_options={"content-type": content_type, "upsert": "true" if upsert else "false"},
            )
        except Exception as exc:
            raise StorageWriteError(f"Upload failed for {key}: {exc}") from exc

    def public_url(self, key: str) -> str:
        return self._bucket().get_public_url(key)


def build_object_store(settings: Settings, client: Any | None = None) -> ObjectStore:
    """Return the object store selected by ``settings.storage.backend``."""

    storage_cfg = settings.storage
    backend = storage_cfg.backend.strip().lower()
    if backend == "local":
        return LocalObjectStore(
            Path(storage_cfg.local_root),
            bucket=storage_cfg.bucket,
            public_base_url=storage_cfg.public_base_url,
        )
    if backend == "supabase":
        if client is None:
            raise ValueError("supabase storage backend requires a client")
        return SupabaseObjectStore(client, bucket=storage_cfg.bucket)
    raise ValueError(f"Unsupported storage backend: {storage_cfg.backend!r}")


__all__ = ["LocalObjectStore", "ObjectStore", "SupabaseObjectStore", "build_object_store"]
