"""Configuration loader and typed settings for the drawing preview service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from drawing_previews.resize_policy import DEFAULT_MAX_WIDTH


@dataclass
class ThumbnailConfig:
    """Preview geometry, encoding and rasterization policy.

    Every entry point (upload, HTTP endpoints, backfill) reads the same
    values so previews look identical regardless of where they were made.
    """

    max_width: int = DEFAULT_MAX_WIDTH
    jpeg_quality: int = 80
    pdf_render_scale: float = 1.5
    rasterizer: str = "pymupdf"
    storage_prefix: str = "thumbnails"


@dataclass
class StorageConfig:
    """Object storage backend holding originals and previews."""

    backend: str = "local"
    bucket: str = "drawings"
    local_root: str = "data/storage"
    public_base_url: str | None = None


@dataclass
class DatabaseConfig:
    """Database target for document records when running against SQL."""

    primary_url: str = "sqlite:///data/drawings.db"


@dataclass
class SupabaseConfig:
    """Hosted backend credentials; usually supplied through the environment."""

    url: str | None = None
    service_key: str | None = None
    table: str = "drawings"


@dataclass
class BackfillConfig:
    """Pacing for the sequential backfill pass."""

    delay_seconds: float = 0.5


@dataclass
class HttpConfig:
    """Limits applied by the HTTP endpoints."""

    fetch_timeout_seconds: float = 30.0
    max_duration_seconds: int = 60
    max_upload_bytes: int = 50 * 1024 * 1024


@dataclass
class Settings:
    """Top-level application settings."""

    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    databases: DatabaseConfig = field(default_factory=DatabaseConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    backfill: BackfillConfig = field(default_factory=BackfillConfig)
    http: HttpConfig = field(default_factory=HttpConfig)


SUPABASE_URL_ENV_VARS = ("SUPABASE_URL", "VITE_SUPABASE_URL")
SUPABASE_KEY_ENV_VARS = ("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY")


def _project_root() -> Path:
    module_path = Path(__file__).resolve()
    try:
        return module_path.parents[2]
    except IndexError:  # pragma: no cover - shallow install layouts
        return module_path.parent


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Determine which settings file to load, honoring overrides."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv("DRAWING_PREVIEWS_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()

    candidates = [
        (Path.cwd() / "config" / "settings.yaml").resolve(),
        (_project_root() / "config" / "settings.yaml").resolve(),
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _apply_env_overrides(settings: Settings) -> Settings:
    url = _first_env(SUPABASE_URL_ENV_VARS)
    if url:
        settings.supabase.url = url
    key = _first_env(SUPABASE_KEY_ENV_VARS)
    if key:
        settings.supabase.service_key = key
    return settings


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults for anything missing.

    A missing or malformed file yields default settings. Supabase credentials
    from the environment always win over the file.
    """

    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return _apply_env_overrides(settings)

    with path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}

    if not isinstance(raw, dict):
        return _apply_env_overrides(settings)

    thumbnails_raw = _as_dict(raw.get("thumbnails"))
    thumb_cfg = settings.thumbnails
    if isinstance(thumbnails_raw.get("max_width"), int) and thumbnails_raw["max_width"] > 0:
        thumb_cfg.max_width = thumbnails_raw["max_width"]
    if isinstance(thumbnails_raw.get("jpeg_quality"), int):
        thumb_cfg.jpeg_quality = max(1, min(95, thumbnails_raw["jpeg_quality"]))
    if isinstance(thumbnails_raw.get("pdf_render_scale"), (int, float)) and thumbnails_raw["pdf_render_scale"] > 0:
        thumb_cfg.pdf_render_scale = float(thumbnails_raw["pdf_render_scale"])
    if isinstance(thumbnails_raw.get("rasterizer"), str):
        thumb_cfg.rasterizer = thumbnails_raw["rasterizer"]
    if isinstance(thumbnails_raw.get("storage_prefix"), str) and thumbnails_raw["storage_prefix"].strip("/"):
        thumb_cfg.storage_prefix = thumbnails_raw["storage_prefix"].strip("/")

    storage_raw = _as_dict(raw.get("storage"))
    storage_cfg = settings.storage
    if isinstance(storage_raw.get("backend"), str):
        storage_cfg.backend = storage_raw["backend"]
    if isinstance(storage_raw.get("bucket"), str):
        storage_cfg.bucket = storage_raw["bucket"]
    if isinstance(storage_raw.get("local_root"), str):
        storage_cfg.local_root = storage_raw["local_root"]
    if isinstance(storage_raw.get("public_base_url"), str):
        storage_cfg.public_base_url = storage_raw["public_base_url"]

    databases_raw = _as_dict(raw.get("databases"))
    if isinstance(databases_raw.get("primary_url"), str):
        settings.databases.primary_url = databases_raw["primary_url"]

    supabase_raw = _as_dict(raw.get("supabase"))
    supabase_cfg = settings.supabase
    if isinstance(supabase_raw.get("url"), str):
        supabase_cfg.url = supabase_raw["url"]
    if isinstance(supabase_raw.get("service_key"), str):
        supabase_cfg.service_key = supabase_raw["service_key"]
    if isinstance(supabase_raw.get("table"), str):
        supabase_cfg.table = supabase_raw["table"]

    backfill_raw = _as_dict(raw.get("backfill"))
    if isinstance(backfill_raw.get("delay_seconds"), (int, float)) and backfill_raw["delay_seconds"] >= 0:
        settings.backfill.delay_seconds = float(backfill_raw["delay_seconds"])

    http_raw = _as_dict(raw.get("http"))
    http_cfg = settings.http
    if isinstance(http_raw.get("fetch_timeout_seconds"), (int, float)):
        http_cfg.fetch_timeout_seconds = float(http_raw["fetch_timeout_seconds"])
    if isinstance(http_raw.get("max_duration_seconds"), int):
        http_cfg.max_duration_seconds = http_raw["max_duration_seconds"]
    if isinstance(http_raw.get("max_upload_bytes"), int):
        http_cfg.max_upload_bytes = http_raw["max_upload_bytes"]

    return _apply_env_overrides(settings)


__all__ = [
    "BackfillConfig",
    "DatabaseConfig",
    "HttpConfig",
    "SUPABASE_KEY_ENV_VARS",
    "SUPABASE_URL_ENV_VARS",
    "Settings",
    "StorageConfig",
    "SupabaseConfig",
    "ThumbnailConfig",
    "load_settings",
]
