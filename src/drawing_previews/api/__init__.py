"""Flask endpoints for thumbnail generation and drawing uploads."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests
from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import MethodNotAllowed, RequestEntityTooLarge

from drawing_previews.association import PreviewAssociator
from drawing_previews.backend import RepositoryScope, build_backend
from drawing_previews.config import Settings, load_settings
from drawing_previews.errors import InvalidInput, PreviewError, UpstreamFetchError
from drawing_previews.media import (
    fallback_icon_for,
    file_extension,
    media_kind_for_document,
    require_supported_kind,
)
from drawing_previews.pipeline import ThumbnailPipeline, build_pipeline
from drawing_previews.repository import DocumentRecord
from drawing_previews.storage import ObjectStore
from drawing_previews.upload import upload_document
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "api"})

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

Fetcher = Callable[[str, float, int], bytes]


def fetch_url(url: str, timeout: float, max_bytes: int) -> bytes:
    """Download ``url`` with ``requests``, refusing bodies larger than ``max_bytes``."""

    try:
        with requests.get(url, timeout=timeout, stream=True) as response:
            response.raise_for_status()
            chunks: list[bytes] = []
            received = 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                received += len(chunk)
                if received > max_bytes:
                    raise UpstreamFetchError(f"File at {url} exceeds {max_bytes} bytes")
                chunks.append(chunk)
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"Download failed for {url}: {exc}") from exc
    return b"".join(chunks)


def _error_response(exc: PreviewError, headers: dict[str, str] | None = None) -> tuple[Response, int]:
    response = jsonify(exc.to_payload())
    if headers:
        response.headers.update(headers)
    return response, exc.status_code


def _unexpected_response(exc: Exception, headers: dict[str, str] | None = None) -> tuple[Response, int]:
    LOGGER.exception("thumbnail_request_crashed", extra={"path": request.path, "error": str(exc)})
    response = jsonify({"error": "Failed to generate thumbnail", "message": str(exc)})
    if headers:
        response.headers.update(headers)
    return response, 500


def _json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _document_payload(document: DocumentRecord, store: ObjectStore) -> dict[str, Any]:
    return {
        "id": document.id,
        "fileName": document.file_name,
        "fileType": document.file_type,
        "fileSize": document.file_size,
        "fileUrl": document.storage_key,
        "thumbnailUrl": store.public_url(document.preview_key) if document.preview_key else None,
        "fallbackIcon": fallback_icon_for(document.file_type),
    }


def create_app(
    settings: Settings | None = None,
    *,
    pipeline: ThumbnailPipeline | None = None,
    store: ObjectStore | None = None,
    repository_scope: RepositoryScope | None = None,
    fetcher: Fetcher = fetch_url,
) -> Flask:
    """Build the Flask app; collaborators default to those configured in settings."""

    settings = settings or load_settings()
    pipeline = pipeline or build_pipeline(settings)
    if store is None or repository_scope is None:
        default_store, default_scope = build_backend(settings)
        store = store or default_store
        repository_scope = repository_scope or default_scope

    preview_prefix = settings.thumbnails.storage_prefix
    http_cfg = settings.http

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = http_cfg.max_upload_bytes

    @app.errorhandler(MethodNotAllowed)
    def _method_not_allowed(_exc: MethodNotAllowed) -> tuple[Response, int]:
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(_exc: RequestEntityTooLarge) -> tuple[Response, int]:
        return jsonify({"error": "Invalid request", "message": "Upload exceeds the size limit"}), 413

    @app.route("/api/generate-thumbnail", methods=["POST"])
    def generate_thumbnail() -> Any:
        """Derive a preview for a fetchable URL and return it inline as base64."""

        body = _json_body()
        file_url = body.get("fileUrl")
        file_type = body.get("fileType")

        try:
            if not file_url or not file_type or not isinstance(file_url, str) or not isinstance(file_type, str):
                raise InvalidInput("Missing fileUrl or fileType")
            kind = require_supported_kind(file_type)
            LOGGER.info("thumbnail_request", extra={"file_url": file_url, "file_type": file_type})
            source = fetcher(file_url, http_cfg.fetch_timeout_seconds, http_cfg.max_upload_bytes)
            preview = pipeline.derive(source, kind)
        except PreviewError as exc:
            LOGGER.warning(
                "thumbnail_request_failed",
                extra={"file_url": file_url, "error_type": type(exc).__name__, "error": exc.message},
            )
            return _error_response(exc)
        except Exception as exc:  # pragma: no cover
            return _unexpected_response(exc)

        return jsonify(
            {
                "success": True,
                "thumbnail": preview.to_base64(),
                "mimeType": preview.mime_type,
                "size": preview.size,
            }
        )

    @app.route("/functions/generate-thumbnail", methods=["POST", "OPTIONS"])
    def generate_stored_thumbnail() -> Any:
        """Derive and attach a preview for an object already in the bucket."""

        if request.method == "OPTIONS":
            return Response("ok", headers=CORS_HEADERS)

        body = _json_body()
        bucket_path = body.get("bucketPath")
        drawing_id = body.get("drawingId")

        try:
            if not bucket_path or not drawing_id:
                raise InvalidInput("Missing required parameters: bucketPath and drawingId")
            bucket_path = str(bucket_path)
            drawing_id = str(drawing_id)
            kind = require_supported_kind(file_extension(bucket_path))
            LOGGER.info("stored_thumbnail_request", extra={"bucket_path": bucket_path, "document_id": drawing_id})

            source = store.download(bucket_path)
            preview = pipeline.derive(source, kind)
            with repository_scope() as repository:
                associator = PreviewAssociator(store, repository, prefix=preview_prefix)
                reference = associator.attach_preview(drawing_id, preview)
        except PreviewError as exc:
            LOGGER.warning(
                "stored_thumbnail_request_failed",
                extra={"bucket_path": bucket_path, "error_type": type(exc).__name__, "error": exc.message},
            )
            return _error_response(exc, CORS_HEADERS)
        except Exception as exc:  # pragma: no cover
            return _unexpected_response(exc, CORS_HEADERS)

        response = jsonify(
            {
                "success": True,
                "thumbnailPath": reference.storage_key,
                "thumbnailUrl": reference.public_url,
                "drawingId": drawing_id,
                "mimeType": preview.mime_type,
                "size": preview.size,
            }
        )
        response.headers.update(CORS_HEADERS)
        return response

    @app.route("/api/drawings", methods=["POST"])
    def upload_drawing() -> Any:
        """Store an uploaded drawing; a failed preview never fails the upload."""

        uploaded = request.files.get("file")
        try:
            if uploaded is None or not uploaded.filename:
                raise InvalidInput("Missing file")
            data = uploaded.read()
            extra = {
                key: request.form[key]
                for key in ("part_number", "revision", "title", "description")
                if request.form.get(key)
            }
            with repository_scope() as repository:
                associator = PreviewAssociator(store, repository, prefix=preview_prefix)
                result = upload_document(
                    repository,
                    store,
                    pipeline,
                    associator,
                    file_name=uploaded.filename,
                    data=data,
                    content_type=uploaded.mimetype,
                    extra=extra,
                )
        except PreviewError as exc:
            return _error_response(exc)

        payload = _document_payload(result.document, store)
        payload["previewError"] = result.preview_error
        return jsonify(payload), 201

    @app.route("/api/drawings/<drawing_id>", methods=["GET"])
    def get_drawing(drawing_id: str) -> Any:
        """Return a drawing with either its preview URL or its fallback icon."""

        try:
            with repository_scope() as repository:
                document = repository.get(drawing_id)
        except PreviewError as exc:
            return _error_response(exc)
        if document is None:
            return jsonify({"error": "Not found", "message": f"Drawing {drawing_id} does not exist"}), 404

        payload = _document_payload(document, store)
        payload["mediaKind"] = media_kind_for_document(document.file_type, document.file_name).value
        return jsonify(payload)

    return app


__all__ = ["CORS_HEADERS", "create_app", "fetch_url"]
