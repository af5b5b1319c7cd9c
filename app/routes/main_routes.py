from datetime import timezone

from flask import (
    Blueprint,
    Response,
    jsonify,
    stream_with_context,
    current_app,
    request,
)
from werkzeug.http import http_date, parse_date

from app.extensions import blob_store
from app.extensions.blob_store import MediaNotFoundError, MediaStorageError

main_bp = Blueprint("main", __name__)


@main_bp.route("/", methods=["GET"])
def main():
    return jsonify({"service": "forum", "status": "ok"}), 200


def _build_etag(value: str | None) -> str | None:
    if not value:
        return None
    value = str(value).strip()
    if not value:
        return None
    if value.startswith('"') and value.endswith('"'):
        return value
    return f'"{value}"'


def _as_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _matches_if_none_match(if_none_match: str | None, etag: str | None) -> bool:
    if not if_none_match or not etag:
        return False
    candidates = [part.strip() for part in if_none_match.split(",") if part.strip()]
    if "*" in candidates:
        return True
    etag_value = etag.strip('"')
    return any(candidate.strip('"') == etag_value for candidate in candidates)


def _matches_if_modified_since(if_modified_since: str | None, last_modified) -> bool:
    if not if_modified_since or not hasattr(last_modified, "timestamp"):
        return False

    since = parse_date(if_modified_since)
    if since is None:
        return False
    return int(_as_utc(last_modified).timestamp()) <= int(_as_utc(since).timestamp())


def _media_headers(stat):
    max_age = max(
        int(current_app.config.get("MEDIA_CACHE_MAX_AGE_SECONDS", 7 * 24 * 60 * 60)),
        0,
    )
    cache_control = f"public, max-age={max_age}"
    if current_app.config.get("MEDIA_CACHE_IMMUTABLE", True):
        cache_control = f"{cache_control}, immutable"

    headers = {
        "Cache-Control": cache_control,
        "Accept-Ranges": "bytes",
        "Content-Type": getattr(stat, "content_type", None) or "application/octet-stream",
    }

    size = getattr(stat, "size", None)
    if size is not None:
        headers["Content-Length"] = str(size)

    etag = _build_etag(getattr(stat, "etag", None))
    if etag:
        headers["ETag"] = etag

    last_modified = getattr(stat, "last_modified", None)
    if hasattr(last_modified, "timestamp"):
        headers["Last-Modified"] = http_date(_as_utc(last_modified).timestamp())

    return headers


@main_bp.route("/media/<path:object_name>", methods=["GET", "HEAD"])
def get_media(object_name: str):
    try:
        stat = blob_store.stat(object_name)
    except MediaNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except MediaStorageError as e:
        return jsonify({"error": str(e)}), 503

    headers = _media_headers(stat)

    if _matches_if_none_match(request.headers.get("If-None-Match"), headers.get("ETag")):
        return Response(status=304, headers=headers)
    if _matches_if_modified_since(
        request.headers.get("If-Modified-Since"),
        getattr(stat, "last_modified", None),
    ):
        return Response(status=304, headers=headers)

    if request.method == "HEAD":
        return Response(status=200, headers=headers)

    try:
        media = blob_store.open_stream(object_name)
    except MediaNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except MediaStorageError as e:
        return jsonify({"error": str(e)}), 503

    chunk_size = max(
        int(current_app.config.get("MEDIA_STREAM_CHUNK_SIZE", 256 * 1024)),
        1024,
    )

    def _stream():
        try:
            for chunk in media.stream(chunk_size):
                yield chunk
        finally:
            media.close()
            media.release_conn()

    return Response(
        stream_with_context(_stream()),
        status=200,
        headers=headers,
        direct_passthrough=True,
    )
