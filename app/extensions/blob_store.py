import io
import logging
import os

from flask import current_app, has_request_context, request
from minio.error import S3Error

from app.extensions.minio_client import ensure_bucket, get_minio_client


logger = logging.getLogger(__name__)

LOCAL_PREFIX = "static/"


class MediaStorageError(Exception):
    pass


class MediaNotFoundError(Exception):
    pass


def build_media_url(object_name: str) -> str:
    base_url = current_app.config.get("APP_PUBLIC_BASE_URL", "").rstrip("/")
    if not base_url and has_request_context():
        base_url = request.url_root.rstrip("/")

    path = object_name if object_name.startswith(LOCAL_PREFIX) else f"media/{object_name}"
    if base_url:
        return f"{base_url}/{path}"
    return f"/{path}"


def _as_stream(data):
    if isinstance(data, (bytes, bytearray)):
        return io.BytesIO(data), len(data)

    stream = getattr(data, "stream", data)
    try:
        stream.seek(0, 2)
        length = stream.tell()
        stream.seek(0)
    except (AttributeError, OSError):
        length = -1
    return stream, length


def _write_locally(path: str, data) -> str:
    relative_path = os.path.join("uploads", *path.split("/"))
    absolute_path = os.path.join(current_app.static_folder, relative_path)
    os.makedirs(os.path.dirname(absolute_path), exist_ok=True)

    stream, _ = _as_stream(data)
    with open(absolute_path, "wb") as target:
        target.write(stream.read())
    return LOCAL_PREFIX + "uploads/" + path


def upload(path: str, data, content_type: str) -> str:
    """Store ``data`` under ``path`` and return a URL it can be fetched from."""
    bucket = current_app.config["MINIO_BUCKET"]

    try:
        client = get_minio_client()
        ensure_bucket(client, bucket)
        stream, length = _as_stream(data)
        upload_kwargs = {
            "bucket_name": bucket,
            "object_name": path,
            "data": stream,
            "length": length,
            "content_type": content_type,
        }
        if length == -1:
            upload_kwargs["part_size"] = 10 * 1024 * 1024
        client.put_object(**upload_kwargs)
        return build_media_url(path)
    except Exception as e:
        if not current_app.config.get("MEDIA_LOCAL_FALLBACK_ENABLED", True):
            raise MediaStorageError("Media storage is unavailable") from e
        logger.warning("Object storage upload of %s failed, storing locally: %s", path, e)

    try:
        return build_media_url(_write_locally(path, data))
    except OSError as e:
        raise MediaStorageError("Media storage is unavailable") from e


def _is_not_found(error: S3Error) -> bool:
    return error.code in {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}


def stat(path: str):
    try:
        return get_minio_client().stat_object(
            bucket_name=current_app.config["MINIO_BUCKET"],
            object_name=path,
        )
    except S3Error as e:
        if _is_not_found(e):
            raise MediaNotFoundError("Media not found") from e
        raise MediaStorageError("Media unavailable") from e
    except Exception as e:
        raise MediaStorageError("Media unavailable") from e


def open_stream(path: str):
    """Open ``path`` for reading; the caller closes and releases the response."""
    try:
        return get_minio_client().get_object(
            bucket_name=current_app.config["MINIO_BUCKET"],
            object_name=path,
        )
    except S3Error as e:
        if _is_not_found(e):
            raise MediaNotFoundError("Media not found") from e
        raise MediaStorageError("Media unavailable") from e
    except Exception as e:
        raise MediaStorageError("Media unavailable") from e
