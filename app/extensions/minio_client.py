from threading import Lock

import urllib3
from flask import current_app
from minio import Minio


_client = None
_client_signature = None
_ready_buckets = set()
_client_lock = Lock()


def _settings():
    config = current_app.config
    return (
        config["MINIO_ENDPOINT"],
        config["MINIO_ACCESS_KEY"],
        config["MINIO_SECRET_KEY"],
        config["MINIO_SECURE"],
        config["MINIO_CONNECT_TIMEOUT"],
        config["MINIO_READ_TIMEOUT"],
        config.get("MINIO_HTTP_POOL_MAXSIZE", 32),
    )


def get_minio_client():
    global _client, _client_signature

    signature = _settings()
    with _client_lock:
        if _client is not None and _client_signature == signature:
            return _client

        endpoint, access_key, secret_key, secure, connect_timeout, read_timeout, pool_size = signature
        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=connect_timeout, read=read_timeout),
            retries=False,
            maxsize=pool_size,
        )
        _client = Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            http_client=http_client,
        )
        _client_signature = signature
        _ready_buckets.clear()
        return _client


def ensure_bucket(client, bucket: str):
    if bucket in _ready_buckets:
        return
    if not client.bucket_exists(bucket):
        client.make_bucket(bucket)
    _ready_buckets.add(bucket)
