from app.extensions.redis_client import redis_client


def _generating_key(kind, post_id):
    return f"summary:generating:{kind}:{post_id}"


def _error_key(kind, post_id):
    return f"summary:error:{kind}:{post_id}"


def try_mark_generating(kind, post_id, ttl_seconds: int) -> bool:
    # SET NX is the in-flight claim; the expiry frees a subject whose
    # worker died mid-generation.
    return bool(
        redis_client.set(_generating_key(kind, post_id), "1", nx=True, ex=ttl_seconds)
    )


def clear_generating(kind, post_id):
    redis_client.delete(_generating_key(kind, post_id))


def is_generating(kind, post_id) -> bool:
    return bool(redis_client.exists(_generating_key(kind, post_id)))


def set_error(kind, post_id, message: str, ttl_seconds: int):
    redis_client.set(_error_key(kind, post_id), message, ex=ttl_seconds)


def get_error(kind, post_id):
    return redis_client.get(_error_key(kind, post_id))


def clear_error(kind, post_id):
    redis_client.delete(_error_key(kind, post_id))
