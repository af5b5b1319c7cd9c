import os

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///forum.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "localhost:9000")
    MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "admin")
    MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "supersecret")
    MINIO_BUCKET = os.getenv("MINIO_BUCKET", "forum-media")
    MINIO_SECURE = _env_bool("MINIO_SECURE", False)
    MINIO_CONNECT_TIMEOUT = float(os.getenv("MINIO_CONNECT_TIMEOUT", "5"))
    MINIO_READ_TIMEOUT = float(os.getenv("MINIO_READ_TIMEOUT", "20"))
    MINIO_HTTP_POOL_MAXSIZE = int(os.getenv("MINIO_HTTP_POOL_MAXSIZE", "32"))
    APP_PUBLIC_BASE_URL = os.getenv("APP_PUBLIC_BASE_URL", "").strip()
    MEDIA_LOCAL_FALLBACK_ENABLED = _env_bool(
        "MEDIA_LOCAL_FALLBACK_ENABLED",
        True,
    )
    MEDIA_CACHE_MAX_AGE_SECONDS = int(
        os.getenv("MEDIA_CACHE_MAX_AGE_SECONDS", str(7 * 24 * 60 * 60))
    )
    MEDIA_CACHE_IMMUTABLE = _env_bool("MEDIA_CACHE_IMMUTABLE", True)
    MEDIA_STREAM_CHUNK_SIZE = int(os.getenv("MEDIA_STREAM_CHUNK_SIZE", str(256 * 1024)))

    # Conditional vote writes are re-run from the read when a concurrent
    # writer changed the record in between.
    VOTE_MAX_ATTEMPTS = int(os.getenv("VOTE_MAX_ATTEMPTS", "3"))

    # Remote summary providers in the order they are tried.
    SUMMARY_PROVIDERS = _env_list("SUMMARY_PROVIDERS", "huggingface,openai")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
    OPENAI_SUMMARY_MODEL = os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o-mini")
    HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY", "").strip()
    HUGGINGFACE_API_URL = os.getenv(
        "HUGGINGFACE_API_URL",
        "https://api-inference.huggingface.co/models",
    )
    HUGGINGFACE_SUMMARY_MODEL = os.getenv(
        "HUGGINGFACE_SUMMARY_MODEL",
        "facebook/bart-large-cnn",
    )
    SUMMARY_HTTP_TIMEOUT = float(os.getenv("SUMMARY_HTTP_TIMEOUT", "30"))

    SUMMARY_AUTO_GENERATE = _env_bool("SUMMARY_AUTO_GENERATE", True)
    SUMMARY_BACKGROUND_GENERATION = _env_bool("SUMMARY_BACKGROUND_GENERATION", True)
    POST_SUMMARY_THRESHOLD = int(os.getenv("POST_SUMMARY_THRESHOLD", "300"))
    THREAD_SUMMARY_THRESHOLD = int(os.getenv("THREAD_SUMMARY_THRESHOLD", "5"))
    MAX_POST_SUMMARY_LENGTH = int(os.getenv("MAX_POST_SUMMARY_LENGTH", "200"))
    MAX_THREAD_SUMMARY_LENGTH = int(os.getenv("MAX_THREAD_SUMMARY_LENGTH", "250"))
    SUMMARY_GENERATION_TIMEOUT_SECONDS = int(
        os.getenv("SUMMARY_GENERATION_TIMEOUT_SECONDS", "120")
    )
    SUMMARY_ERROR_TTL_SECONDS = int(os.getenv("SUMMARY_ERROR_TTL_SECONDS", "300"))

    # Credentialed CORS cannot use a wildcard origin.
    # Defaults include known dev ports + localhost any port.
    _default_cors_origins = [
        "http://localhost:8081",
        "http://localhost:19006",
        r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    ]
    _cors_origins_raw = os.getenv("CORS_ALLOWED_ORIGINS", "").strip()
    if _cors_origins_raw:
        _cors_origins = [
            item.strip() for item in _cors_origins_raw.split(",") if item.strip()
        ]
        _env_cors_origins = [
            origin for origin in _cors_origins if origin != "*"
        ]
        CORS_ALLOWED_ORIGINS = _env_cors_origins + [
            origin for origin in _default_cors_origins
            if origin not in _env_cors_origins
        ]
    else:
        CORS_ALLOWED_ORIGINS = _default_cors_origins
