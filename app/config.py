import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/recordhub"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_level_sql: str = os.getenv("LOG_LEVEL_SQL", "WARNING")
    log_level_http: str = os.getenv("LOG_LEVEL_HTTP", "WARNING")
    log_level_server: str = os.getenv("LOG_LEVEL_SERVER", "INFO")

    # Uploads (record images and documents)
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    upload_url_prefix: str = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    upload_max_size_bytes: int = int(
        os.getenv("UPLOAD_MAX_SIZE_BYTES", str(25 * 1024 * 1024))
    )  # 25MB

    # S3 / MinIO settings; local disk is used when these are empty
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "record-uploads")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")

    # Principal tokens
    jwt_secret: str = os.getenv("JWT_SECRET", "change-this-secret-in-production")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "recordhub")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "recordhub")
    jwt_expires_seconds: int = int(os.getenv("JWT_EXPIRES_SECONDS", "28800"))

    # Access control
    permission_cache_ttl_seconds: float = float(
        os.getenv("PERMISSION_CACHE_TTL_SECONDS", "60")
    )

    # Deletion policies: restrict | cascade | orphan (records), restrict | cascade (modules)
    record_child_delete_policy: str = os.getenv(
        "RECORD_CHILD_DELETE_POLICY", "restrict"
    )
    module_delete_policy: str = os.getenv("MODULE_DELETE_POLICY", "restrict")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = _env_bool("CELERY_TASK_ALWAYS_EAGER")

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "RecordHub")


settings = Settings()
