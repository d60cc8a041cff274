"""Process-wide logging setup.

Call ``configure_logging()`` once at startup. Noisy third-party loggers get
their own levels so SQL echo or HTTP client chatter can be silenced
independently of application logs.
"""

import logging
import sys

from app.config import settings

_CATEGORY_LEVELS: dict[str, list[str]] = {
    "log_level_sql": ["sqlalchemy.engine", "sqlalchemy.pool"],
    "log_level_http": ["httpx", "httpcore", "botocore", "boto3"],
    "log_level_server": ["uvicorn", "uvicorn.access", "celery", "kombu"],
}


def _parse_level(value: str) -> int:
    level = logging.getLevelName(str(value).strip().upper())
    if isinstance(level, int):
        return level
    return logging.INFO


def configure_logging() -> None:
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
        root.addHandler(handler)

    for settings_field, logger_names in _CATEGORY_LEVELS.items():
        level = _parse_level(getattr(settings, settings_field, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug("Logging configured at %s", settings.log_level)
