from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("memory", "aws")


def _int_env(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid {name} value: {raw}. Error: {e}. Using default: {default}")
        return default
    if value < minimum or value > maximum:
        logger.warning(
            f"{name} value {value} outside [{minimum}, {maximum}]. Using default: {default}"
        )
        return default
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "memory"
    aws_region: str = "us-east-1"
    aws_endpoint_url: Optional[str] = None
    challenges_table: str = "challenges"
    submissions_table: str = "submissions"
    users_table: str = "users"
    archives_bucket: str = "submission-archives"
    seed_data_file: Optional[str] = None
    log_level: int = 0
    log_file: Optional[str] = None
    cloudwatch_log_group: Optional[str] = None
    enable_request_logging: bool = True
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
        if backend not in STORAGE_BACKENDS:
            logger.warning(
                f"Unknown STORAGE_BACKEND value: {backend}. "
                f"Expected one of {', '.join(STORAGE_BACKENDS)}. Using default: memory"
            )
            backend = "memory"

        return cls(
            storage_backend=backend,
            aws_region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            aws_endpoint_url=os.getenv("AWS_ENDPOINT_URL") or None,
            challenges_table=os.getenv("DDB_TABLE_CHALLENGES", "challenges"),
            submissions_table=os.getenv("DDB_TABLE_SUBMISSIONS", "submissions"),
            users_table=os.getenv("DDB_TABLE_USERS", "users"),
            archives_bucket=os.getenv("ARCHIVES_BUCKET", "submission-archives"),
            seed_data_file=os.getenv("SEED_DATA_FILE") or None,
            log_level=_int_env("LOG_LEVEL", 0, 0, 2),
            log_file=os.getenv("LOG_FILE") or None,
            cloudwatch_log_group=os.getenv("CLOUDWATCH_LOG_GROUP") or None,
            enable_request_logging=_bool_env("ENABLE_REQUEST_LOGGING", True),
            port=_int_env("PORT", 8000, 1, 65535),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
