from __future__ import annotations

import logging
from pathlib import Path

import boto3
import watchtower

from ..config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger.

    ``LOG_LEVEL`` 0 silences output, 1 logs INFO and 2 logs DEBUG. Output goes
    to ``LOG_FILE`` when set, otherwise to stderr. When a CloudWatch log group
    is configured, records are shipped there as well.
    """
    level_map = {
        0: logging.CRITICAL + 1,
        1: logging.INFO,
        2: logging.DEBUG,
    }
    level = level_map.get(settings.log_level, logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.touch()
        handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)
    handler.setLevel(level)
    root_logger.addHandler(handler)

    if settings.cloudwatch_log_group:
        cloudwatch = watchtower.CloudWatchLogHandler(
            log_group_name=settings.cloudwatch_log_group,
            boto3_client=boto3.client("logs", region_name=settings.aws_region),
        )
        cloudwatch.setFormatter(formatter)
        cloudwatch.setLevel(max(level, logging.INFO))
        root_logger.addHandler(cloudwatch)
