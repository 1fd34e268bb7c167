from __future__ import annotations

import logging
import os

from landlordos.infra.request_context import get_organization_id, get_user_id

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [org=%(organization_id)s user=%(user_id)s] %(message)s"
LOGGER_NAME = "landlordos"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.organization_id = get_organization_id() or "-"
        record.user_id = get_user_id() or "-"
        return True


def setup_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # uvicorn reload imports the app twice
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    stream_handler.addFilter(RequestContextFilter())
    logger.addHandler(stream_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    setup_logger()
    return logging.getLogger(name)
