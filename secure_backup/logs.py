"""Logging setup: timestamped, leveled lines plus a ``server_error`` helper."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SERVER_ERROR_PREFIX = "server responded with error: "


class ClientLogger(logging.LoggerAdapter):
    def server_error(self, msg, *args, **kwargs) -> None:
        self.error(SERVER_ERROR_PREFIX + msg, *args, **kwargs)


def get_logger(name: str) -> ClientLogger:
    return ClientLogger(logging.getLogger(name), {})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
