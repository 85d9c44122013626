"""Logging setup for the dashboard service."""

import logging
import os
import sys

from pydantic import BaseModel

# The Supabase SDK logs every PostgREST request through these
SDK_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "uvicorn.access")


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_loggers: tuple[str, ...] = SDK_LOGGERS
    quiet_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Build the configuration from LOG_LEVEL."""
        return cls(level=os.getenv("LOG_LEVEL", "INFO"))


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger to write to stdout.

    Called once from the application lifespan.
    """
    config = config or LogConfig.from_env()

    logging.basicConfig(
        level=config.level.upper(),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,  # Replace handlers installed by uvicorn or pytest
    )

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(config.quiet_level.upper())


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return the module logger, leveled by LOG_LEVEL unless `level` is given."""
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger
