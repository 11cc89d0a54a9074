"""
Logging helpers for dotnet_diagnose.

Every progress line carries a stage tag (``[trace]``, ``[upload]``,
``[cleanup]`` ...) so a run log reads the same whether it went to a rich
terminal, a plain pipe, or a file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


ROOT_LOGGER_NAME = "dotnet_diagnose"
TAGGED_FORMAT = "[%(stage)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(stage)s] %(message)s"


class StageTagFilter(logging.Filter):
    """Give untagged records a stage derived from their level."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "stage", None):
            record.stage = "error" if record.levelno >= logging.ERROR else "main"
        return True


class StageLogger(logging.LoggerAdapter):
    """LoggerAdapter that stamps every record with a fixed stage tag."""

    def __init__(self, logger: logging.Logger, stage: str):
        super().__init__(logger, {"stage": stage})

    @property
    def stage(self) -> str:
        return self.extra["stage"]

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("stage", self.extra["stage"])
        kwargs["extra"] = extra
        return msg, kwargs


def get_stage_logger(stage: str, name: Optional[str] = None) -> StageLogger:
    """Return a tagged logger under the dotnet_diagnose hierarchy."""
    logger_name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME
    return StageLogger(logging.getLogger(logger_name), stage)


def setup_logging(
    plain: bool = False,
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """
    Configure the dotnet_diagnose logger.

    Args:
        plain: Use a plain StreamHandler instead of rich rendering
        verbose: Enable DEBUG level
        log_file: Optional path for an additional file log
        console: Rich console to render to (default: stderr)

    Returns:
        The configured root logger of the package
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Re-configuration replaces handlers we installed earlier
    for handler in list(logger.handlers):
        if getattr(handler, "_dotnet_diagnose_handler", False):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    if plain:
        stream_handler: logging.Handler = logging.StreamHandler(sys.stderr)
    else:
        stream_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    stream_handler.setFormatter(logging.Formatter(TAGGED_FORMAT))
    stream_handler.addFilter(StageTagFilter())
    stream_handler._dotnet_diagnose_handler = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.addFilter(StageTagFilter())
        file_handler._dotnet_diagnose_handler = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    return logger
