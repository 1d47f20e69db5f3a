"""
Logging setup.

Modules log through logging.getLogger(__name__); handlers are only
installed here, at application startup.
"""

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Configure the vcinventory package logger.

    Args:
        level: Logging level, as int or name ("DEBUG").
        log_file: Optional file to also log to.
        format_string: Optional custom format string.
        handler: Optional custom handler (default: StreamHandler).

    Example:
        from vcinventory.core.log import configure_logging
        configure_logging(level="DEBUG")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
    logger = logging.getLogger("vcinventory")
    logger.setLevel(level)

    # Reconfiguring replaces earlier handlers
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
