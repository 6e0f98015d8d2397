"""
PPCom Logging
=============
Handlers for the 'ppcom' logger hierarchy.

Console output is short (level, module, message) because the simulation
loop can log every evaluation at DEBUG. The optional log file also
carries wall-clock timestamps.
"""

import logging
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "ppcom"
CONSOLE_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Handlers added here carry this name prefix so setup can be repeated
_HANDLER_PREFIX = "ppcom."


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the package logger.

    Calling it again replaces the handlers it added before; handlers
    installed by anyone else are left alone.

    Args:
        level: Level as a number or a name such as "DEBUG"
        log_file: Optional path of a log file, overwritten on each run

    Returns:
        The 'ppcom' logger
    """
    level = _resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if (handler.get_name() or "").startswith(_HANDLER_PREFIX):
            logger.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.set_name(_HANDLER_PREFIX + "console")
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.set_name(_HANDLER_PREFIX + "file")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(file_handler)

    logger.debug("Logging at %s", logging.getLevelName(level))
    return logger
