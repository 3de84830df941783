"""Logging utilities shared by the engine, the application and the backends.

Every module logs through a named logger (e.g. 'switch_engine.controller');
:func:`setup_logging` attaches one handler to each project root logger so
the switcher's output lands in a single console stream or log file.
"""

import logging
import sys
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

PROJECT_LOGGERS = ('switch_engine', 'layout_switcher', 'common')


def get_logger(name: str | None = None) -> logging.Logger:
    """Create or retrieve a logger with consistent naming.

    Args:
        name: Logger name such as 'switch_engine.resolver'. If None, the
             calling module's ``__name__`` is used.

    Returns:
        logging.Logger: Logger instance

    Examples:
        >>> logger = get_logger('switch_engine.controller')
        >>> logger.debug('Armed switch')
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            name = frame.f_back.f_globals.get('__name__', 'layout_switcher')
        else:
            name = 'layout_switcher'

    return logging.getLogger(name)


class ISOFormatter(logging.Formatter):
    """Log formatter with ISO timestamp including milliseconds.

    Formats log messages as:
        <ISO-datetime-with-ms> <log-level> [<module>:<lineno>]: <message>
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat(timespec='milliseconds')
        message = f'{timestamp} {record.levelname} [{record.module}:{record.lineno}]: {record.getMessage()}'
        if record.exc_info:
            message += '\n' + self.formatException(record.exc_info)
        return message


def setup_logging(
    log_level: str = 'INFO',
    foreground: bool = True,
    log_file: Path | None = None,
    logger_names: Iterable[str] = PROJECT_LOGGERS,
) -> None:
    """Attach console and/or file handlers to the project loggers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        foreground: If True, log to stderr
        log_file: Optional log file; its parent directory is created
    """
    level = getattr(logging, log_level.upper())
    formatter = ISOFormatter()

    handlers: list[logging.Handler] = []
    if foreground:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for name in logger_names:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        for handler in handlers:
            handler.setLevel(level)
            logger.addHandler(handler)
        logger.propagate = False
