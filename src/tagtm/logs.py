import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional, Union

LOGGER_NAME = 'tagtm'
CONSOLE_HANDLER = 'tagtm.console'
DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "tagtm" / "logs"

DETAILED_FORMAT = '[%(asctime)s] %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _debug_enabled(environ: Mapping[str, str]) -> bool:
    return environ.get('TAGTM_DEBUG', '').lower() in ('1', 'true', 'yes')


def resolve_level(environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Console level from the environment.

    TAGTM_DEBUG wins over TAGTM_LOG_LEVEL; unknown names and an empty
    environment fall back to WARNING, so moves stay quiet unless asked.
    """
    environ = os.environ if environ is None else environ
    if _debug_enabled(environ):
        return logging.DEBUG
    name = environ.get('TAGTM_LOG_LEVEL', '').upper()
    level = logging.getLevelName(name) if name else logging.WARNING
    return level if isinstance(level, int) else logging.WARNING


def _console_handler(level: int, verbose_format: bool) -> logging.Handler:
    # stdout carries command output, diagnostics go to stderr
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(CONSOLE_HANDLER)
    handler.setFormatter(logging.Formatter(
        '%(levelname)-8s [%(name)s] %(message)s' if verbose_format else '%(levelname)s: %(message)s'
    ))
    handler.setLevel(level)
    return handler


def _file_handler(log_dir: Path) -> Optional[logging.Handler]:
    """Detailed DEBUG log under ``log_dir``, or None when the directory is unusable."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / "tagtm.log")
    except OSError:
        return None
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(level: Optional[int] = None, log_dir: Optional[Union[Path, str]] = None) -> logging.Logger:
    """
    (Re)configure the ``tagtm`` logger.

    Args:
        level: Console level; resolved from the environment when omitted.
        log_dir: Directory for the file log; TAGTM_LOG_DIR or the user data dir when omitted.

    Returns:
        The package logger. It never propagates to the root logger.
    """
    if level is None:
        level = resolve_level()
    if log_dir is None:
        log_dir = os.getenv('TAGTM_LOG_DIR') or DEFAULT_LOG_DIR

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Logger accepts all, handlers filter
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(level, verbose_format=level <= logging.DEBUG))
    file_handler = _file_handler(Path(log_dir))
    if file_handler is None:
        logger.debug(f"File logging disabled, cannot write to {log_dir}")
    else:
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def set_console_level(level: int) -> None:
    """Change only the console threshold; the file log keeps everything."""
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        if handler.get_name() == CONSOLE_HANDLER:
            handler.setLevel(level)


# Initialize logging when package is imported
setup_logging()


def get_logger(name: str = None):
    """Get a logger instance for a specific module."""
    if name:
        return logging.getLogger(f'{LOGGER_NAME}.{name}')
    return logging.getLogger(LOGGER_NAME)
