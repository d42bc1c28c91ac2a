"""Logging setup for the housie server.

``get_logger(name)`` installs a console handler and a file handler on the root
logger the first time it is called, using ``LOG_LEVEL`` and ``LOG_FILE`` from
the environment. Once configuration is loaded, ``configure_logging`` swaps
those handlers for ones built from the ``logging`` config section.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

DEFAULT_LOG_LEVEL = 'DEBUG'
DEFAULT_LOG_FILE = 'housie.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_handlers: List[logging.Handler] = []


def resolve_log_path(log_file: Optional[str] = None) -> Optional[Path]:
    """Relative paths resolve against the working directory; "-" disables the file."""
    if log_file == '-':
        return None
    path = Path(log_file or DEFAULT_LOG_FILE)
    return path if path.is_absolute() else Path.cwd() / path


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """(Re)install the housie handlers on the root logger."""
    level_name = str(level or os.getenv('LOG_LEVEL') or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()
    root.setLevel(numeric_level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _handlers.append(console)

    log_path = resolve_log_path(log_file if log_file is not None else os.getenv('LOG_FILE'))
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            _handlers.append(file_handler)
        except OSError:
            root.exception('Failed to create file log handler at %s; continuing with console only', log_path)

    for handler in _handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not _handlers:
        configure_logging()
    return logging.getLogger(name)
