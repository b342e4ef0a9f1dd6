"""
Logging utilities.

Stage loggers live under the ``enet`` root logger. Console output goes
through ``tqdm.write`` so log lines do not tear the per-gene progress bars.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from tqdm import tqdm


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TqdmHandler(logging.StreamHandler):
    """Console handler that prints above active tqdm progress bars."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logger(
    name: str = "enet",
    log_file: Optional[Union[str, Path]] = None,
    level: Union[str, int] = "INFO",
    format_str: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure the package logger for a pipeline run.

    Calling it again replaces the handlers of the previous call, so repeated
    CLI invocations in one process do not duplicate lines.

    Parameters
    ----------
    name : str
        Logger name; stage loggers from ``get_logger`` are its children.
    log_file : str or Path, optional
        Also write the run log to this file.
    level : str or int
        Logging level name (DEBUG, INFO, WARNING, ERROR) or number.

    Returns
    -------
    logging.Logger
        Configured logger.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level!r}")
        level = resolved

    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_str)

    console = TqdmHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "enet") -> logging.Logger:
    """
    Get a logger nested under the package root logger.

    Stage modules ask for e.g. ``get_logger("node_selection")`` and receive
    ``enet.node_selection``, so a single ``setup_logger("enet")`` call
    configures every stage at once.
    """
    if name != "enet" and not name.startswith("enet."):
        name = f"enet.{name}"
    return logging.getLogger(name)
