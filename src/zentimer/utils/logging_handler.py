import logging
from pathlib import Path
from typing import Optional

from zentimer.config import LOG_DIR, LOG_FILE

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    config_dir: Path,
    name: str = "zentimer",
    level: int = logging.INFO,
    console: bool = False,
    handler_level: Optional[int] = None,
) -> logging.Logger:
    """Configure and return the package logger.

    Handlers are attached only once per process, so repeated CLI invocations
    inside one interpreter (tests) do not duplicate output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter(_FORMAT)
        try:
            log_dir = config_dir / LOG_DIR
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / LOG_FILE)
        except OSError:
            # Unwritable config dir: fall back to the console.
            console = True
        else:
            file_handler.setLevel(handler_level or level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        if console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(handler_level or level)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

    return logger
