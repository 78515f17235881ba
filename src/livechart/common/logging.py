import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(asctime)s - %(levelname)s:%(name)s:%(lineno)d:%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    filename_prefix: str = "livechart",
    console: bool = True,
    file: bool = False,
    json_format: bool = False,
) -> None:
    """Configure root logging for the feed client and scheduler.

    Args:
        level: The logging level to use (default: logging.INFO)
        log_dir: Directory to store log files (default: ./logs)
        filename_prefix: Prefix for log filename (default: 'livechart')
        console: Whether to output logs to console (default: True)
        file: Whether to output logs to file (default: False)
        json_format: Emit one JSON object per record instead of plain text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter: logging.Formatter
    if json_format:
        formatter = jsonlogger.JsonFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if file:
        if log_dir is None:
            log_dir = os.path.join(os.getcwd(), "logs")

        Path(log_dir).mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d")
        log_file = os.path.join(log_dir, f"{filename_prefix}_{timestamp}.log")

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        root_logger.info("Logging initialized - writing to %s", log_file)

    # aiohttp access chatter drowns the poll lines at DEBUG
    logging.getLogger("aiohttp").setLevel(max(level, logging.WARNING))


def log_level_from_name(name: str) -> int:
    """Map a level name such as ``"debug"`` to its logging constant."""
    value = logging.getLevelName(name.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {name}")
    return value
