import logging, sys, os
from datetime import date
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FILE_PREFIX = "bot-"
MAX_LOG_BYTES = 50 * 1024 * 1024
MAX_LOG_FILES = 7


def setup_logging(log_dir: Optional[str] = None):
    logger = logging.getLogger("tradewatch")
    if logger.handlers:
        return logger
    level = logging.INFO if os.getenv("ENV","dev")!="dev" else logging.DEBUG
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Path(log_dir) / f"{LOG_FILE_PREFIX}{date.today().isoformat()}.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=MAX_LOG_FILES,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
    logger.setLevel(level)
    return logger


def prune_old_logs(log_dir: str, today: Optional[date] = None) -> int:
    """Delete every daily log file (and its rotations) except today's. Returns the count removed."""
    directory = Path(log_dir)
    if not directory.is_dir():
        return 0
    keep_prefix = f"{LOG_FILE_PREFIX}{(today or date.today()).isoformat()}"
    removed = 0
    for path in directory.glob(f"{LOG_FILE_PREFIX}*.log*"):
        if path.name.startswith(keep_prefix):
            continue
        path.unlink()
        removed += 1
    return removed

