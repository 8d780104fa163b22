"""
Goal engine logging.

Files under logs/ rotate at MAX_BYTES:
    system.log    everything from INFO up
    error.log     ERROR and CRITICAL with tracebacks
    corrupt.log   registry records that could not be read
Console (stderr) only shows WARNING and above.
"""
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGS_DIR = Path(__file__).parent.parent / "logs"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3

ROOT_LOGGER_NAME = "goal_engine"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach the file and console handlers to the engine logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        log_level: level for system.log
        console_level: level for stderr
        logs_dir: directory for the log files, defaults to LOGS_DIR
    """
    target_dir = logs_dir or LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root.addHandler(_rotating_handler(target_dir / "system.log", log_level, file_format))
    root.addHandler(_rotating_handler(target_dir / "error.log", logging.ERROR, file_format))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the engine logger, e.g. get_logger("service") -> goal_engine.service."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


def log_corrupt_record(source: Path, kind: str, position: int, raw: object, error: str) -> None:
    """
    Dump an unreadable stored record to corrupt.log and warn on the main log.

    Args:
        source: file the record came from
        kind: "goal" or "habit"
        position: index of the record in its list
        raw: the record as loaded
        error: why it could not be read
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    with open(LOGS_DIR / "corrupt.log", "a", encoding="utf-8") as f:
        f.write(f"[{datetime.now().isoformat()}] {source} {kind}[{position}]: {error}\n")
        f.write(f"  Raw: {raw!r}\n")

    get_logger("registry").warning(f"Skipped unreadable {kind} record {position} in {source}: {error}")
