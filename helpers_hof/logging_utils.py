import logging
import io
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from helpers_hof.constants import DEFAULT_LOG_DIR

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class AutoFlushHandler(logging.StreamHandler):
    def emit(self, record):
        super().emit(record)
        self.flush()


def setup_logging(run_name, as_of_date, log_dir: Optional[str] = None, to_file: bool = True):
    """
    Create a per-run logger that writes to stdout, an in-memory buffer and
    (optionally) a log file.

    Returns:
        (logger, log_buffer)
    """
    # Unique logger name so repeated runs in one process don't share handlers
    timestamp = int(time.time() * 1000)
    process_id = os.getpid()
    logger_name = f"logger_{run_name}_{as_of_date}_{timestamp}_{process_id}"
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    log_buffer = io.StringIO()

    if logger.hasHandlers():
        logger.handlers.clear()

    # Memory buffer
    buffer_handler = logging.StreamHandler(log_buffer)
    buffer_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(buffer_handler)

    # Console (with auto flush)
    console_handler = AutoFlushHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if to_file:
        logs_dir = Path(log_dir or DEFAULT_LOG_DIR)
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp_str = time.strftime("%Y%m%d_%H%M%S")
        output_log_path = logs_dir / f"{run_name}_output_{timestamp_str}_{process_id}.txt"
        file_handler = logging.FileHandler(str(output_log_path), mode="w")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger, log_buffer


def get_logger(name: str, level=logging.INFO) -> logging.Logger:
    """Lightweight stream logger for library calls made outside a pipeline run."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = AutoFlushHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def save_logs_to_file(log_buffer, run_name, log_dir: Optional[str] = None, logger=None, reason: Optional[str] = None):
    """Persist the captured in-memory log buffer for the run."""
    try:
        if run_name is None or run_name == "":
            raise ValueError("run_name cannot be None or empty")

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        suffix = f"_{reason}" if reason else ""
        logs_dir = Path(log_dir or DEFAULT_LOG_DIR) / run_name
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / f"log_{timestamp}{suffix}.txt"

        log_path.write_text(log_buffer.getvalue(), encoding='utf-8')

        if logger:
            logger.info(f"✓ Logs saved: {log_path}")
        return str(log_path)

    except Exception as e:
        if logger:
            logger.warning(f"⚠ Warning: Could not save logs: {str(e)}")
        return None


def close_logger(logger: logging.Logger) -> None:
    """Close and detach all handlers (releases the per-run log file)."""
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
