"""Logging configuration for agentdeck"""

import logging
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


class ProjectOnlyFilter(logging.Filter):
    """Pass records from agentdeck loggers (and scripts run as __main__)"""

    def filter(self, record):
        return record.name.startswith('agentdeck.') or record.name == '__main__'


def _timed_handler(path: Path, level: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=path,
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_dir: Path | str, console: bool = True, console_level: int = logging.INFO) -> None:
    """Setup logging configuration for agentdeck

    Creates three log files in the log directory:
    - debug.log: DEBUG+ logs from agentdeck.* modules only
    - info.log: INFO+ logs from all modules
    - error.log: ERROR+ logs from all modules

    Additionally, logs from all modules are output to console (stderr)
    unless console is False. The ``run`` command turns the console handler
    off because stdout carries raw terminal output.

    All logs are rotated daily at midnight, keeping 30 days of history.

    Args:
        log_dir: Directory for the log files (created if missing)
        console: Whether to attach a console handler
        console_level: Minimum level for the console handler
    """
    if isinstance(log_dir, str):
        log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Define log format
    log_format = '%(asctime)s.%(msecs)03d - %(levelname)s - %(threadName)s - %(filename)s:%(lineno)d - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    formatter = logging.Formatter(log_format, datefmt=date_format)

    # Get root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels

    # Clear existing handlers to avoid duplicate logs
    root_logger.handlers.clear()

    # ==================== DEBUG Handler ====================
    debug_handler = _timed_handler(log_dir / "debug.log", logging.DEBUG, formatter)
    debug_handler.addFilter(ProjectOnlyFilter())
    root_logger.addHandler(debug_handler)

    # ==================== INFO Handler ====================
    root_logger.addHandler(_timed_handler(log_dir / "info.log", logging.INFO, formatter))

    # ==================== ERROR Handler ====================
    root_logger.addHandler(_timed_handler(log_dir / "error.log", logging.ERROR, formatter))

    # ==================== Console Handler ====================
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: log_dir={log_dir}")
