"""
Utility functions for the RcuControl library
"""
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Callable, Any, Optional


class LogConst:
    FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
    MAX_BYTES = 5 * 1024 * 1024  # 5MB
    BACKUP_COUNT = 5


def run_with_keyboard_interrupt(main_func: Callable[[], Any]) -> None:
    """
    Run an async main function with graceful KeyboardInterrupt handling.

    This function wraps asyncio.run() to catch KeyboardInterrupt (Ctrl+C) and
    provide a clean shutdown experience. Any other error is printed and the
    process exits with status 1.

    Args:
        main_func: The async main function to run
    """
    try:
        asyncio.run(main_func())
    except KeyboardInterrupt:
        print("\n🛑 Interrupted by user (Ctrl+C)")
        print("Shutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


def setup_logging(name: str = "rcucontrol",
                  file: Optional[str] = None,
                  debug_file: Optional[str] = None,
                  level: int | str = logging.INFO,
                  console: bool = True) -> logging.Logger:
    """Configure a logger with rotating file handlers and an optional console handler.

    file gets records at level and above, debug_file gets everything. Both rotate at 5MB,
    keeping 5 backups. Existing handlers on the logger are replaced, so calling this twice
    does not duplicate output."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug_file else level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter(fmt=LogConst.FORMAT, datefmt=LogConst.DATE_FORMAT)

    if file:
        file_handler = RotatingFileHandler(file, maxBytes=LogConst.MAX_BYTES, backupCount=LogConst.BACKUP_COUNT)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if debug_file:
        debug_handler = RotatingFileHandler(debug_file, maxBytes=LogConst.MAX_BYTES, backupCount=LogConst.BACKUP_COUNT)
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(formatter)
        logger.addHandler(debug_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger
