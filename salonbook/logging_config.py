"""
Logging configuration for SalonBook.

Single 'salonbook' logger; engine modules log through children of it
(salonbook.engine.reservations, salonbook.engine.maintenance, ...).

  Log file : logs/salonbook.log
  Rotation : 5 MB × 3 backups
  Level    : LOG_LEVEL env var (DEBUG / INFO / WARNING / ERROR / CRITICAL)
             defaults to INFO when unset
  Console  : LOG_CONSOLE=1 also mirrors WARNING and above to stderr

Usage
-----
    from salonbook.logging_config import configure_logging, log_call

    configure_logging()          # once at startup, idempotent

    @log_call
    def record_payment(reservation_id, amount):
        ...

Log format per line
-------------------
    2026-03-07 18:02:11 | INFO     | salonbook.engine.reservations | Created reservation 9f1c… (Lucia Gomez, 2026-03-14) total=340000.0
    2026-03-07 18:02:11 | INFO     | salonbook | OK   reservations_add | 38ms
    2026-03-07 18:02:15 | ERROR    | salonbook | FAIL reservations_pay | PaymentRejectedError: Payment of 300000.00 exceeds ... | 2ms
"""

import functools
import logging
import logging.handlers
import os
import sys
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "salonbook.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
_MAX_ARG_REPR = 120


def configure_logging() -> logging.Logger:
    """
    Set up the salonbook logger. Idempotent; called on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("salonbook")
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)

    file_handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if os.environ.get("LOG_CONSOLE", "").lower() in ("1", "true", "yes"):
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def _short_repr(value) -> str:
    """repr() clipped so whole reservation rows don't flood the log."""
    text = repr(value)
    if len(text) > _MAX_ARG_REPR:
        return text[:_MAX_ARG_REPR - 1] + "…"
    return text


def log_call(func):
    """
    Decorator: logs entry, clean exit, and exceptions for any function.

    - DEBUG on entry   : CALL <name> | args=(...)
    - INFO  on success : OK   <name> | <N>ms
    - ERROR on failure : FAIL <name> | ExcType: message | <N>ms   (then re-raises)
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("salonbook")
        name = func.__name__
        start = time.perf_counter()

        parts = [_short_repr(a) for a in args] + [f"{k}={_short_repr(v)}" for k, v in kwargs.items()]
        logger.debug(f"CALL {name} | args=({', '.join(parts) if parts else '-'})")

        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

        ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"OK   {name} | {ms}ms")
        return result

    return wrapper
