"""
Database Connection Management
One connection per unit of work: commit on success, roll back on error.
"""

import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
from pathlib import Path
import logging

from salonbook.config import config

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Sessions run in UTC so trash timestamps compare against the purge cutoff as stored
SESSION_OPTIONS = "-c timezone=UTC"


@contextmanager
def get_db_connection():
    """
    Yield a psycopg2 connection for one transaction.

    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT id FROM reservations WHERE status = 'trashed'")
    """
    conn = None
    try:
        conn = psycopg2.connect(config.DATABASE_URL, application_name="salonbook", options=SESSION_OPTIONS)
        logger.debug("Database connection established")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        if conn:
            conn.rollback()
            logger.error(f"Transaction rolled back: {e}")
        raise
    finally:
        if conn:
            conn.close()


@contextmanager
def get_db_cursor(dict_cursor=True):
    """
    Cursor inside its own transaction. Rows come back as dicts unless
    dict_cursor=False.

    Usage:
        with get_db_cursor() as cur:
            cur.execute("SELECT * FROM reservations WHERE id = %s", (reservation_id,))
            row = cur.fetchone()
    """
    with get_db_connection() as conn:
        cur = conn.cursor(cursor_factory=RealDictCursor if dict_cursor else None)
        try:
            yield cur
        finally:
            cur.close()


def init_schema() -> None:
    """Create tables and indexes from schema.sql. Safe to re-run."""
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    with get_db_cursor(dict_cursor=False) as cur:
        cur.execute(sql)
    logger.info(f"Schema applied from {SCHEMA_PATH.name}")
