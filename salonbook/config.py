"""
SalonBook Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Database: must be set in .env; never hardcode credentials here
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")

    # Local calendar for "today" (payment dates, default report month)
    TIMEZONE = os.getenv('TIMEZONE', 'America/Argentina/Buenos_Aires')

    # Trashed reservations older than this are purged
    TRASH_RETENTION_DAYS = int(os.getenv('TRASH_RETENTION_DAYS', '7'))

    # Fixed id of the single pricing_config row
    PRICING_CONFIG_ID = os.getenv('PRICING_CONFIG_ID', 'singleton')

    # Reporting
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '$')
    EXPORT_DIR = os.getenv('EXPORT_DIR', 'exports')


# Singleton instance
config = Config()
