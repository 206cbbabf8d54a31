"""
Create the expense and classification history tables.

Usage:
    python -m scripts.init_db
"""

import logging

from sqlalchemy import inspect

from app.config import get_settings
from app.db import engine, init_db

logger = logging.getLogger(__name__)


def main():
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    init_db()
    tables = inspect(engine).get_table_names()
    logger.info("Schema ready at %s: %s", settings.DATABASE_URL, ", ".join(sorted(tables)))


if __name__ == "__main__":
    main()
