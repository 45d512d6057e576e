#!/usr/bin/env python3
"""
Container entrypoint step: wait for the database, then `alembic upgrade head`.

Exits non-zero when the database never comes up or a migration fails, so the
API never starts against an unknown schema.
"""

import logging
import os
import sys
import time

from dotenv import load_dotenv

load_dotenv()

from core.database import check_db_connection  # noqa: E402
from core.logging import setup_logging  # noqa: E402

logger = logging.getLogger("run_migrations")

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini")


def alembic_config():
    from alembic.config import Config

    cfg = Config(ALEMBIC_INI)
    cfg.attributes["configure_logger"] = False
    return cfg


def wait_for_database(attempts: int, delay_s: float = 1.0) -> bool:
    for attempt in range(1, attempts + 1):
        if check_db_connection():
            return True
        logger.info(f"Database not ready ({attempt}/{attempts}), retrying in {delay_s}s")
        time.sleep(delay_s)
    return False


def main(max_retries: int = 30) -> int:
    setup_logging()

    if not wait_for_database(max_retries):
        logger.error(f"Database unavailable after {max_retries} attempts")
        return 1

    from alembic import command

    try:
        command.upgrade(alembic_config(), "head")
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return 1

    logger.info("Schema is at head")
    return 0


if __name__ == "__main__":
    sys.exit(main())
