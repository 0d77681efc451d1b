import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from hackhub.core.config import IS_PRODUCTION, STARTUP_RETRY_ATTEMPTS, STARTUP_RETRY_DELAY
from hackhub.db.base import Base
from hackhub.db.session import engine

logger = logging.getLogger(__name__)


def wait_for_database(attempts: int = STARTUP_RETRY_ATTEMPTS, delay: float = STARTUP_RETRY_DELAY) -> None:
    """Block until the relational store answers ``SELECT 1``.

    Production fails fast on the first error. Elsewhere the check is retried
    with a fixed delay so a database container that starts late does not
    take the API down with it.
    """
    attempt = 1
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if IS_PRODUCTION or attempt >= attempts:
                logger.exception("Database connection failed after %s attempt(s)", attempt)
                raise
            logger.warning(
                "Database connection failed (attempt %s/%s), retrying in %.1fs",
                attempt,
                attempts,
                delay,
            )
            attempt += 1
            time.sleep(delay)


def init_db() -> None:
    wait_for_database()
    Base.metadata.create_all(bind=engine)
