# storefront/utils/retry.py
import logging

from sqlalchemy.exc import OperationalError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type, before_sleep_log

from storefront.utils.settings import DB_RETRY_ATTEMPTS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def db_retry(*also):
    """
    Retries a whole use case on transient lock errors (deadlock, lock wait
    timeout, sqlite "database is locked"), plus any exception types in
    ``also``. Get-or-create commands pass ``IntegrityError`` so that losing
    an insert race re-reads the winner's row on the next attempt.

    The wrapped call must open and close its own transaction so every
    attempt starts from a clean session.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(DB_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type((OperationalError, *also)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
