import time
import logging
import functools
from django.conf import settings
from django.db import DatabaseError, InterfaceError, OperationalError, transaction
from apps.utils.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

# PostgreSQL: serialization_failure / deadlock_detected
PG_RETRY_CODES = {"40001", "40P01"}
# MySQL: ER_LOCK_DEADLOCK / ER_LOCK_WAIT_TIMEOUT / server gone away / lost connection
MYSQL_RETRY_CODES = {1213, 1205, 2006, 2013}

TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize access",
    "database is locked",
    "server closed the connection",
    "lost connection",
    "connection already closed",
)


def _sqlstate(exc):
    # psycopg 3 exposes `sqlstate`, psycopg2 `pgcode`; Django keeps the driver error as __cause__
    for err in (exc, getattr(exc, "__cause__", None)):
        code = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if code:
            return code
    return None


def is_transient_store_error(exc: Exception) -> bool:
    """
    True for failures the store reports when a retry of the same unit of work
    can succeed: deadlocks, serialization failures, dropped connections.
    """
    if not isinstance(exc, (OperationalError, InterfaceError, DatabaseError)):
        return False

    code = _sqlstate(exc)
    if code in PG_RETRY_CODES:
        return True

    args = getattr(exc, "args", ())
    if args and args[0] in MYSQL_RETRY_CODES:
        return True

    if isinstance(exc, InterfaceError):
        return True

    msg = str(exc).lower()
    return any(marker in msg for marker in TRANSIENT_MARKERS)


class RetryOnTransientError:
    """
    Re-runs a whole unit of work when the store reports a transient failure.

    Must wrap the function OUTSIDE its `transaction.atomic()` block, so every
    attempt starts a fresh transaction. Inside an outer atomic block a retry
    would only replay a savepoint of a broken transaction, so no retry is made.
    """

    def __init__(self, operation, max_attempts=None, backoff=None):
        self.operation = operation
        self.max_attempts = max_attempts
        self.backoff = backoff

    def _settings(self):
        attempts = self.max_attempts or getattr(settings, "TRANSIENT_ERROR_MAX_ATTEMPTS", 2)
        backoff = self.backoff if self.backoff is not None else getattr(
            settings, "TRANSIENT_ERROR_BACKOFF", 0.05
        )
        return attempts, backoff

    def __call__(self, func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            max_attempts, backoff = self._settings()
            if transaction.get_connection().in_atomic_block:
                max_attempts = 1

            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_transient_store_error(e):
                        raise
                    if attempt >= max_attempts:
                        logger.exception(
                            f"{self.operation} failed after {attempt} attempt(s): {e}",
                            extra={"attempt": attempt},
                        )
                        raise TransientStoreError() from e

                    logger.warning(
                        f"{self.operation} hit a transient store error "
                        f"(attempt {attempt}/{max_attempts}), retrying: {e}",
                        extra={"attempt": attempt},
                    )
                    time.sleep(backoff * attempt)

        return wrapper


def retry_on_transient_error(operation, **kwargs):
    return RetryOnTransientError(operation, **kwargs)
