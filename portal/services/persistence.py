from __future__ import annotations

import datetime
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from portal.core.errors import PersistenceUnavailable
from portal.core.metrics import PERSISTENCE_FAILURES
from portal.repos.stores import Stores
from portal.services.cache import CACHE_ERRORS

logger = logging.getLogger(__name__)

# Errors a store can raise when the database is unreachable or rejects
# the statement.  asyncpg connection failures surface as OSError.
STORE_ERRORS = (SQLAlchemyError, OSError)


def epoch_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@asynccontextmanager
async def acknowledged(
    stores: Stores,
    *,
    operation: str,
    user_id: str,
    module_id: str,
    commit: bool = True,
) -> AsyncIterator[None]:
    """Run a block of store calls and commit it, or fail loudly.

    Store errors are logged with (user, module, operation), the
    transaction is rolled back, and PersistenceUnavailable is raised.
    Success is only reported after commit() returns.

    With commit=False the block runs bare and errors propagate to the
    enclosing acknowledged() that owns the transaction.
    """
    if not commit:
        yield
        return

    context = {"user_id": user_id, "module_id": module_id, "operation": operation}
    try:
        yield
        await stores.commit()
    except STORE_ERRORS as exc:
        PERSISTENCE_FAILURES.labels(operation=operation).inc()
        logger.exception(
            "Store write not acknowledged: operation=%s user=%s module=%s",
            operation,
            user_id,
            module_id,
            extra=context,
        )
        try:
            await stores.rollback()
        except STORE_ERRORS:
            logger.warning("Rollback failed after %s", operation, extra=context)
        raise PersistenceUnavailable(operation, user_id, module_id) from exc


@asynccontextmanager
async def guarded_read(
    *, operation: str, user_id: str, module_id: str
) -> AsyncIterator[None]:
    """Translate store errors on a read path into PersistenceUnavailable."""
    try:
        yield
    except STORE_ERRORS as exc:
        PERSISTENCE_FAILURES.labels(operation=operation).inc()
        logger.exception(
            "Store read failed: operation=%s user=%s module=%s",
            operation,
            user_id,
            module_id,
            extra={"user_id": user_id, "module_id": module_id, "operation": operation},
        )
        raise PersistenceUnavailable(operation, user_id, module_id) from exc


@asynccontextmanager
async def guarded_cache(
    *, operation: str, user_id: str, module_id: str
) -> AsyncIterator[None]:
    """Translate cache backend errors into PersistenceUnavailable.

    For cached state the request cannot do without, such as the drawn
    test a submission is graded against.  The session mirror degrades
    instead and never goes through here.
    """
    try:
        yield
    except CACHE_ERRORS as exc:
        PERSISTENCE_FAILURES.labels(operation=operation).inc()
        logger.exception(
            "Cache unavailable: operation=%s user=%s module=%s",
            operation,
            user_id,
            module_id,
            extra={"user_id": user_id, "module_id": module_id, "operation": operation},
        )
        raise PersistenceUnavailable(operation, user_id, module_id) from exc
