"""Bounded storage calls.

Every call to the backing store carries a timeout and surfaces connection
failures as StorageUnavailable instead of hanging or leaking driver errors.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, PendingRollbackError

from ..errors import StorageUnavailable

T = TypeVar("T")


async def storage_call(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await a storage operation under ``timeout`` seconds.

    Args:
        operation: Short name of the operation, used in the error message.
        awaitable: The pending session or connection call.
        timeout: Seconds to wait before giving up.

    Returns:
        Whatever the awaitable returns.

    Raises:
        StorageUnavailable: On timeout, when the store cannot be reached, or
            when the session still holds a transaction from a dropped
            connection. The session must be rolled back before reuse.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StorageUnavailable(operation, exc) from exc
    except (OperationalError, InterfaceError, PendingRollbackError, OSError) as exc:
        raise StorageUnavailable(operation, exc) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StorageUnavailable(operation, exc) from exc
        raise
