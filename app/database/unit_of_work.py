from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorClientSession

from app.core.config import settings
from app.database import connection

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work() -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """Group writes into one MongoDB transaction.

    Yields the session to pass to Beanie calls, or ``None`` when transactions
    are disabled (standalone servers, tests). Callers must then undo partial
    writes themselves.
    """
    if not settings.MONGODB_USE_TRANSACTIONS:
        yield None
        return

    client = connection.get_client()
    async with await client.start_session() as session:
        async with session.start_transaction():
            logger.debug("Transaction started")
            yield session
