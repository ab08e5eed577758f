from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services should keep business logic and orchestration, delegating data access
    to repositories.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Commit everything done inside the block, or nothing.

        Reads issued before entering (for example the latest-version check)
        belong to the same transaction, since the session begins lazily and is
        only committed here. Database errors are rolled back and re-raised as
        PersistenceError; other errors are rolled back and propagate unchanged.
        """
        try:
            yield self.session
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Transaction rolled back after database error")
            raise PersistenceError(
                "A database error occurred; no changes were saved.",
                details={"error": str(exc)},
            ) from exc
        except Exception:
            await self.session.rollback()
            raise
