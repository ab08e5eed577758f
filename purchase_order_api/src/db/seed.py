"""
Database seeding utilities for minimal reference data.

Seeds:
- Common units of measure (EA, KG, HR, M)
- A sample supplier (SAMPLE01) so external inserts can be tried end to end

Every step is insert-or-ignore, so running it twice changes nothing.

Usage:
  python -m src.db.run_migrations upgrade head
  python -m src.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Supplier
from src.db.session import get_async_session
from src.repositories.procurement import SupplierRepository, UnitOfMeasurementRepository

logger = logging.getLogger(__name__)

DEFAULT_UNITS: Tuple[str, ...] = ("EA", "KG", "HR", "M")
SAMPLE_SUPPLIER: Tuple[str, str] = ("SAMPLE01", "Sample Supplier Ltd")


# PUBLIC_INTERFACE
async def seed_all(session: Optional[AsyncSession] = None) -> None:
    """
    Seed the database with minimal reference data.

    Uses ``session`` when given (tests), otherwise opens one through the
    regular session dependency. Commits once at the end.
    """
    if session is not None:
        await _seed(session)
        return
    async for own_session in get_async_session():
        await _seed(own_session)


async def _seed(session: AsyncSession) -> None:
    await UnitOfMeasurementRepository(session).ensure_units(DEFAULT_UNITS)
    await _seed_supplier(session, *SAMPLE_SUPPLIER)
    await session.commit()


async def _seed_supplier(session: AsyncSession, code: str, name: str) -> None:
    repo = SupplierRepository(session)
    if await repo.get_by_code(code) is not None:
        return
    await repo.add(Supplier(supplier_code=code, supplier_name=name))
    await repo.flush()
    logger.info("Seeded supplier %s", code)


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
