"""
Pytest configuration and shared fixtures for the purchase order API tests.

Every test that touches the database gets its own SQLite file under tmp_path,
created from the ORM metadata. The HTTP client drives the real FastAPI app
with the session dependency pointed at that database.
"""
import os

# Settings are read at import time by src.api.main; pin them before any import.
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["API_KEY"] = "test-api-key"
os.environ["PO_OPTIONAL_HEADER_COLUMNS"] = ""
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Any, Dict, List  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.orm import undefer  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402

from src.api.main import app  # noqa: E402
from src.core.deps import get_header_schema  # noqa: E402
from src.core.security import create_access_token  # noqa: E402
from src.db.base import Base  # noqa: E402
from src.db.models import PurchaseOrder, PurchaseOrderLine, Supplier  # noqa: E402
from src.db.session import build_session_maker, get_async_session  # noqa: E402
from src.domain.projection import HeaderSchema  # noqa: E402

DEFAULT_HEADER: Dict[str, Any] = {
    "po_number": "PO-1001",
    "order_book": "BOOK-A",
    "order_sheet_no": "SHEET-7",
    "supplier_code": "ACME01",
    "supplier_name": "Acme Supplies",
    "reference": "initial import",
    "order_type": "standard",
    "vat_percent": 15.0,
    "subtotal": 0.0,
    "vat_amount": 0.0,
    "total_amount": 0.0,
}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'purchase_orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def supplier_id(session_maker) -> int:
    async with session_maker() as s:
        row = Supplier(supplier_code="ACME01", supplier_name="Acme Supplies")
        s.add(row)
        await s.commit()
        return row.id


@pytest.fixture
def make_version(session_maker):
    """Insert a header version directly and return its id."""

    async def _make(**overrides: Any) -> int:
        values = {**DEFAULT_HEADER, **overrides}
        async with session_maker() as s:
            row = PurchaseOrder(**values)
            s.add(row)
            await s.commit()
            return row.id

    return _make


@pytest.fixture
def make_lines(session_maker):
    """Insert stored lines for a version, numbered in the order given."""

    async def _make(version_id: int, lines: List[Dict[str, Any]], line_type: str = "standard") -> None:
        async with session_maker() as s:
            owner = await s.get(PurchaseOrder, version_id)
            for number, line in enumerate(lines, start=1):
                s.add(
                    PurchaseOrderLine(
                        purchase_order_id=version_id,
                        po_number=owner.po_number,
                        supplier_code=owner.supplier_code,
                        supplier_name=owner.supplier_name,
                        line_no=number,
                        line_type=line_type,
                        **line,
                    )
                )
            await s.commit()

    return _make


@pytest.fixture
def fetch(session_maker):
    """Read committed state through a fresh session."""

    class _Fetch:
        async def version(self, version_id: int) -> PurchaseOrder:
            async with session_maker() as s:
                return await s.get(PurchaseOrder, version_id, options=[undefer(PurchaseOrder.exclusive_amount)])

        async def versions(self, po_number: str) -> List[PurchaseOrder]:
            async with session_maker() as s:
                result = await s.execute(
                    select(PurchaseOrder)
                    .where(PurchaseOrder.po_number == po_number)
                    .order_by(PurchaseOrder.id)
                )
                return list(result.scalars())

        async def lines(self, version_id: int) -> List[PurchaseOrderLine]:
            async with session_maker() as s:
                result = await s.execute(
                    select(PurchaseOrderLine)
                    .where(PurchaseOrderLine.purchase_order_id == version_id)
                    .order_by(PurchaseOrderLine.line_no)
                )
                return list(result.scalars())

    return _Fetch()


@pytest.fixture
async def client(session_maker):
    async def _session_override():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session_override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def legacy_columns():
    """Run the app as a deployment that still has the exclusive_amount column."""
    schema = HeaderSchema.from_optional_columns(["exclusive_amount"])
    app.dependency_overrides[get_header_schema] = lambda: schema
    yield schema
    app.dependency_overrides.pop(get_header_schema, None)


def bearer(*roles: str, user: str = "buyer") -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user, roles=list(roles))}"}


@pytest.fixture
def manager_headers() -> Dict[str, str]:
    return bearer("procurement:manage")


@pytest.fixture
def viewer_headers() -> Dict[str, str]:
    return bearer("procurement:view", user="auditor")


@pytest.fixture
def headers_for():
    """Build bearer headers for arbitrary roles."""
    return bearer
