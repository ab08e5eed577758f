import pytest
from sqlalchemy.exc import OperationalError

from src.core.exceptions import PersistenceError, ValidationError
from src.domain.projection import HeaderSchema, project_update
from src.domain.purchase_orders import OrderType, PurchaseOrderVersion
from src.domain.reconciliation import reconcile
from src.repositories.procurement import PurchaseOrderRepository, UnitOfMeasurementRepository, to_version
from src.services.version_writer import VersionWriter

OLD_LINES = [
    {"item_code": "OLD-1", "description": "Old pump", "quantity": 1, "unit": "EA", "unit_price": 10, "net_price": 10, "is_vatable": True},
    {"item_code": "OLD-2", "description": "Old hose", "quantity": 2, "unit": "M", "unit_price": 5, "net_price": 10, "is_vatable": True},
]

NEW_LINES = [
    {"item_code": "BOLT-10", "quantity": 2, "unit": "BOX", "unit_price": 100, "discount_percent": 10},
    {"item_code": "", "description": "", "quantity": 0},
    {"description": "Delivery", "net_price": 20, "unit": " EA "},
]


async def load(session, version_id: int) -> PurchaseOrderVersion:
    return to_version(await PurchaseOrderRepository(session).get_version(version_id))


@pytest.fixture
async def seeded(make_version, make_lines):
    version_id = await make_version(subtotal=20.0, vat_amount=3.0, total_amount=23.0)
    await make_lines(version_id, OLD_LINES)
    return version_id


async def test_in_place_write_keeps_id_and_replaces_lines(session, seeded, fetch):
    target = await load(session, seeded)
    reconciled = reconcile(NEW_LINES, target.order_type, 15)

    result = await VersionWriter(session).write(target, reconciled, fork_new_version=False)

    assert result.version_id == seeded
    assert result.forked is False
    assert result.line_count == 2
    assert result.total_amount == pytest.approx(230.0)

    stored = await fetch.version(seeded)
    assert stored.subtotal == pytest.approx(200.0)
    assert stored.vat_amount == pytest.approx(30.0)
    assert stored.total_amount == pytest.approx(230.0)
    assert stored.vat_percent == pytest.approx(15.0)
    assert stored.exclusive_amount is None

    lines = await fetch.lines(seeded)
    assert [line.line_no for line in lines] == [1, 2]
    assert [line.item_code for line in lines] == ["BOLT-10", ""]
    assert lines[0].net_price == pytest.approx(180.0)
    assert all(line.po_number == "PO-1001" for line in lines)
    assert all(line.supplier_name == "Acme Supplies" for line in lines)
    assert all(line.line_type == "standard" for line in lines)
    assert len(await fetch.versions("PO-1001")) == 1


async def test_fork_leaves_previous_version_untouched(session, seeded, fetch):
    target = await load(session, seeded)
    reconciled = reconcile(NEW_LINES, target.order_type, 15)

    result = await VersionWriter(session).write(target, reconciled, fork_new_version=True)

    assert result.forked is True
    assert result.version_id > seeded

    old = await fetch.version(seeded)
    assert old.total_amount == pytest.approx(23.0)
    assert [line.item_code for line in await fetch.lines(seeded)] == ["OLD-1", "OLD-2"]

    new = await fetch.version(result.version_id)
    assert new.po_number == old.po_number
    assert new.order_book == old.order_book
    assert new.order_sheet_no == old.order_sheet_no
    assert new.reference == old.reference
    assert new.order_type == "standard"
    assert new.total_amount == pytest.approx(230.0)
    new_lines = await fetch.lines(result.version_id)
    assert [line.line_no for line in new_lines] == [1, 2]
    assert all(line.purchase_order_id == result.version_id for line in new_lines)

    versions = await fetch.versions("PO-1001")
    assert [v.id for v in versions] == [seeded, result.version_id]


async def test_replacing_twice_with_same_lines_is_idempotent(session, seeded, fetch):
    writer = VersionWriter(session)
    target = await load(session, seeded)
    await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=False)
    first = [(l.line_no, l.item_code, l.net_price, l.is_vatable) for l in await fetch.lines(seeded)]

    target = await load(session, seeded)
    result = await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=False)
    second = [(l.line_no, l.item_code, l.net_price, l.is_vatable) for l in await fetch.lines(seeded)]

    assert first == second
    assert result.total_amount == pytest.approx(230.0)


async def test_units_are_catalogued_once(session, seeded):
    writer = VersionWriter(session)
    target = await load(session, seeded)
    await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=False)
    target = await load(session, seeded)
    await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=True)

    assert await UnitOfMeasurementRepository(session).list_labels() == ["BOX", "EA"]


async def test_legacy_column_receives_subtotal(session, seeded, fetch):
    writer = VersionWriter(session, HeaderSchema.from_optional_columns(["exclusive_amount"]))
    target = await load(session, seeded)
    await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=False)

    stored = await fetch.version(seeded)
    assert stored.exclusive_amount == pytest.approx(200.0)
    assert stored.subtotal == pytest.approx(200.0)


async def test_transactional_lines_do_not_touch_unit_catalogue(session, make_version, fetch):
    version_id = await make_version(po_number="PO-T1", order_type="transactional")
    target = await load(session, version_id)
    reconciled = reconcile(
        [
            {"description": "Run 1", "ex_vat_amount": 50, "line_vat_amount": 7.5, "line_total_amount": 57.5},
            {"description": "Run 2", "ex_vat_amount": 20, "line_vat_amount": 3, "line_total_amount": 23},
        ],
        target.order_type,
        15,
    )

    result = await VersionWriter(session).write(target, reconciled, fork_new_version=True)

    stored = await fetch.version(result.version_id)
    assert stored.order_type == "transactional"
    assert stored.subtotal == pytest.approx(70.0)
    assert stored.vat_amount == pytest.approx(10.5)
    assert stored.total_amount == pytest.approx(80.5)
    lines = await fetch.lines(result.version_id)
    assert [line.line_type for line in lines] == ["transactional", "transactional"]
    assert await UnitOfMeasurementRepository(session).list_labels() == []


async def test_mismatched_layout_is_rejected(session, seeded):
    target = await load(session, seeded)
    reconciled = reconcile([{"description": "x", "ex_vat_amount": 1}], OrderType.TRANSACTIONAL, 0)
    with pytest.raises(ValidationError):
        await VersionWriter(session).write(target, reconciled, fork_new_version=False)


async def test_database_failure_rolls_back_every_step(session, seeded, fetch, monkeypatch):
    writer = VersionWriter(session)
    target = await load(session, seeded)
    reconciled = reconcile(NEW_LINES, target.order_type, 15)

    async def broken_insert(owner, lines):
        raise OperationalError("INSERT INTO purchase_order_lines", {}, Exception("disk I/O error"))

    monkeypatch.setattr(writer.po_repo, "insert_lines", broken_insert)

    with pytest.raises(PersistenceError) as excinfo:
        await writer.write(target, reconciled, fork_new_version=False)
    assert excinfo.value.status_code == 500

    stored = await fetch.version(seeded)
    assert stored.total_amount == pytest.approx(23.0)
    assert [line.item_code for line in await fetch.lines(seeded)] == ["OLD-1", "OLD-2"]


async def test_failed_fork_leaves_no_new_version(session, seeded, fetch, monkeypatch):
    writer = VersionWriter(session)
    target = await load(session, seeded)

    async def broken_units(labels):
        raise RuntimeError("catalogue unavailable")

    monkeypatch.setattr(writer.uom_repo, "ensure_units", broken_units)

    with pytest.raises(RuntimeError):
        await writer.write(target, reconcile(NEW_LINES, target.order_type, 15), fork_new_version=True)

    assert [v.id for v in await fetch.versions("PO-1001")] == [seeded]


async def test_header_edit_in_place_resnapshots_lines(session, seeded, fetch):
    target = await load(session, seeded)
    projection = project_update(
        HeaderSchema.from_optional_columns([]),
        {"supplier_name": "Beta Traders", "supplier_code": "BETA01", "reference": "amended"},
    )

    result = await VersionWriter(session).write_header(target, projection, fork_new_version=False)

    assert result.version_id == seeded
    assert result.version.supplier_name == "Beta Traders"
    stored = await fetch.version(seeded)
    assert stored.reference == "amended"
    assert stored.total_amount == pytest.approx(23.0)
    lines = await fetch.lines(seeded)
    assert {line.supplier_code for line in lines} == {"BETA01"}
    assert {line.supplier_name for line in lines} == {"Beta Traders"}


async def test_header_edit_fork_copies_lines(session, seeded, fetch):
    target = await load(session, seeded)
    projection = project_update(HeaderSchema.from_optional_columns([]), {"supplier_name": "Beta Traders"})

    result = await VersionWriter(session).write_header(target, projection, fork_new_version=True)

    assert result.forked is True
    assert result.line_count == 2
    old_lines = await fetch.lines(seeded)
    new_lines = await fetch.lines(result.version_id)
    assert [line.supplier_name for line in old_lines] == ["Acme Supplies", "Acme Supplies"]
    assert [line.supplier_name for line in new_lines] == ["Beta Traders", "Beta Traders"]
    assert [(l.line_no, l.item_code, l.net_price) for l in new_lines] == [
        (l.line_no, l.item_code, l.net_price) for l in old_lines
    ]
    new = await fetch.version(result.version_id)
    assert new.total_amount == pytest.approx(23.0)
    assert new.supplier_name == "Beta Traders"


async def test_failed_header_fork_leaves_no_new_version(session, seeded, fetch, monkeypatch):
    writer = VersionWriter(session)
    target = await load(session, seeded)
    projection = project_update(HeaderSchema.from_optional_columns([]), {"reference": "amended"})

    async def broken_insert(owner, lines):
        raise OperationalError("INSERT INTO purchase_order_lines", {}, Exception("disk I/O error"))

    monkeypatch.setattr(writer.po_repo, "insert_lines", broken_insert)

    with pytest.raises(PersistenceError):
        await writer.write_header(target, projection, fork_new_version=True)

    assert [v.id for v in await fetch.versions("PO-1001")] == [seeded]
    assert (await fetch.version(seeded)).reference == "initial import"
    assert [line.item_code for line in await fetch.lines(seeded)] == ["OLD-1", "OLD-2"]


async def test_units_catalogue_on_databases_without_upsert(session, monkeypatch):
    monkeypatch.setattr(UnitOfMeasurementRepository, "dialect_name", property(lambda self: "mssql"))
    repo = UnitOfMeasurementRepository(session)

    await repo.ensure_units(["EA", " KG ", "", "EA"])
    await repo.ensure_units(["KG", "BOX"])

    assert await repo.list_labels() == ["BOX", "EA", "KG"]
