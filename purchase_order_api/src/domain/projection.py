from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Mapping, Tuple

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Update, update

from src.core.exceptions import ValidationError
from src.db.base import utcnow
from src.db.models.procurement import PurchaseOrder

# Header columns every deployment has and the header edit form may write.
CORE_HEADER_COLUMNS: FrozenSet[str] = frozenset(
    {
        "supplier_name",
        "supplier_code",
        "order_sheet_no",
        "reference",
        "order_date",
        "subtotal",
        "vat_percent",
        "vat_amount",
        "total_amount",
    }
)

# Columns some deployments still carry. Enabled per deployment via settings.
OPTIONAL_HEADER_COLUMNS: FrozenSet[str] = frozenset({"exclusive_amount"})

# Inbound field -> columns it is written to. The edit form still posts the
# subtotal under its legacy name.
_FIELD_TARGETS: Dict[str, Tuple[str, ...]] = {
    "exclusive_amount": ("subtotal", "exclusive_amount"),
}


class HeaderSchema(BaseModel):
    """The set of editable purchase_orders columns for this deployment."""

    model_config = ConfigDict(frozen=True)

    columns: FrozenSet[str]

    @classmethod
    def from_optional_columns(cls, optional: Iterable[str]) -> "HeaderSchema":
        """
        Build the schema at startup. Unknown optional column names are a
        configuration error and raise ValueError.
        """
        requested = {c.strip().lower() for c in optional if c and c.strip()}
        unknown = requested - OPTIONAL_HEADER_COLUMNS
        if unknown:
            raise ValueError(
                f"Unsupported optional header columns {sorted(unknown)}; "
                f"known: {sorted(OPTIONAL_HEADER_COLUMNS)}"
            )
        return cls(columns=CORE_HEADER_COLUMNS | frozenset(requested))

    def has(self, column: str) -> bool:
        return column in self.columns

    @property
    def enabled_optional_columns(self) -> FrozenSet[str]:
        return OPTIONAL_HEADER_COLUMNS & self.columns

    @property
    def disabled_optional_columns(self) -> FrozenSet[str]:
        """Optional columns this deployment must never read or write."""
        return OPTIONAL_HEADER_COLUMNS - self.columns


class HeaderProjection(BaseModel):
    """Assignments for one header edit, restricted to the deployment's columns."""

    model_config = ConfigDict(frozen=True)

    assignments: Dict[str, Any]

    def to_statement(self, version_id: int) -> Update:
        """Parameterized UPDATE of a single header version; refreshes updated_at."""
        return (
            update(PurchaseOrder)
            .where(PurchaseOrder.id == version_id)
            .values(**self.assignments, updated_at=utcnow())
        )


# PUBLIC_INTERFACE
def project_update(schema: HeaderSchema, incoming: Mapping[str, Any]) -> HeaderProjection:
    """
    Map an inbound partial header update onto the columns this deployment has.

    Fields without a matching column are dropped. ``order_type`` is never part
    of the schema, so a version's layout cannot be changed through an edit.

    Raises:
        ValidationError: nothing in ``incoming`` maps onto an editable column.
    """
    assignments: Dict[str, Any] = {}
    for field, value in incoming.items():
        for column in _FIELD_TARGETS.get(field, (field,)):
            if schema.has(column):
                assignments[column] = value

    if not assignments:
        raise ValidationError(
            "no editable columns", details={"fields": sorted(incoming)}
        )
    return HeaderProjection(assignments=assignments)
