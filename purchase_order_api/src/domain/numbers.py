from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from src.core.exceptions import ValidationError

# Thousands separators and stray whitespace ("1 234.50", "1,234.50").
_GROUPING = re.compile(r"[,\s]")


def _strip_grouping(value: str) -> str:
    return _GROUPING.sub("", value)


# PUBLIC_INTERFACE
def normalize_number(raw: Any) -> float:
    """
    Convert a user-submitted numeric value into a float.

    Accepts None, ints/floats/Decimals, and strings with embedded commas or
    whitespace. Returns 0.0 for null, empty, unparseable or non-finite input;
    never raises.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    elif isinstance(raw, str):
        cleaned = _strip_grouping(raw)
        if not cleaned:
            return 0.0
        try:
            value = float(cleaned)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return value if math.isfinite(value) else 0.0


# PUBLIC_INTERFACE
def parse_optional_number(raw: Any, field: str = "amount") -> Optional[float]:
    """
    Strict variant used for header form fields.

    Blank input means "not provided" and yields None; anything that is present
    but not a number raises ValidationError instead of silently becoming zero.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError(
            "Amounts must be valid numbers. Remove spaces or commas if necessary.",
            details={"field": field},
        )
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    else:
        cleaned = _strip_grouping(str(raw))
        if not cleaned:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            raise ValidationError(
                "Amounts must be valid numbers. Remove spaces or commas if necessary.",
                details={"field": field},
            )
    if not math.isfinite(value):
        raise ValidationError("Amounts must be finite numbers.", details={"field": field})
    return value


# PUBLIC_INTERFACE
def normalize_date(raw: Any, field: str = "date") -> Optional[date]:
    """
    Parse a boundary date. ``YYYY/MM/DD`` is accepted and treated as ``YYYY-MM-DD``.

    Returns None for blank input; raises ValidationError for anything else that
    is not a real calendar date.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text.replace("/", "-"), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(
            f"{field.replace('_', ' ').capitalize()} must be in YYYY-MM-DD format.",
            details={"field": field, "value": text},
        )
