"""
Raw ERP sales order -> SalesOrderRecord.

Upstream data quality is imperfect: numeric fields may be strings,
null or garbage, and names may be missing. Normalization never raises
for a single bad record; it substitutes zeros and defaults instead.
"""
import re
from collections.abc import Mapping
from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from erp_core.config import config
from erp_core.models import SalesOrderRecord

# Raw ERP keys
ID_KEY = "so_pk"
DISPLAY_NUMBER_KEY = "so_upk"
CUSTOMER_KEY = "Name_Cust"
DIVISION_KEY = "Name_Dept"
SALES_REP_KEY = "Name_SalesRep"
AMOUNT_KEY = "TotalAmount_TransH"
GP_RATE_KEY = "gpRate"
STATUS_KEY = "Status_TransH"
CREATED_KEY = "DateCreated_TransH"
DESCRIPTION_KEY = "Description_TransH"
MEMO_KEY = "Memo_TransH"

UNKNOWN = "Unknown"
ZERO = Decimal("0")

_ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce an upstream numeric-or-string value to Decimal.

    Missing, null, boolean or non-numeric values (including NaN/Infinity)
    become 0. Thousands separators and surrounding whitespace are ignored.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, (int, Decimal)):
        number = Decimal(value)
    else:
        text = str(value).replace(",", "").strip()
        if not text:
            return ZERO
        try:
            number = Decimal(text)
        except InvalidOperation:
            return ZERO
    return number if number.is_finite() else ZERO


def parse_percentage(value: Any) -> Decimal:
    """Parse a rate like ``"45.5%"`` or ``"1,250.00 %"``; 0 on failure."""
    if isinstance(value, str):
        value = value.replace("%", "")
    return to_decimal(value)


def parse_created_date(value: Any, tz: Optional[tzinfo] = None) -> str:
    """
    Calendar day (ISO ``YYYY-MM-DD``) of an upstream timestamp in the ERP timezone.

    Offset-aware timestamps such as ``2023-12-31T18:00:00.000Z`` are
    converted to ``tz`` (the configured sync timezone by default) before
    the date is taken. Naive timestamps and plain dates keep their own
    date prefix. Returns an empty string if unparseable.
    """
    if not value:
        return ""
    text = str(value).strip()
    match = _ISO_DATE_RE.match(text)
    if not match:
        return ""

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return match.group(1)

    if parsed.tzinfo is None:
        return match.group(1)
    return parsed.astimezone(tz or config.sync.tz).date().isoformat()


def _text(value: Any, default: str = UNKNOWN) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _identity(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_record(raw: Any, tz: Optional[tzinfo] = None) -> SalesOrderRecord:
    """
    Convert one raw ERP sales order into the canonical record.

    Pure function: no I/O, never raises for malformed fields. ``so_pk`` is
    the identity; ``so_upk`` is only the human-facing order number. Both
    are passed through as-is, even when empty. Anything that is not a
    mapping (null, a stray string or number) is treated as an empty order.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    return SalesOrderRecord(
        id=_identity(raw.get(ID_KEY)),
        display_number=_identity(raw.get(DISPLAY_NUMBER_KEY)),
        customer_name=_text(raw.get(CUSTOMER_KEY)),
        division_name=_text(raw.get(DIVISION_KEY)),
        sales_rep_name=_text(raw.get(SALES_REP_KEY)),
        amount=to_decimal(raw.get(AMOUNT_KEY)),
        gross_profit_rate=parse_percentage(raw.get(GP_RATE_KEY)),
        status=_text(raw.get(STATUS_KEY)),
        created_date=parse_created_date(raw.get(CREATED_KEY), tz),
        description=_text(raw.get(DESCRIPTION_KEY), default=""),
        memo=_text(raw.get(MEMO_KEY), default=""),
    )
