"""
Domain models for ERP sales order data.

Provides type-safe dataclasses for sales orders, fetch windows and
query descriptors. Records are frozen: once ingested, an order is
historical fact and is never updated in place.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from erp_core import validators


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Intent(str, Enum):
    """What the caller wants computed from the matching orders."""
    COUNT = "count"
    LIST = "list"
    SAMPLE = "sample"
    TOP_CUSTOMERS = "topCustomers"
    TOP_DIVISION = "topDivision"
    TOP_SALES = "topSales"
    TOTAL = "total"
    MAX = "max"
    MIN = "min"
    BREAKDOWN = "breakdown"
    GENERAL = "general"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)

    @property
    def is_erp_query(self) -> bool:
        return self is not Intent.GENERAL


# Record field name (as exposed to callers) -> dataclass attribute
RECORD_FIELDS: Dict[str, str] = {
    "id": "id",
    "displayNumber": "display_number",
    "customerName": "customer_name",
    "divisionName": "division_name",
    "salesRepName": "sales_rep_name",
    "amount": "amount",
    "grossProfitRate": "gross_profit_rate",
    "status": "status",
    "createdDate": "created_date",
    "description": "description",
    "memo": "memo",
}

DEFAULT_PROJECTION: Tuple[str, ...] = ("displayNumber", "grossProfitRate")

_DECIMAL_FIELDS = {"amount", "gross_profit_rate"}


# ═══════════════════════════════════════════════════════════════════════════════
# DATACLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SalesOrderRecord:
    """One sales order in the local snapshot, keyed by ``id``."""
    id: str
    display_number: str
    customer_name: str = "Unknown"
    division_name: str = "Unknown"
    sales_rep_name: str = "Unknown"
    amount: Decimal = Decimal("0")
    gross_profit_rate: Decimal = Decimal("0")
    status: str = "Unknown"
    created_date: str = ""
    description: str = ""
    memo: str = ""

    @property
    def created_on(self) -> Optional[date]:
        """Creation date as a date object, None if unknown."""
        try:
            return date.fromisoformat(self.created_date)
        except ValueError:
            return None

    def get(self, field_name: str) -> Any:
        """Read a field by its external (camelCase) name."""
        return getattr(self, RECORD_FIELDS[field_name])

    def project(self, fields: Tuple[str, ...] = ()) -> Dict[str, Any]:
        """Return only the requested fields, default minimal projection if empty."""
        return {name: self.get(name) for name in (fields or DEFAULT_PROJECTION)}

    def to_dict(self) -> Dict[str, Any]:
        """All fields keyed by external name."""
        return {name: getattr(self, attr) for name, attr in RECORD_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesOrderRecord":
        """
        Rebuild a record from ``to_dict`` output (e.g. a persisted snapshot).

        Raises:
            KeyError: If identity fields are missing
            ValueError: If a decimal field cannot be parsed or is not finite
        """
        kwargs = {"id": str(data["id"]), "display_number": str(data["displayNumber"])}
        for name, attr in RECORD_FIELDS.items():
            if attr in kwargs or name not in data:
                continue
            value = data[name]
            if attr in _DECIMAL_FIELDS:
                try:
                    value = Decimal(str(value))
                except InvalidOperation as e:
                    raise ValueError(f"Invalid decimal for {name}: {value!r}") from e
                if not value.is_finite():
                    raise ValueError(f"Non-finite decimal for {name}: {value!r}")
            else:
                value = str(value)
            kwargs[attr] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class QueryWindow:
    """A bounded date range plus the fixed ERP scope for one paginated fetch."""
    start: date
    end: date
    location_pk: str
    empl_pk: str
    prepared_by: str
    view_all: int = 1

    @classmethod
    def for_year(cls, year: int, erp_config) -> "QueryWindow":
        """Annual window Jan 1 - Dec 31 scoped by the ERP config."""
        return cls(
            start=date(year, 1, 1),
            end=date(year, 12, 31),
            location_pk=erp_config.location_pk,
            empl_pk=erp_config.empl_pk,
            prepared_by=erp_config.prepared_by,
            view_all=erp_config.view_all,
        )

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class GrossProfitThreshold:
    """Comparison against ``grossProfitRate``, e.g. ``> 50``."""
    operator: str
    value: Decimal


@dataclass(frozen=True)
class DateRange:
    """Inclusive ISO date range filter."""
    start: str
    end: str


@dataclass(frozen=True)
class QueryDescriptor:
    """Structured, already-resolved question about sales orders."""
    intent: Intent
    customer_keyword: Optional[str] = None
    gross_profit_threshold: Optional[GrossProfitThreshold] = None
    exact_date: Optional[str] = None
    year: Optional[str] = None
    date_range: Optional[DateRange] = None
    top_n: int = 1
    fields: Tuple[str, ...] = field(default_factory=tuple)
    metric: str = "amount"
    dimension: str = "customer"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryDescriptor":
        """
        Build a descriptor from resolver/API input.

        Accepts the camelCase keys used on the wire (``customerKeyword``,
        ``grossProfitThreshold`` or ``gpThreshold``, ``exactDate``, ``year``,
        ``dateRange``, ``topN``, ``fields``, ``metric``, ``dimension``).

        Raises:
            ValidationError: If any value is invalid
        """
        intent = Intent(validators.validate_intent(data.get("intent"), Intent.values()))

        threshold = None
        raw_threshold = data.get("grossProfitThreshold") or data.get("gpThreshold")
        if raw_threshold:
            operator, value = validators.validate_threshold(raw_threshold)
            threshold = GrossProfitThreshold(operator=operator, value=value)

        exact_date = None
        if data.get("exactDate"):
            exact_date = validators.validate_date_string(data["exactDate"], "exactDate").isoformat()

        year = None
        if data.get("year") not in (None, ""):
            year = validators.validate_year(data["year"])

        date_range = None
        if data.get("dateRange"):
            start, end = validators.validate_date_range(data["dateRange"])
            date_range = DateRange(start=start.isoformat(), end=end.isoformat())

        top_n = data.get("topN")
        top_n = 1 if top_n is None else validators.validate_limit(top_n, "topN")

        keyword = data.get("customerKeyword")
        keyword = keyword.strip() if isinstance(keyword, str) and keyword.strip() else None

        return cls(
            intent=intent,
            customer_keyword=keyword,
            gross_profit_threshold=threshold,
            exact_date=exact_date,
            year=year,
            date_range=date_range,
            top_n=top_n,
            fields=validators.validate_fields(data.get("fields") or [], tuple(RECORD_FIELDS)),
            metric=validators.validate_choice(
                data.get("metric") or "amount", "metric", ("amount", "grossProfitRate")
            ),
            dimension=validators.validate_choice(
                data.get("dimension") or "customer", "dimension", validators.BREAKDOWN_DIMENSIONS
            ),
        )
