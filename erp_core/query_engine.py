"""
Filter and aggregate the sales order snapshot for a QueryDescriptor.

Works on the immutable tuple returned by ``SnapshotStore.snapshot()``;
nothing here mutates records or touches the network. Results are plain
dicts handed to an external renderer.
"""
import operator
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Sequence

from erp_core.exceptions import ValidationError
from erp_core.models import Intent, QueryDescriptor, SalesOrderRecord
from erp_core.observability import get_logger

logger = get_logger(__name__)

NO_MATCH_MESSAGE = "No matching records"

ZERO = Decimal("0")

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "=": operator.eq,
}


def _date_bucket(size: int) -> Callable[[SalesOrderRecord], str]:
    def bucket(record: SalesOrderRecord) -> str:
        return record.created_date[:size] if record.created_date else "Unknown"
    return bucket


# Grouping key per dimension
_GROUP_KEYS: Dict[str, Callable[[SalesOrderRecord], str]] = {
    "customer": lambda r: r.customer_name,
    "division": lambda r: r.division_name,
    "salesRep": lambda r: r.sales_rep_name,
    "year": _date_bucket(4),
    "month": _date_bucket(7),
    "date": _date_bucket(10),
}

_TIME_DIMENSIONS = {"year", "month", "date"}

_TOP_DIMENSIONS = {
    Intent.TOP_CUSTOMERS: "customer",
    Intent.TOP_DIVISION: "division",
    Intent.TOP_SALES: "salesRep",
}


# ═══════════════════════════════════════════════════════════════════════════════
# FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

def filter_records(
    descriptor: QueryDescriptor,
    records: Iterable[SalesOrderRecord],
) -> List[SalesOrderRecord]:
    """
    Apply the descriptor's filters in fixed order, keeping snapshot order.

    1. customer keyword (customer name, description or memo)
    2. gross profit threshold
    3. exact created date
    4. created year prefix
    5. inclusive created date range
    """
    matches = list(records)

    if descriptor.customer_keyword:
        keyword = descriptor.customer_keyword.lower()
        matches = [
            r for r in matches
            if keyword in r.customer_name.lower()
            or keyword in r.description.lower()
            or keyword in r.memo.lower()
        ]

    if descriptor.gross_profit_threshold:
        compare = _COMPARATORS[descriptor.gross_profit_threshold.operator]
        value = descriptor.gross_profit_threshold.value
        matches = [r for r in matches if compare(r.gross_profit_rate, value)]

    if descriptor.exact_date:
        matches = [r for r in matches if r.created_date == descriptor.exact_date]

    if descriptor.year:
        matches = [r for r in matches if r.created_date.startswith(descriptor.year)]

    if descriptor.date_range:
        start, end = descriptor.date_range.start, descriptor.date_range.end
        matches = [r for r in matches if r.created_date and start <= r.created_date <= end]

    return matches


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION
# ═══════════════════════════════════════════════════════════════════════════════

def _total(records: Sequence[SalesOrderRecord]) -> Decimal:
    return sum((r.amount for r in records), ZERO)


def group_amounts(
    records: Sequence[SalesOrderRecord],
    dimension: str,
) -> List[Dict[str, Any]]:
    """Sum amount per group, groups in first-encounter order."""
    key_fn = _GROUP_KEYS[dimension]
    groups: Dict[str, Dict[str, Any]] = {}
    for record in records:
        name = key_fn(record)
        group = groups.setdefault(name, {"name": name, "amount": ZERO, "count": 0})
        group["amount"] += record.amount
        group["count"] += 1
    return list(groups.values())


def _count(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    return {
        "count": len(matches),
        "total_amount": _total(matches),
        "max_gross_profit_rate": max(r.gross_profit_rate for r in matches),
    }


def _total_amount(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    return {"count": len(matches), "total_amount": _total(matches)}


def _list(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    return {"records": [r.project(descriptor.fields) for r in matches]}


def _sample(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    return {"record": matches[0].project(descriptor.fields)}


def _top(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    dimension = _TOP_DIMENSIONS[descriptor.intent]
    # sorted() is stable, so equal totals keep encounter order
    ranked = sorted(group_amounts(matches, dimension), key=lambda g: -g["amount"])
    return {
        "dimension": dimension,
        "groups": [
            {"rank": rank, "name": group["name"], "amount": group["amount"]}
            for rank, group in enumerate(ranked[:descriptor.top_n], start=1)
        ],
    }


def _extreme(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    pick = max if descriptor.intent is Intent.MAX else min
    record = pick(matches, key=lambda r: r.get(descriptor.metric))
    return {
        "metric": descriptor.metric,
        "value": record.get(descriptor.metric),
        "record": record.to_dict(),
    }


def _breakdown(descriptor: QueryDescriptor, matches: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    groups = group_amounts(matches, descriptor.dimension)
    if descriptor.dimension in _TIME_DIMENSIONS:
        groups.sort(key=lambda g: g["name"])
    else:
        groups.sort(key=lambda g: -g["amount"])
    return {
        "dimension": descriptor.dimension,
        "total_amount": _total(matches),
        "groups": groups,
    }


_AGGREGATORS: Dict[Intent, Callable[[QueryDescriptor, Sequence[SalesOrderRecord]], Dict[str, Any]]] = {
    Intent.COUNT: _count,
    Intent.TOTAL: _total_amount,
    Intent.LIST: _list,
    Intent.SAMPLE: _sample,
    Intent.TOP_CUSTOMERS: _top,
    Intent.TOP_DIVISION: _top,
    Intent.TOP_SALES: _top,
    Intent.MAX: _extreme,
    Intent.MIN: _extreme,
    Intent.BREAKDOWN: _breakdown,
}


def _no_match(intent: Intent) -> Dict[str, Any]:
    result = {"no_match": True, "message": NO_MATCH_MESSAGE}
    if intent in (Intent.COUNT, Intent.TOTAL):
        result.update(count=0, total_amount=ZERO)
    if intent is Intent.COUNT:
        result["max_gross_profit_rate"] = None
    return result


def answer(descriptor: QueryDescriptor, records: Sequence[SalesOrderRecord]) -> Dict[str, Any]:
    """
    Answer a structured query against a snapshot view.

    Args:
        descriptor: Resolved query
        records: Immutable snapshot (``SnapshotStore.snapshot()``)

    Returns:
        Result dict with ``intent``, ``matched`` and intent-specific keys.
        When nothing matches, ``no_match`` is True and a message is set.

    Raises:
        ValidationError: For the ``general`` intent, which is not an ERP query
    """
    if not descriptor.intent.is_erp_query:
        raise ValidationError("intent", "General questions are not answered from sales orders", "general")

    matches = filter_records(descriptor, records)
    result: Dict[str, Any] = {"intent": descriptor.intent.value, "matched": len(matches)}

    if not matches:
        result.update(_no_match(descriptor.intent))
    else:
        result["no_match"] = False
        result.update(_AGGREGATORS[descriptor.intent](descriptor, matches))

    logger.debug(
        f"Answered {descriptor.intent.value} query",
        extra={"scanned": len(records), "matched": len(matches)}
    )
    return result
