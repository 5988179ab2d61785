"""
Input validation functions for query descriptor parameters.

All validators raise ValidationError on invalid input.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence, Tuple

from erp_core.exceptions import ValidationError


# Comparison operators accepted for the gross profit threshold
OPERATORS = (">", "<", ">=", "<=", "=")

BREAKDOWN_DIMENSIONS = ("customer", "division", "salesRep", "year", "month", "date")

MAX_TOP_N = 100

_YEAR_RE = re.compile(r"^\d{4}$")


def validate_intent(value: Any, allowed: Sequence[str]) -> str:
    """
    Validate the query intent.

    Raises:
        ValidationError: If intent is missing or unknown
    """
    if not value:
        raise ValidationError("intent", "Intent is required", value)

    if value not in allowed:
        raise ValidationError(
            "intent",
            f"Unknown intent. Valid: {', '.join(allowed)}",
            value
        )

    return value


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_date_range(value: Any) -> Tuple[date, date]:
    """
    Validate an inclusive date range.

    Accepts ``{"start": ..., "end": ...}`` or a two-item sequence.

    Raises:
        ValidationError: If either bound is invalid or start > end
    """
    if isinstance(value, dict):
        start_str, end_str = value.get("start"), value.get("end")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        start_str, end_str = value
    else:
        raise ValidationError("dateRange", "Expected {start, end}", value)

    start = validate_date_string(start_str, "dateRange.start")
    end = validate_date_string(end_str or start_str, "dateRange.end")

    if start > end:
        raise ValidationError(
            "dateRange",
            "Start date must be before or equal to end date",
            f"{start} > {end}"
        )

    return start, end


def validate_year(value: Any) -> str:
    """
    Validate a 4-digit year used as a created-date prefix.

    Raises:
        ValidationError: If not exactly four digits
    """
    year = str(value).strip()
    if not _YEAR_RE.match(year):
        raise ValidationError("year", "Must be a 4-digit year", value)
    return year


def validate_threshold(value: Any) -> Tuple[str, Decimal]:
    """
    Validate a gross profit threshold ``{"operator": ">", "value": 50}``.

    Returns:
        (operator, value) tuple

    Raises:
        ValidationError: If operator is unknown or value is not numeric
    """
    if not isinstance(value, dict):
        raise ValidationError("grossProfitThreshold", "Expected {operator, value}", value)

    operator = value.get("operator")
    if operator not in OPERATORS:
        raise ValidationError(
            "grossProfitThreshold.operator",
            f"Invalid operator. Valid: {', '.join(OPERATORS)}",
            operator
        )

    raw = value.get("value")
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("grossProfitThreshold.value", "Must be a number", raw)
    try:
        number = Decimal(str(raw).replace("%", "").replace(",", "").strip())
    except InvalidOperation:
        raise ValidationError("grossProfitThreshold.value", "Must be a number", raw)
    if not number.is_finite():
        raise ValidationError("grossProfitThreshold.value", "Must be finite", raw)

    return operator, number


def validate_limit(
    value: int,
    field: str = "limit",
    min_value: int = 1,
    max_value: int = MAX_TOP_N
) -> int:
    """
    Validate a limit/count parameter such as ``topN``.

    Raises:
        ValidationError: If limit is not an integer or out of range
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "Must be an integer", value)

    if value < min_value:
        raise ValidationError(field, f"Must be at least {min_value}", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_fields(value: Any, allowed: Sequence[str]) -> Tuple[str, ...]:
    """
    Validate the projection field list, preserving order and dropping repeats.

    Raises:
        ValidationError: If value is not a list or a field name is unknown
    """
    if not isinstance(value, (list, tuple)):
        raise ValidationError("fields", "Must be a list of field names", value)

    fields = []
    for name in value:
        if name not in allowed:
            raise ValidationError(
                "fields",
                f"Unknown field. Valid: {', '.join(allowed)}",
                name
            )
        if name not in fields:
            fields.append(name)
    return tuple(fields)


def validate_choice(value: Any, field: str, allowed: Sequence[str]) -> str:
    """
    Validate that value is one of the allowed options.

    Raises:
        ValidationError: If value is not allowed
    """
    if value not in allowed:
        raise ValidationError(
            field,
            f"Invalid value. Valid: {', '.join(allowed)}",
            value
        )
    return value
