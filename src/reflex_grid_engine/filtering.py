"""Filter stage: quick filter, structured filter items and advanced filters.

All functions here are pure: they take a row sequence and return a new
list, never touching the input.

The structured filter model has the MUI DataGrid shape::

    {
        "items": [
            {"field": "name",   "operator": "contains", "value": "ali"},
            {"field": "salary", "operator": "gt",       "value": 80000},
        ],
        "quickFilter": "eng",
        "linkOperator": "and",   # or "or"
    }

The advanced filter model is composed with it by AND::

    {
        "filters": {"department": {"Engineering", "__empty__"}},
        "dateFilters": {
            "hired": {"mode": "range", "startDate": date(2024, 1, 1), "endDate": None},
        },
    }
"""

import math
from datetime import date, datetime, time
from typing import Any, Iterable, Mapping

from reflex_grid_engine.models import Column, resolve_field_value
from reflex_grid_engine.row_index import row_fields

EMPTY_VALUE_KEY = "__empty__"

VALUELESS_OPERATORS: frozenset[str] = frozenset({"isEmpty", "isNotEmpty"})


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def stringify(value: Any) -> str:
    """Render a non-null value the way the grid displays and compares it.

    Booleans become ``"true"``/``"false"``, integral floats lose their
    ``.0`` and dates use ISO format.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _coerce_numeric(value: Any) -> int | float | None:
    """Try to coerce *value* to a number."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        for conv in (int, float):
            try:  # noqa: SIM105
                return conv(value)
            except ValueError:
                continue
    return None


def to_number(value: Any) -> float:
    """Numeric coercion for comparisons; anything non-numeric becomes NaN."""
    number = _coerce_numeric(value)
    if number is None:
        return math.nan
    return float(number)


def value_key(value: Any) -> str:
    """Key of *value* in an advanced value filter."""
    if value is None or value == "":
        return EMPTY_VALUE_KEY
    return stringify(value)


def parse_date(value: Any) -> datetime | None:
    """Parse *value* into a naive local datetime, or ``None`` if it is not a date.

    Accepts ``datetime``, ``date``, ISO-8601 strings and epoch
    milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


# ---------------------------------------------------------------------------
# Structured filter items
# ---------------------------------------------------------------------------

def _strict_equals(value: Any, target: Any) -> bool:
    if isinstance(value, bool) != isinstance(target, bool):
        return False
    try:
        return bool(value == target)
    except (TypeError, ValueError):
        return False


def _loose_equals(value: Any, target: Any) -> bool:
    """Equal as values, or equal once both are stringified."""
    if value is None or target is None:
        return value is None and target is None
    return _strict_equals(value, target) or stringify(value) == stringify(target)


def _text(value: Any) -> str:
    return "" if value is None else stringify(value).lower()


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _matches_is(value: Any, target: Any) -> bool:
    if isinstance(target, bool):
        return isinstance(value, bool) and value is target
    if target == "true":
        return value is True
    if target == "false":
        return value is False
    return _strict_equals(value, target)


def matches_item(row: Any, item: Mapping[str, Any], columns: list[Column]) -> bool:
    """Evaluate one filter item against *row*.

    Unknown operators match every row.
    """
    field_name = item.get("field")
    operator = item.get("operator")
    target = item.get("value")
    value = resolve_field_value(row, field_name, columns) if field_name else None

    if operator in ("equals", "eq"):
        return _loose_equals(value, target)
    if operator == "neq":
        return not _loose_equals(value, target)
    if operator == "contains":
        return _text(target) in _text(value)
    if operator == "startsWith":
        return _text(value).startswith(_text(target))
    if operator == "endsWith":
        return _text(value).endswith(_text(target))
    if operator == "gt":
        return to_number(value) > to_number(target)
    if operator == "gte":
        return to_number(value) >= to_number(target)
    if operator == "lt":
        return to_number(value) < to_number(target)
    if operator == "lte":
        return to_number(value) <= to_number(target)
    if operator == "isEmpty":
        return _is_empty(value)
    if operator == "isNotEmpty":
        return not _is_empty(value)
    if operator == "is":
        return _matches_is(value, target)
    return True


def matches_quick_filter(row: Any, term: str) -> bool:
    """True if any own field of *row* contains *term* (case-insensitive)."""
    needle = term.lower()
    for value in row_fields(row).values():
        if value is None:
            continue
        if needle in stringify(value).lower():
            return True
    return False


def link_operator(filter_model: Mapping[str, Any]) -> str:
    """Return ``"and"`` or ``"or"`` for *filter_model*.

    ``logicOperator`` (MUI v8 naming) is accepted as an alias.
    """
    raw = filter_model.get("linkOperator") or filter_model.get("logicOperator") or "and"
    return "or" if str(raw).lower() == "or" else "and"


def apply_filters(
    rows: Iterable[Any],
    filter_model: Mapping[str, Any],
    columns: list[Column],
) -> list[Any]:
    """Apply the quick filter and the structured filter items.

    Args:
        rows: Source rows.
        filter_model: ``{"items", "quickFilter", "linkOperator"}`` dict.
        columns: Declared columns; fields without a column are read
            directly from the row.

    Returns:
        A new list with the rows that pass.
    """
    filtered = list(rows)

    quick = filter_model.get("quickFilter") or ""
    if quick:
        filtered = [row for row in filtered if matches_quick_filter(row, quick)]

    items = [
        item for item in filter_model.get("items") or []
        if item.get("field") and item.get("operator")
    ]
    if items:
        combine = any if link_operator(filter_model) == "or" else all
        filtered = [
            row for row in filtered
            if combine(matches_item(row, item, columns) for item in items)
        ]

    return filtered


# ---------------------------------------------------------------------------
# Advanced filters
# ---------------------------------------------------------------------------

def _date_filter_is_active(date_filter: Mapping[str, Any]) -> bool:
    mode = date_filter.get("mode")
    if mode == "exact":
        return bool(date_filter.get("date"))
    if mode == "range":
        return bool(date_filter.get("startDate") or date_filter.get("endDate"))
    return False


def _matches_date_filter(raw_value: Any, date_filter: Mapping[str, Any]) -> bool:
    row_date = parse_date(raw_value)
    if row_date is None:
        return False
    row_day = _start_of_day(row_date)

    if date_filter.get("mode") == "exact":
        target = parse_date(date_filter.get("date"))
        return target is not None and row_day == _start_of_day(target)

    start = parse_date(date_filter.get("startDate"))
    end = parse_date(date_filter.get("endDate"))
    if start is not None and row_day < _start_of_day(start):
        return False
    if end is not None and row_date > _end_of_day(end):
        return False
    return True


def apply_advanced_filters(
    rows: Iterable[Any],
    advanced_model: Mapping[str, Any],
    columns: list[Column],
) -> list[Any]:
    """Apply the multi-value and date filters (all active filters must pass).

    A row whose date field does not parse never matches an active date
    filter.
    """
    rows = list(rows)
    value_filters = [
        (field_name, {v if isinstance(v, str) else value_key(v) for v in selected})
        for field_name, selected in (advanced_model.get("filters") or {}).items()
        if selected
    ]
    date_filters = [
        (field_name, date_filter)
        for field_name, date_filter in (advanced_model.get("dateFilters") or {}).items()
        if date_filter and _date_filter_is_active(date_filter)
    ]
    if not value_filters and not date_filters:
        return rows

    def _passes(row: Any) -> bool:
        for field_name, selected in value_filters:
            if value_key(resolve_field_value(row, field_name, columns)) not in selected:
                return False
        for field_name, date_filter in date_filters:
            if not _matches_date_filter(resolve_field_value(row, field_name, columns), date_filter):
                return False
        return True

    return [row for row in rows if _passes(row)]


def value_options(rows: Iterable[Any], field_name: str, columns: list[Column]) -> list[str]:
    """Distinct value keys of *field_name*, for building a value-filter picker.

    The empty sentinel (if present) is listed last.
    """
    keys = {value_key(resolve_field_value(row, field_name, columns)) for row in rows}
    has_empty = EMPTY_VALUE_KEY in keys
    keys.discard(EMPTY_VALUE_KEY)
    ordered = sorted(keys)
    if has_empty:
        ordered.append(EMPTY_VALUE_KEY)
    return ordered


# ---------------------------------------------------------------------------
# Incremental filter accumulation
# ---------------------------------------------------------------------------

def merge_filter_model(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
) -> dict[str, Any]:
    """Merge an incoming single-item filter model into an accumulated one.

    Grid frontends that edit one filter item at a time send a model with
    just that item.  Items are merged by ``field``:

    * Incoming item **has a value** (or a valueless operator such as
      ``isEmpty``): upsert for that field.
    * Incoming item **has no value** and the field already has a filter:
      keep it, adopting the new operator if it changed.
    * Incoming item **has no value** and the field is new: ignore.
    * Incoming items list is **empty**: clear the items.

    ``quickFilter`` and the link operator are taken from *incoming* when
    present, else kept from *existing*.

    Returns:
        The merged filter model.
    """
    has_link = incoming.get("linkOperator") or incoming.get("logicOperator")
    merged: dict[str, Any] = {
        "items": [],
        "quickFilter": incoming.get("quickFilter", existing.get("quickFilter", "")) or "",
        "linkOperator": link_operator(incoming if has_link else existing),
    }

    incoming_items: list[Mapping[str, Any]] = incoming.get("items") or []
    if not incoming_items:
        return merged

    by_field: dict[str, dict[str, Any]] = {}
    for item in existing.get("items") or []:
        field_name = item.get("field")
        if field_name:
            by_field[field_name] = dict(item)

    for item in incoming_items:
        field_name = item.get("field")
        if not field_name:
            continue

        operator = item.get("operator", "")
        has_value = item.get("value") is not None or operator in VALUELESS_OPERATORS

        if has_value:
            by_field[field_name] = dict(item)
        elif field_name in by_field:
            if operator and operator != by_field[field_name].get("operator", ""):
                by_field[field_name] = {**by_field[field_name], "operator": operator}

    merged["items"] = list(by_field.values())
    return merged
