"""
Filter engine over normalized work orders.

All active predicates are ANDed and the result keeps dataset order:

    keyword   substring of the record's lowercase search text
    equals    exact value on a categorical field (status/type/department/assignee)
    columns   per-column substring, case-insensitive; date columns match on
              the ISO or the MM/DD/YYYY form
    range     inclusive from/to on ``date_field``; records without a date on
              that field never match once either bound is set
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from wo_viewer.dates import coerce_iso_date, format_display
from wo_viewer.fields import (
    ASSIGNEE_FIELD,
    CATEGORICAL_FIELDS,
    DATE_FIELDS,
    DEFAULT_DATE_FIELD,
    field_spec,
    require_date_field,
)
from wo_viewer.models import WorkOrder


def _clean_mapping(values: Optional[Mapping[str, Any]], allowed: Optional[tuple[str, ...]], label: str) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for name, value in (values or {}).items():
        field_spec(name)
        if allowed is not None and name not in allowed:
            raise ValueError(
                f"'{name}' does not take {label} filters. Allowed: {', '.join(allowed)}"
            )
        text = "" if value is None else str(value)
        # An empty selection means "All".
        if text.strip():
            cleaned[name] = text
    return cleaned


@dataclass(frozen=True)
class FilterSpec:
    keyword: str = ""
    equals: Mapping[str, str] = field(default_factory=dict)
    columns: Mapping[str, str] = field(default_factory=dict)
    date_field: str = DEFAULT_DATE_FIELD
    date_from: Optional[str] = None
    date_to: Optional[str] = None

    def __post_init__(self) -> None:
        require_date_field(self.date_field)
        object.__setattr__(self, "keyword", (self.keyword or "").strip().lower())
        object.__setattr__(self, "equals", _clean_mapping(self.equals, CATEGORICAL_FIELDS, "equality"))
        object.__setattr__(self, "columns", _clean_mapping(self.columns, None, "column"))
        object.__setattr__(self, "date_from", coerce_iso_date(self.date_from))
        object.__setattr__(self, "date_to", coerce_iso_date(self.date_to))

    @property
    def has_range(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    @property
    def is_active(self) -> bool:
        return bool(self.keyword or self.equals or self.columns or self.has_range)

    def as_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "equals": dict(self.equals),
            "columns": dict(self.columns),
            "date_field": self.date_field,
            "date_from": self.date_from,
            "date_to": self.date_to,
        }


def keyword_haystack(record: WorkOrder) -> str:
    return record.search_text()


def _matches_keyword(record: WorkOrder, keyword: str) -> bool:
    return keyword in keyword_haystack(record)


def _matches_equals(record: WorkOrder, equals: Mapping[str, str]) -> bool:
    return all(getattr(record, name) == wanted for name, wanted in equals.items())


def _matches_column(record: WorkOrder, name: str, needle: str) -> bool:
    needle = needle.strip().lower()
    value = getattr(record, name)
    if name in DATE_FIELDS:
        if value is None:
            return False
        return needle in value or needle in format_display(value)
    return needle in value.lower()


def _matches_range(record: WorkOrder, spec: FilterSpec) -> bool:
    value = getattr(record, spec.date_field)
    if value is None:
        return False
    if spec.date_from is not None and value < spec.date_from:
        return False
    if spec.date_to is not None and value > spec.date_to:
        return False
    return True


def matches(record: WorkOrder, spec: FilterSpec) -> bool:
    if spec.keyword and not _matches_keyword(record, spec.keyword):
        return False
    if spec.equals and not _matches_equals(record, spec.equals):
        return False
    for name, needle in spec.columns.items():
        if not _matches_column(record, name, needle):
            return False
    if spec.has_range and not _matches_range(record, spec):
        return False
    return True


def apply_filters(records: Iterable[WorkOrder], spec: Optional[FilterSpec] = None) -> list[WorkOrder]:
    """Ordered subsequence of ``records`` matching every active predicate."""
    if spec is None or not spec.is_active:
        return list(records)
    return [record for record in records if matches(record, spec)]


def option_sort_key(value: str) -> tuple[str, str]:
    return (value.casefold(), value)


def assignee_options(records: Iterable[WorkOrder], field_name: str = ASSIGNEE_FIELD) -> list[str]:
    """Unique non-empty values of ``field_name``, sorted for a dropdown."""
    field_spec(field_name)
    values = {str(getattr(record, field_name) or "").strip() for record in records}
    values.discard("")
    return sorted(values, key=option_sort_key)
