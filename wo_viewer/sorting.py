"""Display ordering for work-order rows."""

from __future__ import annotations

import re
import unicodedata
from functools import cmp_to_key
from typing import Any, Iterable, Optional

from wo_viewer.fields import DATE_FIELDS, field_spec
from wo_viewer.models import WorkOrder

ASC = "asc"
DESC = "desc"
DIRECTIONS = (ASC, DESC)

_DIGITS_RE = re.compile(r"(\d+)")


def check_direction(direction: str) -> str:
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown sort direction '{direction}'. Expected 'asc' or 'desc'")
    return direction


def natural_key(text: Any) -> tuple:
    """
    Case- and accent-insensitive key where digit runs compare as numbers,
    so "WO-9" < "WO-10".
    """
    folded = unicodedata.normalize("NFKD", "" if text is None else str(text))
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch)).casefold()
    parts = []
    for chunk in _DIGITS_RE.split(folded):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def _cmp(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


def compare(a: WorkOrder, b: WorkOrder, field_name: str, direction: str = ASC) -> int:
    """
    Three-way compare on one field. Missing dates sink to the bottom in
    both directions; everything else flips with ``direction``.
    """
    field_spec(field_name)
    check_direction(direction)
    sign = -1 if direction == DESC else 1
    left = getattr(a, field_name)
    right = getattr(b, field_name)

    if field_name in DATE_FIELDS:
        if left is None or right is None:
            return (left is None) - (right is None)
        return sign * _cmp(left, right)
    return sign * _cmp(natural_key(left), natural_key(right))


def sort_records(
    records: Iterable[WorkOrder],
    field_name: Optional[str],
    direction: str = ASC,
) -> list[WorkOrder]:
    """Sorted copy; ``field_name=None`` keeps the incoming order."""
    records = list(records)
    if field_name is None:
        check_direction(direction)
        return records
    field_spec(field_name)
    check_direction(direction)
    return sorted(records, key=cmp_to_key(lambda a, b: compare(a, b, field_name, direction)))
