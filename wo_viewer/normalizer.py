"""
Row normalizer: raw header-keyed records -> canonical WorkOrder records.

The header map is built once per file; each record is then projected onto
the fixed field set. Date fields go through ``dates.parse_date``; text fields
are stringified and trimmed. Per-row problems never raise: a bad cell becomes
an empty string or an absent date for that row only.
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd

from wo_viewer.dates import MONTH_FIRST, parse_date
from wo_viewer.fields import DATE_FIELDS, FIELD_NAMES, IDENTITY_FIELDS
from wo_viewer.headers import HeaderResolution, build_header_map
from wo_viewer.models import WorkOrder

logger = logging.getLogger(__name__)

NO_HEADERS_WARNING = (
    "No recognizable headers found. Make sure your export includes columns like "
    "'Work Order', 'Sched. Start Date', 'Assigned To', etc."
)


def text_value(value: Any) -> str:
    """Stringify a raw cell for a text field; blanks and NaN become ''."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        number = float(value)
        if math.isnan(number):
            return ""
        # Spreadsheet readers hand back 1001.0 for a cell typed as 1001.
        if number.is_integer():
            return str(int(number))
        return repr(number)
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).replace("\x00", "").strip()


def is_dropped(record: WorkOrder) -> bool:
    """True when every identity-bearing field is empty or absent."""
    return not any(getattr(record, name) for name in IDENTITY_FIELDS)


def normalize_record(
    raw: Mapping[Any, Any],
    header_map: Mapping[Any, str],
    date_order: str = MONTH_FIRST,
) -> Optional[WorkOrder]:
    """
    Project one raw record onto the canonical field set.

    Returns ``None`` when the row is dropped (blank across all identity
    fields). Fields with no mapped header default to '' / absent.
    """
    values: dict[str, Any] = {}
    for header, field_name in header_map.items():
        raw_value = raw.get(header)
        if field_name in DATE_FIELDS:
            values[field_name] = parse_date(raw_value, date_order)
        else:
            values[field_name] = text_value(raw_value)
    record = WorkOrder(**values)
    if is_dropped(record):
        return None
    return record


@dataclass
class NormalizationResult:
    records: list[WorkOrder] = field(default_factory=list)
    dropped: int = 0
    header_resolution: HeaderResolution = field(default_factory=HeaderResolution)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_in(self) -> int:
        return len(self.records) + self.dropped


def _collect_headers(raw_records: Sequence[Mapping[Any, Any]]) -> list[Any]:
    headers: list[Any] = []
    seen: set[Any] = set()
    for raw in raw_records:
        for header in raw.keys():
            if header not in seen:
                seen.add(header)
                headers.append(header)
    return headers


def normalize_records(
    raw_records: Iterable[Mapping[Any, Any]],
    headers: Optional[Sequence[Any]] = None,
    date_order: str = MONTH_FIRST,
) -> NormalizationResult:
    """
    Normalize a whole file. ``headers`` is the literal header row when the
    parser knows it; otherwise it is collected from the record keys.
    """
    raw_records = list(raw_records)
    if headers is None:
        headers = _collect_headers(raw_records)

    resolution = build_header_map(headers)
    result = NormalizationResult(header_resolution=resolution)
    if headers and not resolution.recognized:
        result.warnings.append(NO_HEADERS_WARNING)

    for raw in raw_records:
        record = normalize_record(raw, resolution.mapping, date_order)
        if record is None:
            result.dropped += 1
        else:
            result.records.append(record)

    logger.info(
        "Normalized %d rows (%d kept, %d dropped); fields matched: %s",
        result.total_in,
        len(result.records),
        result.dropped,
        ", ".join(resolution.matched_fields) or "none",
    )
    missing = [name for name in FIELD_NAMES if name in resolution.missing_fields]
    if missing and resolution.recognized:
        logger.debug("Fields with no source column: %s", ", ".join(missing))
    return result
