"""
Assignee x date counts.

Only records with a date on the chosen field are counted; an undated record
has no column to land in and is left out of every total. Empty assignees are
bucketed under ``UNASSIGNED``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import pandas as pd

from wo_viewer.dates import format_display
from wo_viewer.fields import ASSIGNEE_FIELD, field_spec, field_title, require_date_field
from wo_viewer.filters import option_sort_key
from wo_viewer.models import WorkOrder

logger = logging.getLogger(__name__)

UNASSIGNED = "(Unassigned)"
TOTAL_LABEL = "Total"
NO_DATED_ROWS = "No dated rows to count"
OPEN_BOUND = "—"


@dataclass
class PivotResult:
    date_field: str
    assignee_field: str = ASSIGNEE_FIELD
    assignees: list[str] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)
    counts: dict[tuple[str, str], int] = field(default_factory=dict)
    row_totals: dict[str, int] = field(default_factory=dict)
    column_totals: dict[str, int] = field(default_factory=dict)
    grand_total: int = 0
    rows_in: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.counts

    @property
    def undated(self) -> int:
        return self.rows_in - self.grand_total

    @property
    def totals_row_label(self) -> str:
        """``Total``, bracketed until it no longer matches an assignee."""
        label = TOTAL_LABEL
        while label in self.assignees:
            label = f"[{label}]"
        return label

    def count(self, assignee: str, iso_date: str) -> int:
        return self.counts.get((assignee, iso_date), 0)

    def dates_for(self, assignee: str) -> list[str]:
        """Dates on which ``assignee`` has at least one record, in order."""
        return [iso for iso in self.dates if (assignee, iso) in self.counts]

    def as_dict(self) -> dict[str, Any]:
        return {
            "date_field": self.date_field,
            "assignee_field": self.assignee_field,
            "assignees": list(self.assignees),
            "dates": list(self.dates),
            "rows": [
                {
                    "assignee": assignee,
                    "counts": {iso: self.count(assignee, iso) for iso in self.dates_for(assignee)},
                    "total": self.row_totals[assignee],
                }
                for assignee in self.assignees
            ],
            "column_totals": dict(self.column_totals),
            "grand_total": self.grand_total,
            "rows_in": self.rows_in,
            "undated": self.undated,
        }

    def to_frame(self, display_dates: bool = True) -> pd.DataFrame:
        """
        Assignees as rows, dates as columns, plus a Total column and a totals
        row labelled ``totals_row_label``. An empty result gives an empty frame.
        """
        if self.is_empty:
            return pd.DataFrame()
        labels = {iso: format_display(iso) if display_dates else iso for iso in self.dates}
        frame = pd.DataFrame(
            [[self.count(assignee, iso) for iso in self.dates] for assignee in self.assignees],
            index=list(self.assignees),
            columns=[labels[iso] for iso in self.dates],
        )
        frame[TOTAL_LABEL] = [self.row_totals[assignee] for assignee in self.assignees]
        totals = pd.DataFrame(
            [[self.column_totals[iso] for iso in self.dates] + [self.grand_total]],
            index=[self.totals_row_label],
            columns=frame.columns,
        )
        frame = pd.concat([frame, totals])
        frame = frame.astype(int)
        frame.index.name = field_title(self.assignee_field)
        return frame


def assignee_label(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    return text or UNASSIGNED


def aggregate(
    records: Iterable[WorkOrder],
    date_field: str,
    assignee_field: str = ASSIGNEE_FIELD,
) -> PivotResult:
    require_date_field(date_field)
    if field_spec(assignee_field).is_date:
        raise ValueError(f"Assignee field must be a text field, got '{assignee_field}'")

    cells: Counter[tuple[str, str]] = Counter()
    rows_in = 0
    for record in records:
        rows_in += 1
        iso = getattr(record, date_field)
        if iso is None:
            continue
        cells[(assignee_label(getattr(record, assignee_field)), iso)] += 1

    result = PivotResult(date_field=date_field, assignee_field=assignee_field, rows_in=rows_in)
    result.counts = dict(cells)
    for (assignee, iso), n in cells.items():
        result.row_totals[assignee] = result.row_totals.get(assignee, 0) + n
        result.column_totals[iso] = result.column_totals.get(iso, 0) + n
    result.assignees = sorted(result.row_totals, key=option_sort_key)
    result.dates = sorted(result.column_totals)
    result.grand_total = sum(cells.values())

    logger.debug(
        "Pivot on %s: %d assignees x %d dates, %d counted, %d undated",
        date_field, len(result.assignees), len(result.dates), result.grand_total, result.undated,
    )
    return result


def pivot_meta(
    rows_shown: int,
    date_field: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> dict[str, str]:
    """Summary lines for the counts panel."""
    return {
        "Rows shown": str(rows_shown),
        "Counting by": field_title(require_date_field(date_field)),
        "Range": f"{format_display(date_from) or OPEN_BOUND} → {format_display(date_to) or OPEN_BOUND}",
    }


def format_meta(meta: dict[str, str]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in meta.items())
