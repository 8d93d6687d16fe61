"""Canonical work-order record."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from wo_viewer.dates import format_display
from wo_viewer.fields import DATE_FIELDS, FIELD_NAMES, TEXT_FIELDS, field_spec

KEYWORD_SEPARATOR = " "


@dataclass(frozen=True)
class WorkOrder:
    """
    One normalized row. Text fields are trimmed strings (possibly empty);
    date fields are ISO ``YYYY-MM-DD`` strings or ``None`` when absent.
    """

    work_order: str = ""
    description: str = ""
    status: str = ""
    type: str = ""
    department: str = ""
    equipment: str = ""
    equipment_description: str = ""
    sched_start: Optional[str] = None
    orig_due: Optional[str] = None
    sched_end: Optional[str] = None
    assigned_to: str = ""

    def get(self, field_name: str) -> Any:
        field_spec(field_name)
        return getattr(self, field_name)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def display_dict(self) -> dict[str, str]:
        """Field -> presentation string, with dates as MM/DD/YYYY."""
        return {
            name: format_display(getattr(self, name)) if name in DATE_FIELDS else getattr(self, name)
            for name in FIELD_NAMES
        }

    def search_text(self) -> str:
        """Lowercased haystack for keyword search: text fields, then display dates."""
        parts = [getattr(self, name) for name in TEXT_FIELDS]
        parts.extend(format_display(getattr(self, name)) for name in DATE_FIELDS)
        return KEYWORD_SEPARATOR.join(parts).lower()
