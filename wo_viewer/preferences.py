"""
Presentation preferences: last counting date field and column order.

Stored as one JSON object keyed by the storage id. Reading never fails:
a missing, unreadable or malformed store yields the defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wo_viewer.config import DEFAULT_STORAGE_ID
from wo_viewer.fields import DATE_FIELDS, DEFAULT_DATE_FIELD, FIELD_NAMES

logger = logging.getLogger(__name__)

DATE_FIELD_KEY = "date_field"
COLUMN_ORDER_KEY = "column_order"


def clean_column_order(order: Any) -> list[str]:
    """Known fields in the stored order, then any missing ones in canonical order."""
    if not isinstance(order, list):
        return list(FIELD_NAMES)
    cleaned: list[str] = []
    for name in order:
        if isinstance(name, str) and name in FIELD_NAMES and name not in cleaned:
            cleaned.append(name)
    cleaned.extend(name for name in FIELD_NAMES if name not in cleaned)
    return cleaned


@dataclass
class Preferences:
    date_field: str = DEFAULT_DATE_FIELD
    column_order: list[str] = field(default_factory=lambda: list(FIELD_NAMES))


class PreferenceStore:
    def __init__(
        self,
        path: "str | Path",
        storage_id: str = DEFAULT_STORAGE_ID,
        default_date_field: str = DEFAULT_DATE_FIELD,
    ) -> None:
        self.path = Path(path)
        self.storage_id = storage_id
        self.default_date_field = default_date_field

    def _read_all(self) -> dict[str, Any]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable preferences %s: %s", self.path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _section(self) -> dict[str, Any]:
        section = self._read_all().get(self.storage_id)
        return section if isinstance(section, dict) else {}

    def load(self) -> Preferences:
        section = self._section()
        date_field = section.get(DATE_FIELD_KEY)
        if date_field not in DATE_FIELDS:
            date_field = self.default_date_field
        return Preferences(
            date_field=date_field,
            column_order=clean_column_order(section.get(COLUMN_ORDER_KEY)),
        )

    def _write_section(self, section: dict[str, Any]) -> None:
        payload = self._read_all()
        payload[self.storage_id] = section
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def save_date_field(self, date_field: str) -> None:
        if date_field not in DATE_FIELDS:
            raise ValueError(f"'{date_field}' is not a date field")
        section = self._section()
        section[DATE_FIELD_KEY] = date_field
        self._write_section(section)

    def save_column_order(self, order: list[str]) -> list[str]:
        cleaned = clean_column_order(list(order))
        section = self._section()
        section[COLUMN_ORDER_KEY] = cleaned
        self._write_section(section)
        return cleaned

    def reset_layout(self) -> Preferences:
        """Forget the stored column order; the date field choice is kept."""
        section = self._section()
        if COLUMN_ORDER_KEY in section:
            del section[COLUMN_ORDER_KEY]
            self._write_section(section)
        return self.load()
