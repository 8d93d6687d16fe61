"""
Session state: the loaded dataset plus the current filter and sort.

A load never edits the current Dataset. It builds a complete new one and
swaps it in with a single assignment; a load that fails leaves the previous
Dataset untouched and reports why.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from wo_viewer.config import ViewerConfig
from wo_viewer.fields import ASSIGNEE_FIELD, field_spec
from wo_viewer.filters import FilterSpec, apply_filters, assignee_options
from wo_viewer.headers import HeaderResolution
from wo_viewer.loader import LoadError, TableLoad, UnsupportedFormatError, load_table, read_table
from wo_viewer.models import WorkOrder
from wo_viewer.normalizer import normalize_records
from wo_viewer.pivot import PivotResult, aggregate, pivot_meta
from wo_viewer.sorting import ASC, check_direction, sort_records

logger = logging.getLogger(__name__)

EMPTY_LOAD_MESSAGE = "Loaded file, but no rows matched your selected columns. Check the headers/export."
CLEARED_MESSAGE = "Cleared."
IDLE_MESSAGE = "Upload a CSV or XLSX to load work orders."


@dataclass(frozen=True)
class Dataset:
    records: tuple[WorkOrder, ...] = ()
    source: Optional[str] = None
    dropped: int = 0
    header_resolution: HeaderResolution = field(default_factory=HeaderResolution)
    warnings: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "Dataset":
        return cls()

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_loaded(self) -> bool:
        return self.source is not None


@dataclass(frozen=True)
class LoadOutcome:
    ok: bool
    message: str
    rows: int = 0
    warnings: tuple[str, ...] = ()

    @property
    def is_error(self) -> bool:
        """True when the message should be shown as a problem."""
        return not self.ok or self.rows == 0


def loaded_message(rows: int, source: str) -> str:
    return f"Loaded {rows} rows from {source}"


class WorkOrderSession:
    """Owns exactly one Dataset, one FilterSpec and one sort selection."""

    def __init__(self, config: Optional[ViewerConfig] = None) -> None:
        self.config = config or ViewerConfig()
        self.config.validate()
        self.dataset = Dataset.empty()
        self.filters = FilterSpec(date_field=self.config.default_date_field)
        self.sort_field: Optional[str] = None
        self.sort_direction = ASC

    # ── loading ──────────────────────────────────────────────────────────────

    def load_records(
        self,
        raw_records: Iterable[Mapping[Any, Any]],
        headers: Optional[Sequence[Any]] = None,
        source: str = "upload",
        extra_warnings: Sequence[str] = (),
    ) -> LoadOutcome:
        result = normalize_records(raw_records, headers, self.config.date_order)
        warnings = tuple(list(extra_warnings) + result.warnings)
        dataset = Dataset(
            records=tuple(result.records),
            source=source,
            dropped=result.dropped,
            header_resolution=result.header_resolution,
            warnings=warnings,
        )
        self.dataset = dataset
        if not dataset.records:
            message = EMPTY_LOAD_MESSAGE
        else:
            message = loaded_message(len(dataset), source)
        logger.info("%s (%d blank rows dropped)", message, dataset.dropped)
        return LoadOutcome(ok=True, message=message, rows=len(dataset), warnings=warnings)

    def _load_table(self, table: TableLoad, source: str) -> LoadOutcome:
        return self.load_records(table.records, table.headers, source, table.warnings)

    def _failed(self, exc: Exception) -> LoadOutcome:
        if isinstance(exc, UnsupportedFormatError):
            message = str(exc)
        else:
            message = f"Failed to read file: {exc}"
        logger.warning("Load failed, keeping %d loaded rows: %s", len(self.dataset), exc)
        return LoadOutcome(ok=False, message=message, rows=len(self.dataset))

    def load_bytes(self, data: bytes, filename: str, sheet_name: Optional[str] = None) -> LoadOutcome:
        try:
            table = read_table(data, filename, sheet_name=sheet_name)
        except (LoadError, ImportError) as exc:
            return self._failed(exc)
        return self._load_table(table, Path(filename).name)

    def load_path(self, path: "str | Path", sheet_name: Optional[str] = None) -> LoadOutcome:
        path = Path(path)
        try:
            table = load_table(path, sheet_name=sheet_name)
        except (LoadError, ImportError, OSError) as exc:
            return self._failed(exc)
        return self._load_table(table, path.name)

    def clear(self) -> LoadOutcome:
        self.dataset = Dataset.empty()
        return LoadOutcome(ok=True, message=CLEARED_MESSAGE)

    # ── view state ───────────────────────────────────────────────────────────

    def set_filters(self, spec: FilterSpec) -> None:
        self.filters = spec

    def set_sort(self, field_name: Optional[str], direction: str = ASC) -> None:
        check_direction(direction)
        if field_name is not None:
            field_spec(field_name)
        self.sort_field = field_name
        self.sort_direction = direction

    def filtered_rows(self) -> list[WorkOrder]:
        return apply_filters(self.dataset.records, self.filters)

    def visible_rows(self) -> list[WorkOrder]:
        """Filtered rows in display order."""
        return sort_records(self.filtered_rows(), self.sort_field, self.sort_direction)

    def pivot(self, assignee_field: str = ASSIGNEE_FIELD) -> PivotResult:
        return aggregate(self.filtered_rows(), self.filters.date_field, assignee_field)

    def pivot_meta(self) -> dict[str, str]:
        return pivot_meta(
            len(self.filtered_rows()),
            self.filters.date_field,
            self.filters.date_from,
            self.filters.date_to,
        )

    def assignee_options(self) -> list[str]:
        return assignee_options(self.filtered_rows())
