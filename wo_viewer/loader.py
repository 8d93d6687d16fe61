"""
loader.py - tabular reader for work-order exports

Supports: .csv .tsv .txt .xlsx .xlsm .xls

Public API:
    table   = load_table("path/to/export.xlsx")
    table   = read_table(uploaded_bytes, "export.csv")
    records = table.records

Delimited text cells always arrive as strings ("" for an empty cell).
Spreadsheet cells keep their native type (int/float/datetime/str) and blank
cells arrive as None. Only one sheet is read: the first, or ``sheet_name``.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS

DELIMITER_CANDIDATES = (",", ";", "\t", "|")
UNNAMED_HEADER = "Unnamed: {index}"

# What pandas' spreadsheet engines raise for a damaged or mislabelled workbook.
WORKBOOK_ERRORS: tuple[type[Exception], ...] = (
    ValueError,
    OSError,
    KeyError,
    EOFError,
    zipfile.BadZipFile,
    InvalidFileException,
)


class LoadError(ValueError):
    """The file could not be turned into a table; prior state stays loaded."""


class UnsupportedFormatError(LoadError):
    pass


class MissingHeaderError(LoadError):
    pass


@dataclass
class TableLoad:
    records: list[dict[str, Any]] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    detected_format: str = ""
    detected_encoding: Optional[str] = None
    delimiter: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: Optional[list[str]] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)


def unsupported_message(suffix: str) -> str:
    shown = suffix or "(none)"
    return (
        f"Unsupported file type '{shown}'. "
        "Please upload a .csv, .tsv, .txt, .xlsx, .xlsm, or .xls file."
    )


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw) if raw else {}
    detected = result.get("encoding") or "utf-8"
    logger.debug("chardet: %s (confidence %.2f)", detected, result.get("confidence") or 0.0)
    return detected


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line by line: utf-8, the detected encoding, latin-1,
    then cp1252 with replacement. Embedded null bytes are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8-sig", preferred_encoding, "latin-1"):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    csv.Sniffer first; otherwise score each candidate by how consistently it
    splits the sample into the same (wide) column count.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:120]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters="".join(DELIMITER_CANDIDATES)).delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    sample_text = "\n".join(sample_lines)
    for delim in DELIMITER_CANDIDATES:
        rows = [
            row
            for row in csv.reader(io.StringIO(sample_text), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        widths = [len(row) for row in rows]
        mode_width, mode_count = Counter(widths).most_common(1)[0]
        score = (mode_width * 2.0) + (mode_count / len(widths)) * mode_width
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


def _header_width(text: str, delimiter: str) -> int:
    """Cell count of the first non-blank row, the width every data row is cut to."""
    for row in csv.reader(io.StringIO(text), delimiter=delimiter):
        if len(row) > 1 or (row and row[0].strip()):
            return len(row)
    return 0


def _validate_txt_table(text: str, delimiter: str) -> None:
    """A .txt upload must actually be delimited data, not prose."""
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    if not sample_lines:
        return
    rows = list(csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delimiter))
    if sum(1 for row in rows if len(row) > 1) < 1:
        raise LoadError(
            ".txt file does not appear to contain delimited/tabular data "
            f"(no line splits into multiple fields on {delimiter!r})"
        )


# ══════════════════════════════════════════════════════════════════════════════
# HEADER ROW
# ══════════════════════════════════════════════════════════════════════════════

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and not value.strip()


def _header_strings(raw_headers: list[Any], warnings: list[str]) -> list[str]:
    """
    Turn the first row into unique header strings. Blank cells get a
    placeholder name; repeated names get a ``.N`` suffix and a warning.
    """
    if all(_is_blank(value) for value in raw_headers):
        raise MissingHeaderError("File has no header row (the first row is empty).")

    headers: list[str] = []
    seen: Counter[str] = Counter()
    for index, value in enumerate(raw_headers):
        text = UNNAMED_HEADER.format(index=index) if _is_blank(value) else str(value).strip()
        if seen[text]:
            renamed = f"{text}.{seen[text]}"
            warnings.append(f"Duplicate header '{text}' renamed to '{renamed}'")
            seen[text] += 1
            text = renamed
        seen[text] += 1
        headers.append(text)
    return headers


def _records_from_frame(frame: pd.DataFrame, blank: Any, warnings: list[str]) -> tuple[list[str], list[dict[str, Any]]]:
    if frame.empty:
        return [], []
    rows = frame.values.tolist()
    headers = _header_strings(rows[0], warnings)
    records: list[dict[str, Any]] = []
    for row in rows[1:]:
        records.append(
            {
                header: blank if _is_blank(value) and not isinstance(value, str) else value
                for header, value in zip(headers, row)
            }
        )
    return headers, records


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT READERS
# ══════════════════════════════════════════════════════════════════════════════

def _read_text(data: bytes, suffix: str) -> TableLoad:
    encoding = _detect_encoding(data)
    text = _read_text_safely(data, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    if suffix == ".txt":
        _validate_txt_table(text, delimiter)

    sep = r"\|" if delimiter == "|" else delimiter
    width = _header_width(text, delimiter)
    wide_rows: list[int] = []

    def _truncate_wide_row(bad_line: list[str]) -> list[str]:
        wide_rows.append(len(bad_line))
        return bad_line[:width]

    try:
        frame = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            on_bad_lines=_truncate_wide_row,
            sep=sep,
            engine="python",
        )
    except pd.errors.EmptyDataError:
        frame = pd.DataFrame()
    except (pd.errors.ParserError, csv.Error) as exc:
        raise LoadError(f"Could not parse {suffix} file: {exc}") from exc

    warnings: list[str] = []
    if wide_rows:
        warnings.append(
            f"{len(wide_rows)} row(s) had more cells than the {width} header columns "
            f"(up to {max(wide_rows)}); extra cells were dropped"
        )
    headers, records = _records_from_frame(frame.fillna(""), "", warnings)
    return TableLoad(
        records=records,
        headers=headers,
        detected_format=suffix.lstrip("."),
        detected_encoding=encoding,
        delimiter=delimiter,
        warnings=warnings,
    )


def _read_excel(data: bytes, suffix: str, sheet_name: Optional[str]) -> TableLoad:
    # .xls requires xlrd; give a clear error if missing.
    reader_errors: tuple[type[Exception], ...] = WORKBOOK_ERRORS
    if suffix == ".xls":
        try:
            import xlrd
            from xlrd.compdoc import CompDocError
        except ImportError:
            raise ImportError(".xls files require xlrd - run: pip install xlrd") from None
        reader_errors += (xlrd.XLRDError, CompDocError)

    warnings: list[str] = []
    try:
        with pd.ExcelFile(io.BytesIO(data)) as workbook:
            all_sheets = [str(name) for name in workbook.sheet_names]
            if not all_sheets:
                raise LoadError("Workbook contains no sheets.")
            if sheet_name is None:
                chosen = all_sheets[0]
            elif sheet_name in all_sheets:
                chosen = sheet_name
            else:
                raise LoadError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
            frame = pd.read_excel(workbook, sheet_name=chosen, header=None, dtype=object)
    except LoadError:
        raise
    except reader_errors as exc:
        raise LoadError(f"Could not open workbook: {exc}") from exc

    if len(all_sheets) > 1:
        others = [name for name in all_sheets if name != chosen]
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. Ignored: {others}"
        )

    headers, records = _records_from_frame(frame, None, warnings)
    return TableLoad(
        records=records,
        headers=headers,
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def read_table(data: bytes, filename: str, sheet_name: Optional[str] = None) -> TableLoad:
    """
    Parse an in-memory upload. The suffix of ``filename`` picks the reader.

    Raises:
        UnsupportedFormatError  unknown suffix
        MissingHeaderError      first row has no header text
        LoadError               unreadable bytes / wrong container
        ImportError             .xls without xlrd installed
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in ALL_FORMATS:
        raise UnsupportedFormatError(unsupported_message(suffix))

    if suffix in TEXT_FORMATS:
        table = _read_text(data, suffix)
    else:
        table = _read_excel(data, suffix, sheet_name)

    logger.info(
        "Read %s: %d data rows, %d columns (%s)",
        filename, table.row_count, len(table.headers), table.detected_format,
    )
    for warning in table.warnings:
        logger.warning("%s: %s", filename, warning)
    return table


def load_table(path: "str | Path", sheet_name: Optional[str] = None) -> TableLoad:
    """Read a file from disk; FileNotFoundError when it does not exist."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.suffix.lower() not in ALL_FORMATS:
        raise UnsupportedFormatError(unsupported_message(path.suffix.lower()))
    return read_table(path.read_bytes(), path.name, sheet_name=sheet_name)
