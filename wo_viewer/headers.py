"""
Header resolver: map vendor export headers onto canonical work-order fields.

Every header goes through the same ordered match strategies:

    exact         normalized header found in the synonym table
    depunctuated  same lookup with all periods removed
    contains      a synonym appears as a whole-word run inside the header
                  ("Scheduled Start Date (Local)")

The first strategy that produces a field wins. Inside the containment pass
the earliest declared field wins ("Equipment Status" is a status column);
within one field longer synonyms are tried first. A header no strategy
matches is unmapped and ignored.

Public API:
    normalize_header(header) -> str
    resolve_header(header) -> str | None
    match_header(header) -> HeaderMatch
    build_header_map(headers) -> HeaderResolution
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from wo_viewer.fields import FIELD_NAMES, HEADER_SYNONYMS

logger = logging.getLogger(__name__)

UNMAPPED = None

_SEPARATOR_RE = re.compile(r"[_\-]+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(header: Any) -> str:
    """
    Lowercase, trim, drop BOMs, treat ``_``/``-`` as spaces and collapse runs
    of whitespace. Periods are kept; see ``strip_periods``.
    """
    text = "" if header is None else str(header)
    text = text.replace("\ufeff", "").strip().lower()
    text = _SEPARATOR_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_periods(normalized: str) -> str:
    return _WHITESPACE_RE.sub(" ", normalized.replace(".", "")).strip()


def _build_lookups() -> tuple[dict[str, str], dict[str, str]]:
    exact: dict[str, str] = {}
    depunctuated: dict[str, str] = {}
    for raw_synonym, target in HEADER_SYNONYMS.items():
        if target not in FIELD_NAMES:
            raise ValueError(f"Synonym '{raw_synonym}' targets unknown field '{target}'")
        for table, key in (
            (exact, normalize_header(raw_synonym)),
            (depunctuated, strip_periods(normalize_header(raw_synonym))),
        ):
            existing = table.get(key)
            if existing is not None and existing != target:
                raise ValueError(
                    f"Synonym table conflict: '{raw_synonym}' (as '{key}') maps to "
                    f"'{target}' but was already mapped to '{existing}'"
                )
            table[key] = target
    return exact, depunctuated


# Built once at import time, never mutated.
_EXACT_LOOKUP, _DEPUNCTUATED_LOOKUP = _build_lookups()

_FIELD_ORDER = {name: index for index, name in enumerate(FIELD_NAMES)}

# Declaration order of the target field first, then longest synonym.
_CONTAINMENT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<![a-z0-9])" + re.escape(synonym) + r"(?![a-z0-9])"), target)
    for synonym, target in sorted(
        _DEPUNCTUATED_LOOKUP.items(),
        key=lambda item: (_FIELD_ORDER[item[1]], -len(item[0]), item[0]),
    )
]


def _match_exact(normalized: str) -> Optional[str]:
    return _EXACT_LOOKUP.get(normalized)


def _match_depunctuated(normalized: str) -> Optional[str]:
    return _DEPUNCTUATED_LOOKUP.get(strip_periods(normalized))


def _match_contains(normalized: str) -> Optional[str]:
    candidate = strip_periods(normalized)
    for pattern, target in _CONTAINMENT_PATTERNS:
        if pattern.search(candidate):
            return target
    return None


MATCH_STRATEGIES: tuple[tuple[str, Callable[[str], Optional[str]]], ...] = (
    ("exact", _match_exact),
    ("depunctuated", _match_depunctuated),
    ("contains", _match_contains),
)


@dataclass(frozen=True)
class HeaderMatch:
    header: Any
    normalized: str
    field: Optional[str]
    strategy: Optional[str]

    @property
    def matched(self) -> bool:
        return self.field is not None


def match_header(header: Any) -> HeaderMatch:
    normalized = normalize_header(header)
    if normalized:
        for strategy_name, strategy in MATCH_STRATEGIES:
            target = strategy(normalized)
            if target is not None:
                return HeaderMatch(header, normalized, target, strategy_name)
    return HeaderMatch(header, normalized, UNMAPPED, None)


def resolve_header(header: Any) -> Optional[str]:
    """Return the canonical field for ``header`` or ``None`` when unmapped."""
    return match_header(header).field


@dataclass
class HeaderResolution:
    """
    Per-file header map. ``mapping`` holds incoming header -> field for the
    header that claimed each field; other headers resolving to an
    already-claimed field are listed in ``duplicates`` and ignored.
    """

    mapping: dict[Any, str] = field(default_factory=dict)
    matches: list[HeaderMatch] = field(default_factory=list)
    unmapped: list[Any] = field(default_factory=list)
    duplicates: list[Any] = field(default_factory=list)

    @property
    def matched_fields(self) -> list[str]:
        claimed = set(self.mapping.values())
        return [name for name in FIELD_NAMES if name in claimed]

    @property
    def missing_fields(self) -> list[str]:
        claimed = set(self.mapping.values())
        return [name for name in FIELD_NAMES if name not in claimed]

    @property
    def recognized(self) -> bool:
        return bool(self.mapping)

    def header_for(self, field_name: str) -> Any:
        for header, target in self.mapping.items():
            if target == field_name:
                return header
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "mapping": {str(header): target for header, target in self.mapping.items()},
            "matches": [
                {
                    "header": str(match.header),
                    "normalized": match.normalized,
                    "field": match.field,
                    "strategy": match.strategy,
                }
                for match in self.matches
            ],
            "unmapped": [str(header) for header in self.unmapped],
            "duplicates": [str(header) for header in self.duplicates],
            "missing_fields": self.missing_fields,
        }


_STRATEGY_RANK = {name: rank for rank, (name, _) in enumerate(MATCH_STRATEGIES)}


def build_header_map(headers: Iterable[Any]) -> HeaderResolution:
    """
    Resolve every incoming header of one file.

    Fields are claimed by stronger matches first (exact before depunctuated
    before contains), then by column position, so "Status Date" cannot take
    ``status`` away from a later "Status" column.
    """
    resolution = HeaderResolution()
    resolution.matches = [match_header(header) for header in headers]

    claimed: dict[str, int] = {}
    ranked = sorted(
        (
            (_STRATEGY_RANK[match.strategy], position, match)
            for position, match in enumerate(resolution.matches)
            if match.matched
        ),
        key=lambda item: (item[0], item[1]),
    )
    for _, position, match in ranked:
        if match.field not in claimed:
            claimed[match.field] = position

    winners = set(claimed.values())
    for position, match in enumerate(resolution.matches):
        if not match.matched:
            resolution.unmapped.append(match.header)
            logger.debug("Unmapped column ignored: %r", match.header)
        elif position in winners:
            resolution.mapping[match.header] = match.field
            logger.debug("Column mapped (%s): %r -> '%s'", match.strategy, match.header, match.field)
        else:
            resolution.duplicates.append(match.header)
            logger.info(
                "Column %r also resolves to '%s'; keeping the stronger match",
                match.header, match.field,
            )

    if not resolution.mapping:
        logger.warning("No recognizable headers among %d columns", len(resolution.matches))
    return resolution
