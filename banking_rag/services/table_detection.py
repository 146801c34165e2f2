# =============================================================================
# Table Detection — Structural Heuristics over Extracted Text
# =============================================================================
#
# Finds the spans of a document's plain text that hold tabular banking data
# (rate tables, fee schedules, exhibits) so the chunker can keep them whole.
#
# ALGORITHM:
# 1. DETECT — every DetectionRule scans the text and returns seeds
#    (a matched span plus the matched marker text).
# 2. EXPAND — each seed grows to its full line, then line by line backward
#    and forward while the neighbouring lines look like table lines.
# 3. MERGE — regions sorted by start collapse when the gap between them is
#    at most `max_gap` characters. A caption ("Table 2.1") and its body are
#    often separated by a short context line.
#
# DESIGN DECISION: Rules are objects, not a hard-coded regex list.
# Banks label tables differently ("Schedule B", "Exhibit 4", "Table 3.2").
# A new convention is a new rule in DEFAULT_RULES; expansion and merging
# never change.
#
# DESIGN DECISION: The table-line predicate is purely syntactic.
# A line counts as a table line when it holds a |...| pair or consists only
# of pipes, dashes, colons and whitespace. Prose containing pipes is kept
# whole as if it were a table. That over-preserves text but never splits a
# real table, so irregular tables (ragged column counts) are never errors.
#
# All functions here are pure: no I/O, no shared state. Regions are frozen
# dataclasses and merging returns a new tuple.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import NamedTuple, Protocol

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


class Seed(NamedTuple):
    """A single rule match: the matched span and its marker text."""

    start: int
    end: int
    header: str
    is_caption: bool = False


@dataclass(frozen=True)
class TableRegion:
    """
    A span of the source text identified as tabular.

    `start`/`end` are character offsets into the source text (end exclusive).
    `headers` holds every distinct marker that contributed to the region,
    in source order. `header` is their comma-joined form.
    """

    start: int
    end: int
    headers: tuple[str, ...] = field(default=())

    @property
    def header(self) -> str:
        return ", ".join(self.headers)

    def contains(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end


# ---------------------------------------------------------------------------
# Detection Rules
# ---------------------------------------------------------------------------


class DetectionRule(Protocol):
    """Protocol for a table signal: anything that can find seeds in text."""

    name: str

    def match(self, text: str) -> list[Seed]:
        ...


class RegexRule:
    """Base rule: every match of a compiled pattern is a seed."""

    name = "regex"
    is_caption = False

    def __init__(self, pattern: str, flags: int = 0) -> None:
        self._pattern = re.compile(pattern, flags)

    @property
    def pattern(self) -> str:
        return self._pattern.pattern

    def match(self, text: str) -> list[Seed]:
        return [
            Seed(m.start(), m.end(), m.group(0).strip(), self.is_caption)
            for m in self._pattern.finditer(text)
        ]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern!r})"


class CaptionRule(RegexRule):
    """Explicit caption such as "Table 2.1", "Schedule A" or "Exhibit 4"."""

    name = "caption"
    is_caption = True


class DelimitedRowRule(RegexRule):
    """A pipe-delimited row: two pipes on the same line."""

    name = "delimited_row"

    def __init__(self) -> None:
        super().__init__(r"\|[^\n]*\|")


class SeparatorRowRule(RegexRule):
    """A separator line made only of pipes, dashes, colons and whitespace."""

    name = "separator_row"

    def __init__(self) -> None:
        super().__init__(r"^[ \t\r|:-]*[|:-][ \t\r|:-]*$", re.MULTILINE)


DEFAULT_RULES: tuple[DetectionRule, ...] = (
    CaptionRule(r"\bTable \d+\.\d+"),
    CaptionRule(r"\bSchedule [A-Z]+\b"),
    CaptionRule(r"\bExhibit \d+\b"),
    DelimitedRowRule(),
    SeparatorRowRule(),
)

DEFAULT_MAX_GAP = 50

_DELIMITED = re.compile(r"\|.*\|")
_SEPARATOR_ONLY = re.compile(r"[|:\-\s]+")


# ---------------------------------------------------------------------------
# Line Helpers
# ---------------------------------------------------------------------------


def is_table_line(line: str) -> bool:
    """True when a line is pipe-delimited or separator-only."""
    stripped = line.strip()
    if not stripped:
        return False
    return bool(_SEPARATOR_ONLY.fullmatch(stripped) or _DELIMITED.search(stripped))


def _line_start(text: str, index: int) -> int:
    return text.rfind("\n", 0, index) + 1


def _line_end(text: str, index: int) -> int:
    end = text.find("\n", index)
    return len(text) if end == -1 else end


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def expand_region(text: str, seed: Seed) -> TableRegion:
    """
    Grow a seed to the maximal run of table lines around it.

    The seed's own line is always included, whether or not it looks like a
    table line; this keeps captions ("Table 2.1 — Fixed Rates") attached to
    the rows directly above or below them.
    """
    start = _line_start(text, seed.start)
    end = _line_end(text, seed.end)

    # Backward: the previous line spans [prev_start, start - 1)
    while start > 0:
        prev_start = _line_start(text, start - 1)
        if not is_table_line(text[prev_start:start - 1]):
            break
        start = prev_start

    # Forward: the next line spans [end + 1, next_end)
    while end < len(text):
        next_end = _line_end(text, end + 1)
        if not is_table_line(text[end + 1:next_end]):
            break
        end = next_end

    return TableRegion(start=start, end=end, headers=(seed.header,))


def merge_regions(
    regions: Iterable[TableRegion],
    max_gap: int = DEFAULT_MAX_GAP,
) -> tuple[TableRegion, ...]:
    """
    Merge overlapping or nearly adjacent regions.

    Two regions merge when `later.start - earlier.end <= max_gap`.
    Returns a new tuple, disjoint and sorted by start.
    """
    merged: list[TableRegion] = []
    for region in sorted(regions, key=lambda r: (r.start, r.end)):
        if merged and region.start - merged[-1].end <= max_gap:
            last = merged[-1]
            merged[-1] = TableRegion(
                start=last.start,
                end=max(last.end, region.end),
                headers=_combine_headers(last.headers, region.headers),
            )
        else:
            merged.append(region)
    return tuple(merged)


def find_table_regions(
    text: str,
    rules: Sequence[DetectionRule] = DEFAULT_RULES,
    max_gap: int = DEFAULT_MAX_GAP,
) -> tuple[TableRegion, ...]:
    """
    Detect, expand and merge table regions in `text`.

    Seeds are processed in source order. A seed that falls inside the region
    expanded from an earlier seed is not expanded again (every row of a
    table would otherwise re-walk the whole table); only its caption, if it
    is one, is recorded on that region.

    Returns:
        Disjoint regions sorted by start offset. Empty when nothing matched.
    """
    seeds = sorted(
        (seed for rule in rules for seed in rule.match(text)),
        key=lambda s: (s.start, s.end),
    )
    if not seeds:
        return ()

    expanded: list[TableRegion] = []
    for seed in seeds:
        if expanded and expanded[-1].contains(seed.start, seed.end):
            if seed.is_caption:
                last = expanded[-1]
                expanded[-1] = TableRegion(
                    start=last.start,
                    end=last.end,
                    headers=_combine_headers(last.headers, (seed.header,)),
                )
            continue
        expanded.append(expand_region(text, seed))

    regions = merge_regions(expanded, max_gap=max_gap)
    logger.debug(
        "Table detection: %d seeds, %d expanded, %d merged regions",
        len(seeds), len(expanded), len(regions),
    )
    return regions


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _combine_headers(
    first: tuple[str, ...],
    second: tuple[str, ...],
) -> tuple[str, ...]:
    """Concatenate header tuples, dropping repeats."""
    return first + tuple(h for h in second if h not in first)
