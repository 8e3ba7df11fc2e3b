"""
Calendar Value Normalization.

Single home for "no data yet" semantics. Every adapter and the quality gate
go through these helpers so that a placeholder such as ``PENDING`` or ``-``
is treated as absence of data everywhere.
"""

from __future__ import annotations

import re

# Canonical marker stored in forecast/previous/actual when a source has no value
EMPTY_MARKER = "—"

PLACEHOLDER_PATTERN = re.compile(
    r"^(pending|tbd|tba|n/a|na|—|–|-|\.\.\.|…)$",
    re.IGNORECASE,
)

# Events in these categories carry no numeric fields but are still worth showing
NO_NUMERIC_TITLE_PATTERN = re.compile(
    r"Speech|Minutes|Statement|Press Conference|Policy Report",
    re.IGNORECASE,
)

RETAINED_IMPACTS = ("High", "Medium")


def is_placeholder(value: object) -> bool:
    """
    Check whether a raw value means "no data".

    Args:
        value: Raw cell/field value (any type, usually str or None)

    Returns:
        True for None, blank strings and the known placeholder spellings
    """
    if value is None:
        return True
    text = str(value).strip()
    if not text:
        return True
    return bool(PLACEHOLDER_PATTERN.match(text))


def has_real_value(value: object) -> bool:
    """Return True when the value holds genuine data."""
    return not is_placeholder(value)


def normalize_value(value: object) -> str:
    """
    Normalize a forecast/previous/actual value.

    Returns:
        The stripped value, or EMPTY_MARKER when it is a placeholder
    """
    if is_placeholder(value):
        return EMPTY_MARKER
    return str(value).strip()


def collapse_whitespace(value: str | None) -> str:
    """Collapse runs of whitespace into single spaces and strip."""
    if not value:
        return ""
    return " ".join(value.split())


def is_no_numeric_category(title: str) -> bool:
    """Speeches, minutes, statements and press conferences have no numbers."""
    return bool(NO_NUMERIC_TITLE_PATTERN.search(title or ""))


def passes_source_filter(
    impact: str,
    title: str,
    forecast: str | None,
    previous: str | None,
    actual: str | None,
) -> bool:
    """
    Hard filter applied by every adapter before the quality gate.

    Drops anything that is not High/Medium impact, and rows where forecast,
    previous and actual are all empty unless the title is a no-numeric
    category.
    """
    if impact not in RETAINED_IMPACTS:
        return False
    all_empty = is_placeholder(forecast) and is_placeholder(previous) and is_placeholder(actual)
    if all_empty and not is_no_numeric_category(title):
        return False
    return True
