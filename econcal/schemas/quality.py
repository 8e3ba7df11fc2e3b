# econcal/schemas/quality.py
"""
Data quality records.

DataIssue is an append-only finding raised by the quality gate, the conflict
detector or the delivery filter. Results pair the surviving events with the
issues that explain every exclusion or flag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from econcal.schemas.event import CalendarEvent


class DataIssueType(str, Enum):
    """Closed set of quality finding kinds."""

    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_RANGE = "INVALID_RANGE"
    TIME_INCONSISTENCY = "TIME_INCONSISTENCY"
    DUPLICATE_EVENT = "DUPLICATE_EVENT"
    CONFLICT_BETWEEN_SOURCES = "CONFLICT_BETWEEN_SOURCES"
    PAST_TOO_FAR = "PAST_TOO_FAR"
    NO_TIME = "NO_TIME"


# Issue kinds worth an out-of-band alert
CRITICAL_ISSUE_TYPES = frozenset(
    {
        DataIssueType.MISSING_REQUIRED_FIELD,
        DataIssueType.TIME_INCONSISTENCY,
        DataIssueType.INVALID_RANGE,
    }
)


class DataIssue(BaseModel):
    """One immutable quality finding."""

    model_config = ConfigDict(frozen=True)

    event_id: str | None = None
    source: str
    type: DataIssueType
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_critical(self) -> bool:
        """Whether this issue belongs to the alert-worthy subset."""
        return self.type in CRITICAL_ISSUE_TYPES


@dataclass
class ValidationResult:
    """Events that passed the quality gate plus every issue raised."""

    valid: list[CalendarEvent] = field(default_factory=list)
    issues: list[DataIssue] = field(default_factory=list)

    def issues_of(self, issue_type: DataIssueType) -> list[DataIssue]:
        """Return issues of a single kind."""
        return [issue for issue in self.issues if issue.type == issue_type]


@dataclass
class FilterResult:
    """Events cleared for delivery plus the issue behind each exclusion."""

    deliver: list[CalendarEvent] = field(default_factory=list)
    skipped: list[DataIssue] = field(default_factory=list)
