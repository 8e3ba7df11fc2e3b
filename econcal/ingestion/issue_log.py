"""
Data Issue Log.

Every data quality finding is appended to an issue sink. The pipeline never
depends on the sink succeeding: sink failures are logged and dropped so that
normalization and delivery continue regardless.

Sinks:
    - LoggingIssueSink: one structured log line per issue (default)
    - DataIssueWriter: PostgreSQL ``data_issues`` table via psycopg2
"""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from econcal.schemas.quality import CRITICAL_ISSUE_TYPES, DataIssue, DataIssueType

logger = logging.getLogger(__name__)


class IssueSink(Protocol):
    """Append-only destination for data issues."""

    def log_issue(
        self,
        event_id: str | None,
        source: str,
        type: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None: ...


class LoggingIssueSink:
    """Writes each issue to the ``econcal.issues`` logger."""

    def __init__(self, logger_name: str = "econcal.issues", level: int = logging.INFO):
        self.logger = logging.getLogger(logger_name)
        self.level = level

    def log_issue(
        self,
        event_id: str | None,
        source: str,
        type: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.logger.log(
            self.level,
            f"{type}: {message}",
            extra={
                "source_id": source,
                "payload": {"event_id": event_id, "type": type, "details": details or {}},
            },
        )


# =============================================================================
# POSTGRES WRITER
# =============================================================================


@dataclass
class IssueSummary:
    """Issue counts of a look-back window, largest groups first."""

    hours: float
    total: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)
    recent_examples: list[dict[str, Any]] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        """Issues of the types that warrant an alert."""
        return sum(self.by_type.get(t.value, 0) for t in CRITICAL_ISSUE_TYPES)


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS data_issues (
    id SERIAL PRIMARY KEY,
    event_id TEXT,
    source TEXT NOT NULL,
    type TEXT NOT NULL,
    message TEXT NOT NULL,
    details TEXT,
    created_at TIMESTAMPTZ NOT NULL
)
"""


class DataIssueWriter:
    """
    Persists issues into the ``data_issues`` table.

    Works on an active psycopg2 connection. Each issue is committed in its own
    transaction; a failed insert is rolled back and logged, never raised.
    """

    def __init__(self, db_connection) -> None:
        """Initialize with an active psycopg2 connection."""
        self.conn = db_connection

    def ensure_table(self) -> None:
        """Create the table when missing."""
        with self.conn.cursor() as cur:
            cur.execute(CREATE_TABLE_SQL)
        self.conn.commit()

    def log_issue(
        self,
        event_id: str | None,
        source: str,
        type: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO data_issues (event_id, source, type, message, details, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (
                        event_id,
                        source,
                        type,
                        message,
                        json.dumps(details, ensure_ascii=False, default=str) if details else None,
                        datetime.now(UTC),
                    ),
                )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            logger.error(f"Failed to persist data issue '{type}' from {source}: {e}")

    def recent_issues(self, limit: int = 100) -> list[dict[str, Any]]:
        """Return the most recent issues, newest first."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, event_id, source, type, message, details, created_at
                FROM data_issues
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (limit,),
            )
            rows = cur.fetchall()

        columns = ("id", "event_id", "source", "type", "message", "details", "created_at")
        issues = []
        for row in rows:
            record = dict(zip(columns, row))
            if record["details"]:
                record["details"] = json.loads(record["details"])
            issues.append(record)
        return issues

    def purge_older_than(self, days: int = 7) -> int:
        """Delete issues older than the retention window; returns rows removed."""
        cutoff = datetime.now(UTC) - timedelta(days=days)
        with self.conn.cursor() as cur:
            cur.execute("DELETE FROM data_issues WHERE created_at < %s", (cutoff,))
            removed = cur.rowcount
        self.conn.commit()
        return removed

    def summary(self, hours: float = 24, examples: int = 5) -> IssueSummary:
        """
        Summarize the issues of the last hours.

        Args:
            hours: Look-back window
            examples: Number of most recent issues kept as examples

        Returns:
            IssueSummary with counts by type and by source
        """
        since = datetime.now(UTC) - timedelta(hours=hours)
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT type, source, message, created_at
                FROM data_issues
                WHERE created_at >= %s
                ORDER BY created_at DESC
                """,
                (since,),
            )
            rows = cur.fetchall()

        report = IssueSummary(hours=hours, total=len(rows))
        by_type: Counter[str] = Counter()
        by_source: Counter[str] = Counter()
        for issue_type, source, message, created_at in rows:
            by_type[issue_type] += 1
            by_source[source] += 1
            if len(report.recent_examples) < examples:
                report.recent_examples.append(
                    {"type": issue_type, "source": source, "message": message, "created_at": created_at}
                )
        report.by_type = dict(by_type.most_common())
        report.by_source = dict(by_source.most_common())
        return report


# =============================================================================
# ISSUE LOG
# =============================================================================


def select_critical_issues(issues: Iterable[DataIssue]) -> list[DataIssue]:
    """Subset worth an out-of-band alert."""
    return [issue for issue in issues if issue.is_critical]


class IssueLog:
    """
    Fire-and-forget front of the issue sink.

    record() and record_all() write synchronously. submit() hands a batch to a
    single background worker so blocking sinks (database writes) never stall
    the event loop; flush() waits for submitted batches.

    Args:
        sink: Destination for every issue (defaults to LoggingIssueSink)
        on_critical: Optional alert callback handed the critical subset of each batch
    """

    def __init__(
        self,
        sink: IssueSink | None = None,
        on_critical: Callable[[list[DataIssue]], None] | None = None,
    ) -> None:
        self.sink = sink or LoggingIssueSink()
        self.on_critical = on_critical
        self._executor: ThreadPoolExecutor | None = None
        self._pending: list[Future] = []
        self._lock = threading.Lock()

    def record(self, issue: DataIssue) -> None:
        """Append one issue; sink failures are logged and dropped."""
        try:
            self.sink.log_issue(
                issue.event_id,
                issue.source,
                issue.type.value,
                issue.message,
                issue.details or None,
            )
        except Exception as e:
            logger.error(f"Issue sink failed for {issue.type.value}: {e}")

    def record_all(self, issues: Iterable[DataIssue]) -> int:
        """
        Append a batch of issues and alert on the critical ones.

        Returns:
            Number of issues forwarded
        """
        batch = list(issues)
        for issue in batch:
            self.record(issue)

        critical = select_critical_issues(batch)
        if critical and self.on_critical is not None:
            try:
                self.on_critical(critical)
            except Exception as e:
                logger.error(f"Critical issue alert failed: {e}")
        return len(batch)

    def log_issue(
        self,
        event_id: str | None,
        source: str,
        type: DataIssueType | str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Convenience form matching the sink signature."""
        self.record_all(
            [
                DataIssue(
                    event_id=event_id,
                    source=source,
                    type=DataIssueType(type),
                    message=message,
                    details=details or {},
                )
            ]
        )

    def submit(self, issues: Iterable[DataIssue]) -> int:
        """
        Queue a batch for the background worker and return immediately.

        Batches are written in submission order.

        Returns:
            Number of issues queued
        """
        batch = list(issues)
        if not batch:
            return 0
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="issue-log")
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(self._executor.submit(self.record_all, batch))
        return len(batch)

    def flush(self, timeout: float | None = None) -> None:
        """Wait until every submitted batch has reached the sink."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush and stop the background worker."""
        self.flush()
        with self._lock:
            executor, self._executor = self._executor, None
            self._pending = []
        if executor is not None:
            executor.shutdown(wait=True)
