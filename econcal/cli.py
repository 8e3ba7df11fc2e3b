#!/usr/bin/env python3
"""Command-line interface for the economic calendar pipeline.

Commands:
  - econcal show    : Aggregate, validate and filter today's or tomorrow's events
  - econcal issues  : List the most recent data issues (needs DATABASE_URL)
  - econcal purge   : Delete data issues past the retention window
  - econcal report  : Summarize the last 24h of data issues by type and source

Typical usage:
  econcal show --currencies USD EUR --tz Europe/Kyiv
  econcal show --tomorrow --mode ai_forecast --json
  econcal issues --limit 20
  econcal report --hours 24
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Any

from econcal.configs.settings import Settings, get_settings
from econcal.ingestion.delivery import DeliveryMode
from econcal.ingestion.issue_log import DataIssueWriter, IssueLog, IssueSummary
from econcal.monitoring.logging import configure_logging
from econcal.schemas.quality import FilterResult
from econcal.schemas.subscriber import NewsSource, SubscriberPreferences

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="econcal", description="Economic calendar CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    sub = p.add_subparsers(dest="cmd")

    # show
    ps = sub.add_parser("show", help="Show deliverable events for one subscriber")
    ps.add_argument("--currencies", nargs="*", default=None, help="Currency codes (default: all)")
    ps.add_argument(
        "--source",
        default=NewsSource.BOTH.value,
        choices=[s.value for s in NewsSource],
        help="Calendar(s) to read",
    )
    ps.add_argument("--tz", default=None, help="Subscriber timezone (default: DEFAULT_TIMEZONE)")
    ps.add_argument("--tomorrow", action="store_true", help="Tomorrow instead of today")
    ps.add_argument(
        "--mode",
        default=DeliveryMode.GENERAL.value,
        choices=[m.value for m in DeliveryMode],
        help="Delivery mode",
    )
    ps.add_argument(
        "--on-demand",
        action="store_true",
        help="Use the on-demand past window instead of the scheduler one",
    )
    ps.add_argument("--json", action="store_true", help="Print events as JSON")
    ps.add_argument("--show-skipped", action="store_true", help="Also print skipped events")

    # issues
    pi = sub.add_parser("issues", help="List recent data issues")
    pi.add_argument("--limit", type=int, default=50, help="Number of issues to list")

    # report
    pr = sub.add_parser("report", help="Summarize recent data issues by type and source")
    pr.add_argument("--hours", type=float, default=24, help="Look-back window in hours")
    pr.add_argument("--examples", type=int, default=5, help="Number of recent examples")
    pr.add_argument("--json", action="store_true", help="Print the summary as JSON")

    # purge
    pp = sub.add_parser("purge", help="Delete old data issues")
    pp.add_argument("--days", type=int, default=7, help="Retention window in days")

    return p.parse_args(argv)


def _connect(settings: Settings):
    import psycopg2

    return psycopg2.connect(**settings.get_psycopg2_params())


def _print_result(result: FilterResult, as_json: bool, show_skipped: bool) -> None:
    if as_json:
        payload: dict[str, Any] = {
            "deliver": [event.model_dump(mode="json") for event in result.deliver],
        }
        if show_skipped:
            payload["skipped"] = [issue.model_dump(mode="json") for issue in result.skipped]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    print(f"{'TIME':<8} {'CUR':<4} {'IMPACT':<7} {'SOURCE':<13} TITLE")
    print("-" * 72)
    for event in result.deliver:
        print(
            f"{event.time:<8} {event.currency:<4} {event.impact:<7} {event.source:<13} {event.title}"
        )
        values = f"forecast={event.forecast} previous={event.previous} actual={event.actual}"
        print(f"{'':<34} {values}")
    print(f"\n{len(result.deliver)} events, {len(result.skipped)} skipped")

    if show_skipped:
        for issue in result.skipped:
            print(f"  skipped [{issue.type.value}] {issue.message}")


def _print_report(summary: IssueSummary, as_json: bool) -> None:
    if as_json:
        print(json.dumps(asdict(summary), indent=2, ensure_ascii=False, default=str))
        return

    print(f"Data quality report, last {summary.hours:g} hours")
    print(f"Total issues: {summary.total} ({summary.critical_count} critical)")
    for title, counts in (("By type", summary.by_type), ("By source", summary.by_source)):
        print(f"\n{title}:")
        for name, count in counts.items():
            print(f"  {name}: {count} ({count / summary.total:.1%})")
    if summary.recent_examples:
        print("\nRecent examples:")
        for example in summary.recent_examples:
            message = example["message"]
            if len(message) > 80:
                message = message[:80] + "..."
            print(f"  [{example['created_at']}] {example['type']} ({example['source']})")
            print(f"    {message}")


async def _show(args: argparse.Namespace, settings: Settings, issue_log: IssueLog) -> int:
    from econcal.ingestion.factory import create_pipeline

    prefs = SubscriberPreferences(
        currencies=args.currencies or None,
        news_source=NewsSource(args.source),
        timezone=args.tz or settings.DEFAULT_TIMEZONE,
    )
    pipeline = create_pipeline(settings=settings, issue_log=issue_log)
    try:
        result = await pipeline.run(
            prefs,
            mode=DeliveryMode(args.mode),
            for_scheduler=not args.on_demand,
            for_tomorrow=args.tomorrow,
        )
    finally:
        await pipeline.close()

    _print_result(result, args.json, args.show_skipped)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from econcal import __version__

        print(f"econcal version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json_logs=args.json_logs or settings.LOG_JSON)

    if args.cmd == "show":
        conn = None
        sink = None
        if settings.DATABASE_URL:
            conn = _connect(settings)
            sink = DataIssueWriter(conn)
            sink.ensure_table()
        try:
            return asyncio.run(_show(args, settings, IssueLog(sink=sink)))
        finally:
            if conn is not None:
                conn.close()

    if args.cmd in ("issues", "purge", "report"):
        conn = _connect(settings)
        try:
            writer = DataIssueWriter(conn)
            writer.ensure_table()
            if args.cmd == "purge":
                removed = writer.purge_older_than(args.days)
                print(f"Removed {removed} issues older than {args.days} days")
                return 0
            if args.cmd == "report":
                _print_report(writer.summary(args.hours, args.examples), args.json)
                return 0
            for issue in writer.recent_issues(args.limit):
                print(
                    f"{issue['created_at']} [{issue['type']}] {issue['source']}: {issue['message']}"
                )
            return 0
        finally:
            conn.close()

    print(f"Error: Unknown command: {args.cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
