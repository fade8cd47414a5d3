"""Maintenance CLI for the negotiation database (``bargain-admin``).

Subcommands:

- ``expire``: mark active sessions past their deadline as expired.
- ``analytics``: per-SKU daily aggregates for one day.
- ``audit``: query the audit trail by session, SKU, buyer, date range,
  event type, or a shorthand ``--last`` duration.

Output formats: table (default) or JSON.

Usage::

    bargain-admin expire
    bargain-admin analytics --date 2026-03-01 --format json
    bargain-admin audit --sku PHONE-X1 --last 7d
"""

from __future__ import annotations

import argparse
import json
from datetime import UTC, date, datetime, timedelta
from typing import Any

from bargain.audit.logger import AuditLogger
from bargain.audit.models import EventType
from bargain.audit.store import init_audit_table, query_audit_trail
from bargain.engine import expire_stale_sessions
from bargain.state.analytics import DailySkuAggregate, aggregate_daily
from bargain.state.schema import init_session_table, open_database
from bargain.state.store import SessionStore

DEFAULT_DB = "data/negotiation.db"


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=str,
        default=DEFAULT_DB,
        help=f"Path to the negotiation database (default: {DEFAULT_DB})",
    )


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subparser per command.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="bargain-admin", description="Negotiation engine maintenance"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    expire = commands.add_parser("expire", help="Mark stale active sessions as expired")
    expire.add_argument(
        "--limit",
        type=int,
        default=500,
        help="Maximum sessions to expire in one run (default: 500)",
    )
    _add_common(expire)

    analytics = commands.add_parser("analytics", help="Daily per-SKU aggregates")
    analytics.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        dest="day",
        help="Day to aggregate, YYYY-MM-DD (default: yesterday, UTC)",
    )
    _add_format(analytics)
    _add_common(analytics)

    audit = commands.add_parser("audit", help="Query the audit trail")
    audit.add_argument("--session", type=str, help="Filter by session ID")
    audit.add_argument("--sku", type=str, help="Filter by SKU")
    audit.add_argument("--user", type=str, help="Filter by buyer ID")
    audit.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    audit.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    audit.add_argument(
        "--event-type",
        type=str,
        choices=[e.value for e in EventType],
        help="Filter by event type",
    )
    audit.add_argument("--last", type=str, help='Shorthand duration (e.g., "7d", "24h")')
    audit.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum results (default: 50)",
    )
    _add_format(audit)
    _add_common(audit)

    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert a shorthand duration to an ISO 8601 timestamp string.

    Supported formats:
        - ``Nd`` -- N days ago (e.g., ``7d``)
        - ``Nh`` -- N hours ago (e.g., ``24h``)

    Args:
        last: Duration string like ``"7d"`` or ``"24h"``.
        now: Reference time (defaults to the current UTC time).

    Returns:
        ISO 8601 date-time string for the computed past time.

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    now = now or datetime.now(tz=UTC)
    if unit == "d":
        result = now - timedelta(days=value)
    elif unit == "h":
        result = now - timedelta(hours=value)
    else:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)

    return result.strftime("%Y-%m-%dT%H:%M:%SZ")


def _truncate(value: object, width: int) -> str:
    s = "" if value is None else str(value)
    if len(s) > width:
        return s[: width - 3] + "..."
    return s


def _render(headers: list[str], widths: list[int], rows: list[list[object]]) -> str:
    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))
    for row in rows:
        cells = [_truncate(v, w) for v, w in zip(row, widths, strict=True)]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))
    return "\n".join(lines)


def format_table(results: list[dict[str, Any]]) -> str:
    """Format audit results as a human-readable table.

    Columns: Timestamp, Event, Session, SKU, Round, Offer, Counter, Status.
    Long fields are truncated to fit reasonable terminal width.

    Args:
        results: List of audit entry dicts from ``query_audit_trail``.

    Returns:
        Formatted table string with header row.
    """
    if not results:
        return "No results found."

    return _render(
        ["Timestamp", "Event", "Session", "SKU", "Round", "Offer", "Counter", "Status"],
        [20, 18, 12, 14, 5, 10, 10, 10],
        [
            [
                row.get("timestamp"),
                row.get("event_type"),
                row.get("session_id"),
                row.get("sku"),
                row.get("round_number"),
                row.get("offer_price"),
                row.get("counter_price"),
                row.get("decision_status") or row.get("session_status"),
            ]
            for row in results
        ],
    )


def format_analytics_table(aggregates: list[DailySkuAggregate]) -> str:
    """Format daily aggregates as one row per SKU."""
    if not aggregates:
        return "No sessions found."

    return _render(
        ["SKU", "Sessions", "Accepted", "Rejected", "Expired", "Conv %", "Avg disc %", "Revenue"],
        [16, 8, 8, 8, 7, 7, 10, 14],
        [
            [
                a.sku,
                a.total_sessions,
                a.accepted_count,
                a.rejected_count,
                a.expired_count,
                a.conversion_rate,
                a.avg_discount_pct,
                a.total_revenue,
            ]
            for a in aggregates
        ],
    )


def format_json(results: list[dict[str, Any]]) -> str:
    """Format results as a pretty-printed JSON string."""
    return json.dumps(results, indent=2)


def run_expire(args: argparse.Namespace) -> str:
    conn = open_database(args.db)
    try:
        init_session_table(conn)
        init_audit_table(conn)
        count = expire_stale_sessions(
            SessionStore(conn), AuditLogger(conn), datetime.now(tz=UTC), args.limit
        )
    finally:
        conn.close()
    return f"Expired {count} session(s)."


def run_analytics(args: argparse.Namespace) -> str:
    day = args.day or (datetime.now(tz=UTC).date() - timedelta(days=1))
    conn = open_database(args.db)
    try:
        init_session_table(conn)
        aggregates = aggregate_daily(SessionStore(conn), day)
    finally:
        conn.close()

    if args.output_format == "json":
        return format_json([a.model_dump(mode="json") for a in aggregates])
    return format_analytics_table(aggregates)


def run_audit(args: argparse.Namespace) -> str:
    from_date = args.from_date
    if args.last:
        from_date = parse_last_duration(args.last)

    conn = open_database(args.db)
    try:
        init_audit_table(conn)
        results = query_audit_trail(
            conn,
            session_id=args.session,
            sku=args.sku,
            user_id=args.user,
            from_date=from_date,
            to_date=args.to_date,
            event_type=args.event_type,
            limit=args.limit,
        )
    finally:
        conn.close()

    return format_json(results) if args.output_format == "json" else format_table(results)


COMMANDS = {
    "expire": run_expire,
    "analytics": run_analytics,
    "audit": run_audit,
}


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run the selected command, and print its output."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        output = COMMANDS[args.command](args)
    except ValueError as exc:
        parser.error(str(exc))
    print(output)


if __name__ == "__main__":
    main()
