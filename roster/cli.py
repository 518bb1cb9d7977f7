"""Command-line interface for parish roster administration."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime

from roster.config import RosterConfig, load_config
from roster.domain.db import get_session, get_session_factory, init_database, reset_database
from roster.engine.orchestrator import AvailabilityOrchestrator
from roster.errors import RosterError
from roster.io.import_csv import import_blocks_csv, import_extras_csv, import_mass_times_csv, import_ministers_csv
from roster.services import admin, reports
from roster.services.timeplan import format_time, utc_now


def _load(args: argparse.Namespace) -> RosterConfig:
    cfg = load_config(args.config)
    if args.db:
        cfg.db_url = args.db
    return cfg


def _month(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    try:
        stamp = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Month must be YYYY-MM, got {value!r}") from None
    return stamp.year, stamp.month


def _date(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Date must be YYYY-MM-DD, got {value!r}") from None


def _resolve_month(cfg: RosterConfig, value) -> tuple[int, int]:
    if value is not None:
        return value
    orchestrator = AvailabilityOrchestrator(get_session_factory(cfg.db_url, cfg.echo_sql), cfg)
    return orchestrator.default_month()


def _cmd_init_db(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Initialize the database."""
    if args.reset:
        reset_database(cfg.db_url)
        print(f"[OK] Database reset: {cfg.db_url}")
        return
    init_database(cfg.db_url)
    print(f"[OK] Database initialized: {cfg.db_url}")


def _cmd_import_csv(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Import CSV data into database."""
    session = get_session(cfg.db_url)

    try:
        if args.ministers:
            count = import_ministers_csv(session, args.ministers)
            print(f"[OK] Imported {count} ministers")

        if args.mass_times:
            count = import_mass_times_csv(session, args.mass_times)
            print(f"[OK] Imported {count} mass times")

        if args.extras:
            count = import_extras_csv(session, args.extras)
            print(f"[OK] Imported {count} extra events")

        if args.blocks:
            count = import_blocks_csv(session, args.blocks)
            print(f"[OK] Imported {count} blocks")

        print("[OK] CSV import complete")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _cmd_window_status(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Show whether a month can be edited now."""
    orchestrator = AvailabilityOrchestrator(get_session_factory(cfg.db_url, cfg.echo_sql), cfg)
    year, month = args.month or orchestrator.default_month()
    decision = orchestrator.window_status(year, month)
    state = "OPEN" if decision.allowed else "CLOSED"
    print(f"[OK] {year}-{month:02d}: {state} ({decision.reason}) - {decision.message}")


def _cmd_set_window(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Save the default window settings."""
    session = get_session(cfg.db_url)
    try:
        row = admin.save_window_config(session, args.days_before, hard_close=args.hard_close)
    finally:
        session.close()
    print(f"[OK] Window settings saved: opens {row.days_before_next_month} days before the month, "
          f"hard_close={'yes' if row.hard_close else 'no'}")


def _cmd_release_month(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Manually release a month for editing."""
    session = get_session(cfg.db_url)
    now = utc_now()
    try:
        if args.current:
            override = admin.release_current_month(session, now, tz=cfg.timezone)
        elif args.month:
            override = admin.release_month(session, *args.month, now=now, tz=cfg.timezone)
        else:
            override = admin.release_next_month(session, now, tz=cfg.timezone)
    finally:
        session.close()
    print(f"[OK] Released {override.year}-{override.month:02d} until {override.open_until:%Y-%m-%d %H:%M} "
          f"(override {override.id})")


def _cmd_revoke_override(args: argparse.Namespace, cfg: RosterConfig) -> None:
    session = get_session(cfg.db_url)
    try:
        removed = admin.revoke_override(session, args.id)
    finally:
        session.close()
    if removed:
        print(f"[OK] Override {args.id} revoked")
    else:
        print(f"[ERROR] Override {args.id} not found")


def _cmd_block(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Block a whole date or specific times on it."""
    session = get_session(cfg.db_url)
    try:
        if args.list_times:
            times = admin.block_candidate_times(session, args.date)
            print(f"[OK] Times on {args.date}: {', '.join(format_time(t) for t in times) or 'none'}")
            return
        block = admin.save_block(session, args.date, args.times, reason=args.reason, block_id=args.id)
    finally:
        session.close()
    scope = ", ".join(block.blocked_times) if block.blocked_times else "whole day"
    print(f"[OK] Block {block.id} saved for {block.date} ({scope})")


def _cmd_unblock(args: argparse.Namespace, cfg: RosterConfig) -> None:
    session = get_session(cfg.db_url)
    try:
        removed = admin.remove_block(session, args.id)
    finally:
        session.close()
    if removed:
        print(f"[OK] Block {args.id} removed")
    else:
        print(f"[ERROR] Block {args.id} not found")


def _cmd_coverage(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Print coverage for a month, optionally exporting it."""
    year, month = _resolve_month(cfg, args.month)
    session = get_session(cfg.db_url)
    try:
        df = reports.coverage_report(session, year, month, status=args.status)
    finally:
        session.close()
    print(reports.summarize_coverage(df))
    if args.out:
        df.to_csv(args.out, index=False)
        print(f"[OK] Exported {len(df)} rows to {args.out}")


def _cmd_summary(args: argparse.Namespace, cfg: RosterConfig) -> None:
    """Print selections per minister for a month."""
    year, month = _resolve_month(cfg, args.month)
    session = get_session(cfg.db_url)
    try:
        df = reports.minister_summary(session, year, month)
    finally:
        session.close()
    if df.empty:
        print(f"[OK] No selections for {year}-{month:02d}")
        return
    print(df.to_string(index=False))


def _cmd_rebuild_occupancy(args: argparse.Namespace, cfg: RosterConfig) -> None:
    orchestrator = AvailabilityOrchestrator(get_session_factory(cfg.db_url, cfg.echo_sql), cfg)
    count = orchestrator.rebuild_occupancy()
    print(f"[OK] Rebuilt {count} occupancy records")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roster",
        description="Parish ministers' monthly availability - administration",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (overrides the config file)")
    parser.add_argument("--config", help="Path to config YAML or JSON")

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Initialize database")
    init.add_argument("--reset", action="store_true", help="Drop and recreate all tables (deletes all data!)")
    init.set_defaults(func=_cmd_init_db)

    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--ministers", help="Path to ministers CSV")
    imp.add_argument("--mass-times", help="Path to recurring mass times CSV")
    imp.add_argument("--extras", help="Path to extra events CSV")
    imp.add_argument("--blocks", help="Path to blocks CSV")
    imp.set_defaults(func=_cmd_import_csv)

    status = sub.add_parser("window-status", help="Show whether a month can be edited now")
    status.add_argument("--month", type=_month, help="Month as YYYY-MM (default: next month)")
    status.set_defaults(func=_cmd_window_status)

    win = sub.add_parser("set-window", help="Save the default editing window")
    win.add_argument("--days-before", type=int, required=True, help="Days before the next month the window opens")
    win.add_argument("--hard-close", action="store_true", help="Close editing for every month")
    win.set_defaults(func=_cmd_set_window)

    rel = sub.add_parser("release-month", help="Manually release a month until its end")
    group = rel.add_mutually_exclusive_group()
    group.add_argument("--month", type=_month, help="Month as YYYY-MM")
    group.add_argument("--current", action="store_true", help="Release the current month")
    rel.set_defaults(func=_cmd_release_month)

    rev = sub.add_parser("revoke-override", help="Delete a manual release")
    rev.add_argument("id", type=int)
    rev.set_defaults(func=_cmd_revoke_override)

    blk = sub.add_parser("block", help="Block a date or times on it")
    blk.add_argument("date", type=_date, help="Date as YYYY-MM-DD")
    blk.add_argument("--times", nargs="*", default=[], help="HH:MM times (omit to block the whole day)")
    blk.add_argument("--reason", help="Reason shown to ministers")
    blk.add_argument("--id", type=int, help="Update an existing block")
    blk.add_argument("--list-times", action="store_true", help="Only list the times that can be blocked")
    blk.set_defaults(func=_cmd_block)

    unb = sub.add_parser("unblock", help="Remove a block")
    unb.add_argument("id", type=int)
    unb.set_defaults(func=_cmd_unblock)

    cov = sub.add_parser("coverage", help="Coverage per mass for a month")
    cov.add_argument("--month", type=_month, help="Month as YYYY-MM (default: next month)")
    cov.add_argument("--status", choices=["ALL", "LOW", "FULL", "OK"], default="ALL")
    cov.add_argument("--out", help="Optional: export the report to CSV")
    cov.set_defaults(func=_cmd_coverage)

    summ = sub.add_parser("summary", help="Selections per minister for a month")
    summ.add_argument("--month", type=_month, help="Month as YYYY-MM (default: next month)")
    summ.set_defaults(func=_cmd_summary)

    reb = sub.add_parser("rebuild-occupancy", help="Recompute occupancy records from selections")
    reb.set_defaults(func=_cmd_rebuild_occupancy)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = _load(args)
    except RosterError as e:
        print(f"[ERROR] {e.message}")
        return 2

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args, cfg)
    except RosterError as e:
        print(f"[ERROR] {e.user_message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
