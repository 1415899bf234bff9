"""Command-line interface for routine materialization and shift staffing suggestions."""

from __future__ import annotations

import argparse
import logging
import re
from datetime import date, timedelta

from opsched.config import EngineConfig, load_config
from opsched.domain.db import get_session, init_database
from opsched.domain.entities import ShiftInstance
from opsched.domain.repositories import AssignmentRepository, EmployeeRepository
from opsched.engine import AssignmentRecommendationService, MaterializationService, SqlStore
from opsched.io.export_csv import export_suggestions_csv, export_work_items_csv
from opsched.io.import_csv import import_assignments_csv, import_employees_csv
from opsched.services.conflicts import detect, group_by_severity
from opsched.timeplan import from_utc_naive, localize, parse_time_string, to_utc_naive

_WEEK_RE = re.compile(r"^(\d{4})-W(\d{1,2})$")


def _load(args: argparse.Namespace) -> EngineConfig:
    cfg = load_config(args.config)
    if args.db:
        cfg.database_url = args.db
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return cfg


def _parse_week(week_id: str) -> date:
    """Monday of an ISO week id such as 2025-W10."""
    match = _WEEK_RE.match(week_id)
    if not match:
        raise ValueError(f"Invalid week id '{week_id}', expected YYYY-Www")
    return date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    cfg = _load(args)
    init_database(cfg.database_url)
    print(f"[OK] Database initialized: {cfg.database_url}")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    cfg = _load(args)
    session = get_session(cfg.database_url)

    try:
        if args.employees:
            count = import_employees_csv(session, args.employees)
            print(f"[OK] Imported {count} employees")

        if args.assignments:
            count = import_assignments_csv(session, args.assignments)
            print(f"[OK] Imported {count} assignments")

        session.close()
        print("[OK] CSV import complete")

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Import failed: {e}")
        raise


def _cmd_materialize(args: argparse.Namespace) -> None:
    """Materialize task instances (and optionally shifts) for the horizon."""
    cfg = _load(args)
    tz = args.timezone or cfg.timezone
    session = get_session(cfg.database_url)

    try:
        service = MaterializationService(SqlStore(session, tz), cfg)
        result = service.materialize(horizon_days=args.horizon_days, timezone=tz, timeout=args.timeout)
        print(f"[OK] Tasks: {result.created} created, {result.skipped} skipped, "
              f"{result.failed} failed ({result.routines_processed} routines)")
        if result.timed_out:
            print("[WARN] Timeout reached before all routines were processed")

        if args.shifts:
            shifts = service.materialize_shifts(horizon_days=args.horizon_days, timezone=tz, timeout=args.timeout)
            print(f"[OK] Shifts: {shifts.created} created, {shifts.skipped} skipped, {shifts.failed} failed")

        session.close()

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Materialization failed: {e}")
        raise


def _cmd_refresh_urgency(args: argparse.Namespace) -> None:
    """Recompute urgency for pending work items."""
    cfg = _load(args)
    session = get_session(cfg.database_url)

    try:
        updated = MaterializationService(SqlStore(session, cfg.timezone), cfg).refresh_urgency()
        print(f"[OK] Refreshed urgency for {updated} work items")

        if args.out:
            count = export_work_items_csv(session, args.out, cfg.timezone)
            print(f"[OK] Exported {count} work items to {args.out}")

        session.close()

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Urgency refresh failed: {e}")
        raise


def _cmd_suggest(args: argparse.Namespace) -> None:
    """Rank employees for one shift."""
    cfg = _load(args)
    session = get_session(cfg.database_url)

    try:
        service = AssignmentRecommendationService(SqlStore(session, cfg.timezone), cfg)
        result = service.recommend(args.shift_id, timeout=args.timeout, limit=args.limit)

        details = result.shift_details
        print(f"Shift {details['id']} {details['name']}: {details['start_at']} -> {details['end_at']}")
        for rank, s in enumerate(result.suggestions, start=1):
            flag = " [BLOCKED]" if s.blocked else ""
            print(f"  {rank:>2}. {s.employee_name} (#{s.employee_id}) score={s.score}{flag}")
            for warning in s.warnings:
                print(f"      - {warning}")
            for conflict in s.conflicts:
                print(f"      ! {conflict}")

        if args.out:
            export_suggestions_csv(result, args.out)
            print(f"[OK] Exported suggestions to {args.out}")

        session.close()
        print(f"[OK] {len(result.suggestions)} suggestions for shift {args.shift_id}")

    except Exception as e:
        session.close()
        print(f"[ERROR] Suggestion failed: {e}")
        raise


def _cmd_conflicts(args: argparse.Namespace) -> None:
    """Report conflicts in the assigned shifts of an ISO week."""
    cfg = _load(args)
    session = get_session(cfg.database_url)
    tz = cfg.timezone

    try:
        monday = _parse_week(args.week)
        start = localize(monday, parse_time_string("00:00"), tz)
        end = localize(monday + timedelta(days=7), parse_time_string("00:00"), tz)

        employees = {e.employee_id: e for e in EmployeeRepository.get_all(session)}
        rows = AssignmentRepository.get_in_range(session, list(employees), to_utc_naive(start), to_utc_naive(end))
        shifts = [
            ShiftInstance(
                id=shift.id,
                start_at=from_utc_naive(shift.start_at, tz),
                end_at=from_utc_naive(shift.end_at, tz),
                employee_id=assignment.employee_id,
                employee_name=employees[assignment.employee_id].display_name,
            )
            for assignment, shift in rows
        ]
        availability = {emp_id: e.availability_rules for emp_id, e in employees.items()}
        found = detect(shifts, availability, timezone=tz, labor_rules=cfg.labor_rules)

        total = 0
        for emp_id, conflicts in sorted(found.items()):
            if not conflicts:
                continue
            print(f"{employees[emp_id].display_name} (#{emp_id}):")
            for severity, items in group_by_severity(conflicts).items():
                for conflict in items:
                    print(f"  [{severity.value.upper()}] {conflict.type.value}: {conflict.message}")
                    total += 1

        session.close()
        print(f"[OK] {total} conflicts in {args.week}")

    except Exception as e:
        session.close()
        print(f"[ERROR] Conflict check failed: {e}")
        raise


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="opsched",
        description="Recurring operations tasks and shift staffing suggestions",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (overrides config database_url)")
    parser.add_argument("--config", help="Path to config YAML/JSON")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--employees", help="Path to employees CSV")
    imp.add_argument("--assignments", help="Path to existing assignments CSV")
    imp.set_defaults(func=_cmd_import_csv)

    # materialize command
    mat = sub.add_parser("materialize", help="Generate task instances for upcoming days")
    mat.add_argument("--horizon-days", type=int, help="Days ahead to generate")
    mat.add_argument("--timezone", help="Canonical timezone (e.g. Europe/Berlin)")
    mat.add_argument("--shifts", action="store_true", help="Also materialize shifts from templates")
    mat.add_argument("--timeout", type=float, help="Seconds before the run stops early")
    mat.set_defaults(func=_cmd_materialize)

    # refresh-urgency command
    ref = sub.add_parser("refresh-urgency", help="Recompute urgency of pending work items")
    ref.add_argument("--out", help="Optional: export pending work items to CSV")
    ref.set_defaults(func=_cmd_refresh_urgency)

    # suggest command
    sug = sub.add_parser("suggest", help="Rank employees for a shift")
    sug.add_argument("--shift-id", type=int, required=True, help="Shift to fill")
    sug.add_argument("--limit", type=int, help="Maximum suggestions to show")
    sug.add_argument("--timeout", type=float, help="Seconds before scoring stops early")
    sug.add_argument("--out", help="Optional: export suggestions to CSV")
    sug.set_defaults(func=_cmd_suggest)

    # conflicts command
    con = sub.add_parser("conflicts", help="Detect conflicts in a week's assignments")
    con.add_argument("--week", required=True, help="Week ID (e.g., 2025-W10)")
    con.set_defaults(func=_cmd_conflicts)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
