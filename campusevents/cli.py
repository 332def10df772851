"""
CLI (Command Line Interface).

Terminal commands for organizers, admins and students, e.g.:

    campusevents check 2024-08-20 09:30 10:15
    campusevents create "Career Workshop" 2024-08-20 14:00 16:00 --capacity 50
    campusevents pending
    campusevents approve <event_id>
    campusevents register <event_id> <user_id> <name> <email>
    campusevents feedback <event_id> <user_id> 5 --comment "Great talk"
    campusevents export <file.ics>
    campusevents interactive

Note:
- The interactive organizer form lives in campusevents/interactive.py
- This CLI prints plain text (no rich formatting)
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable

from campusevents import storage
from campusevents.attendance import send_attendance_report
from campusevents.config import Settings, load_settings, setup_logging
from campusevents.export_ics import export_events_to_ics
from campusevents.model import APPROVAL_STATUSES, APPROVED, PENDING, REJECTED, Registration, ScheduledEvent, TimeWindow
from campusevents.planner import SlotPlanner
from campusevents.scheduler import (
    InvalidWindow,
    check_candidate,
    decide_approval,
    detect_conflict,
    find_conflicts,
    normalize_date,
    validate_window,
)
from campusevents.storage import SlotTakenError, StoreError


def _event_line(ev: ScheduledEvent) -> str:
    bits = [ev.event_id, ev.window.label(), ev.title or "(no title)", ev.approval_status]
    if ev.location:
        bits.append(f"@ {ev.location}")
    if ev.max_participants is not None:
        bits.append(f"{len(ev.registered)}/{ev.max_participants} registered")
    else:
        bits.append(f"{len(ev.registered)} registered")
    return " | ".join(bits)


def _print_suggestions(slots: list[TimeWindow]) -> None:
    if not slots:
        print("No free slot of at least one hour left on this day.")
        return
    print("Suggested free slots:")
    for w in slots:
        print(f"- {w.start}-{w.end}")


def _cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    """
    Show whether a proposed window collides with approved events on its date.
    """
    candidate = validate_window(TimeWindow(args.date, args.start, args.end))
    existing = [e.window for e in storage.fetch_approved_events(candidate.date, args.data)]

    result = check_candidate(candidate, existing, settings.working_hours)
    status = decide_approval(result.has_conflict)

    if result.has_conflict:
        print(f"Conflict: {candidate.label()} overlaps an approved event.")
        print(f"A new event here would be {status} (admin review).")
        _print_suggestions(result.suggested_slots)
    else:
        print(f"No conflict: {candidate.label()} is free.")
        print(f"A new event here would be {status} right away.")
    return 0


def _cmd_create(args: argparse.Namespace, settings: Settings) -> int:
    """
    Create an event. Free slots are approved immediately, collisions go to review.
    """
    title = (args.title or "").strip()
    if not title:
        print("Please provide a title.")
        return 1

    planner = SlotPlanner(lambda d: storage.fetch_approved_events(d, args.data), settings.working_hours)
    result = planner.update(date=args.date, start=args.start, end=args.end)

    try:
        event_id, status = planner.submit(
            title,
            path=args.data,
            description=args.description or "",
            location=args.location or "",
            category=args.category or "",
            organizer_name=args.organizer or "",
            max_participants=args.capacity,
        )
    except SlotTakenError:
        print("This slot was just taken by another event. Please pick a new time.")
        _print_suggestions(planner.evaluate().suggested_slots)
        return 1

    if status == APPROVED:
        print(f"Created {event_id}: approved and live.")
    else:
        print(f"Created {event_id}: pending admin review (slot conflict).")
        _print_suggestions(result.suggested_slots)
    return 0


def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    events = storage.list_events(args.status, args.data)
    if not events:
        print("No events.")
        return 0
    for ev in events:
        print(_event_line(ev))
    return 0


def _cmd_pending(args: argparse.Namespace, settings: Settings) -> int:
    """
    Admin queue: pending events and the approved events they collide with.
    """
    pending = storage.list_events(PENDING, args.data)
    if not pending:
        print("No pending events.")
        return 0

    print(f"Pending events: {len(pending)}")
    for ev in pending:
        print(_event_line(ev))
        try:
            window = validate_window(ev.window)
        except InvalidWindow as e:
            print(f"    invalid window: {e}")
            continue
        approved = storage.fetch_approved_events(window.date, args.data)
        clashes = [a for a in approved if detect_conflict(window, [a.window])]
        for a in clashes:
            print(f"    collides with {a.event_id} {a.window.start}-{a.window.end} {a.title}")
    return 0


def _set_status(args: argparse.Namespace, status: str) -> int:
    ev = storage.set_approval_status(args.event_id, status, args.data)
    print(f"{ev.title} ({ev.event_id}) is now {status}.")
    return 0


def _cmd_approve(args: argparse.Namespace, settings: Settings) -> int:
    return _set_status(args, APPROVED)


def _cmd_reject(args: argparse.Namespace, settings: Settings) -> int:
    return _set_status(args, REJECTED)


def _cmd_conflicts(args: argparse.Namespace, settings: Settings) -> int:
    """
    Print overlapping pairs among approved and pending events of one date.
    """
    day = normalize_date(args.date)
    events = [e for e in storage.load_events(args.data) if e.window.date == day and e.approval_status != REJECTED]

    confs = find_conflicts(events)
    if not confs:
        print("No conflicts found.")
        return 0

    print(f"Conflicts found: {len(confs)}")
    for a, b in confs:
        print(
            f"- {a.window.start}-{a.window.end} {a.title} ({a.approval_status})"
            f"  <->  {b.window.start}-{b.window.end} {b.title} ({b.approval_status})"
        )
    return 0


def _cmd_register(args: argparse.Namespace, settings: Settings) -> int:
    reg = Registration(user_id=args.user_id, name=args.name, email=args.email, roll_number=args.roll)
    if storage.register_student(args.event_id, reg, args.data):
        total = storage.registration_count(args.event_id, args.data)
        print(f"Registered {args.name} for {args.event_id} ({total} total).")
    else:
        print(f"Already registered: {args.user_id}")
    return 0


def _cmd_unregister(args: argparse.Namespace, settings: Settings) -> int:
    if storage.unregister_student(args.event_id, args.user_id, args.data):
        print(f"Unregistered {args.user_id} from {args.event_id}.")
    else:
        print(f"Not registered: {args.user_id}")
    return 0


def _cmd_attend(args: argparse.Namespace, settings: Settings) -> int:
    storage.mark_attendance(args.event_id, args.user_id, present=not args.absent, path=args.data)
    print(f"Marked {args.user_id} as {'absent' if args.absent else 'present'}.")
    return 0


def _cmd_feedback(args: argparse.Namespace, settings: Settings) -> int:
    fb = storage.submit_feedback(args.event_id, args.user_id, args.rating, args.comment or "", args.data)
    print(f"Thanks, {fb.user_id}: rated {args.event_id} {fb.rating}/5.")
    return 0


def _cmd_report(args: argparse.Namespace, settings: Settings) -> int:
    """
    Send the list of present students to the teacher in charge.
    """
    url = (args.url or settings.notify_url or "").strip()
    if not url:
        print("No notification endpoint configured (use --url or CAMPUSEVENTS_NOTIFY_URL).")
        return 1

    ev = storage.get_event(args.event_id, args.data)
    if send_attendance_report(ev, args.teacher_name, args.teacher_email, url):
        print(f"Attendance report for {ev.title} sent to {args.teacher_email}.")
        return 0
    print("Sending the attendance report failed.")
    return 1


def _cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    """
    Export approved events (optionally only one student's) into an .ics file.
    """
    events = storage.list_events(APPROVED, args.data)
    if args.user:
        events = [e for e in events if any(r.user_id == args.user for r in e.registered)]

    if not events:
        print("No events to export.")
        return 0

    out_path = (args.out or "").strip()
    if not out_path:
        print("Please provide output .ics path.")
        return 1

    n = export_events_to_ics(events, out_path)
    print(f"Exported {n} events to: {out_path}")
    return 0


def _cmd_interactive(args: argparse.Namespace, settings: Settings) -> int:
    from campusevents.interactive import run_interactive

    run_interactive(settings, data_path=args.data)
    return 0


COMMANDS: dict[str, Callable[[argparse.Namespace, Settings], int]] = {
    "check": _cmd_check,
    "create": _cmd_create,
    "list": _cmd_list,
    "pending": _cmd_pending,
    "approve": _cmd_approve,
    "reject": _cmd_reject,
    "conflicts": _cmd_conflicts,
    "register": _cmd_register,
    "unregister": _cmd_unregister,
    "attend": _cmd_attend,
    "feedback": _cmd_feedback,
    "report": _cmd_report,
    "export": _cmd_export,
    "interactive": _cmd_interactive,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="campusevents", description="College event scheduling CLI")
    parser.add_argument("--data", type=Path, default=None, help="Path to events.json")
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.json")
    parser.add_argument("--work-start", type=str, default=None, help="Working hours start (HH:MM)")
    parser.add_argument("--work-end", type=str, default=None, help="Working hours end (HH:MM)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_check = sub.add_parser("check", help="Check a proposed slot for conflicts")
    p_check.add_argument("date", type=str, help="Date (YYYY-MM-DD)")
    p_check.add_argument("start", type=str, help="Start time (HH:MM)")
    p_check.add_argument("end", type=str, help="End time (HH:MM)")

    p_create = sub.add_parser("create", help="Create an event")
    p_create.add_argument("title", type=str, help="Event title")
    p_create.add_argument("date", type=str, help="Date (YYYY-MM-DD)")
    p_create.add_argument("start", type=str, help="Start time (HH:MM)")
    p_create.add_argument("end", type=str, help="End time (HH:MM)")
    p_create.add_argument("--description", type=str, default="")
    p_create.add_argument("--location", type=str, default="")
    p_create.add_argument("--category", type=str, default="")
    p_create.add_argument("--organizer", type=str, default="")
    p_create.add_argument("--capacity", type=int, default=None, help="Maximum participants")

    p_list = sub.add_parser("list", help="List events")
    p_list.add_argument("--status", choices=APPROVAL_STATUSES, default=None)

    sub.add_parser("pending", help="Show events waiting for admin review")

    p_approve = sub.add_parser("approve", help="Approve a pending event")
    p_approve.add_argument("event_id", type=str)

    p_reject = sub.add_parser("reject", help="Reject a pending event")
    p_reject.add_argument("event_id", type=str)

    p_conf = sub.add_parser("conflicts", help="Show overlapping events on a date")
    p_conf.add_argument("date", type=str, help="Date (YYYY-MM-DD)")

    p_reg = sub.add_parser("register", help="Register a student for an event")
    p_reg.add_argument("event_id", type=str)
    p_reg.add_argument("user_id", type=str)
    p_reg.add_argument("name", type=str)
    p_reg.add_argument("email", type=str)
    p_reg.add_argument("--roll", type=str, default=None, help="Roll number")

    p_unreg = sub.add_parser("unregister", help="Remove a student's registration")
    p_unreg.add_argument("event_id", type=str)
    p_unreg.add_argument("user_id", type=str)

    p_att = sub.add_parser("attend", help="Mark attendance")
    p_att.add_argument("event_id", type=str)
    p_att.add_argument("user_id", type=str)
    p_att.add_argument("--absent", action="store_true", help="Mark as absent instead")

    p_fb = sub.add_parser("feedback", help="Rate an attended event")
    p_fb.add_argument("event_id", type=str)
    p_fb.add_argument("user_id", type=str)
    p_fb.add_argument("rating", type=int, help="Rating from 1 to 5")
    p_fb.add_argument("--comment", type=str, default="")

    p_rep = sub.add_parser("report", help="Email the attendance list to a teacher")
    p_rep.add_argument("event_id", type=str)
    p_rep.add_argument("teacher_name", type=str)
    p_rep.add_argument("teacher_email", type=str)
    p_rep.add_argument("--url", type=str, default=None, help="Notification endpoint")

    p_export = sub.add_parser("export", help="Export approved events to .ics")
    p_export.add_argument("out", type=str, help="Output file path (e.g. out.ics)")
    p_export.add_argument("--user", type=str, default=None, help="Only events this user registered for")

    sub.add_parser("interactive", help="Interactive organizer form")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.settings).with_overrides(args.work_start, args.work_end)
        raise SystemExit(COMMANDS[args.command](args, settings))
    except InvalidWindow as e:
        print(f"Invalid time window: {e}")
        raise SystemExit(1)
    except StoreError as e:
        print(f"Error: {e}")
        raise SystemExit(1)
