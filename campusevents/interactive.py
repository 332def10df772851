from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from campusevents import storage
from campusevents.config import Settings
from campusevents.model import APPROVED, PENDING, REJECTED, ConflictResult, ScheduledEvent
from campusevents.planner import SlotPlanner
from campusevents.scheduler import InvalidWindow, decide_approval
from campusevents.storage import SlotTakenError, StoreError

console = Console()


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    return console.input(msg)


def run_interactive(settings: Settings, data_path: Optional[Path] = None) -> None:
    """
    Interactive menu loop: organizer form, admin queue, agenda.
    """
    while True:
        _print_header(data_path)

        choice = _prompt(
            "\n[1] Plan a new event\n"
            "[2] Review pending events\n"
            "[3] Agenda (approved events)\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        if choice == "1":
            _flow_plan_event(settings, data_path)
        elif choice == "2":
            _flow_review(data_path)
        elif choice == "3":
            _flow_agenda(data_path)
        else:
            _println("Invalid choice.")


def _print_header(data_path: Optional[Path]) -> None:
    events = storage.load_events(data_path)
    counts = {s: sum(1 for e in events if e.approval_status == s) for s in (APPROVED, PENDING, REJECTED)}
    _println("\n=== CampusEvents (interactive) ===")
    _println(
        f"Events: {len(events)} | approved={counts[APPROVED]} | pending={counts[PENDING]} | rejected={counts[REJECTED]}"
    )


def _show_result(planner: SlotPlanner, result: ConflictResult) -> None:
    cand = planner.candidate
    if cand is None:
        return

    taken = Table(title=f"Approved on {cand.date}", box=box.SIMPLE)
    taken.add_column("Time")
    for w in sorted(planner.existing, key=lambda w: w.start):
        taken.add_row(f"{w.start}-{w.end}")
    if planner.existing:
        console.print(taken)

    status = decide_approval(result.has_conflict)
    if not result.has_conflict:
        _println(f"[green]{cand.start}-{cand.end} is free[/] -> would be [bold]{status}[/] right away.")
        return

    _println(
        f"[red]{cand.start}-{cand.end} overlaps an approved event[/] -> would be [bold]{status}[/] (admin review)."
    )
    if not result.suggested_slots:
        _println("No free slot of at least one hour left on this day.")
        return

    table = Table(title="Suggested free slots", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Slot")
    for i, w in enumerate(result.suggested_slots, start=1):
        table.add_row(str(i), f"{w.start}-{w.end}")
    console.print(table)


def _flow_plan_event(settings: Settings, data_path: Optional[Path]) -> None:
    """
    Organizer form. Every edit to date/start/end re-runs the check; a new
    date re-fetches the approved events first.
    """
    planner = SlotPlanner(lambda d: storage.fetch_approved_events(d, data_path), settings.working_hours)

    date = _prompt("Date (YYYY-MM-DD) [blank = back]: ").strip()
    if not date:
        return
    start = _prompt("Start (HH:MM): ").strip()
    end = _prompt("End (HH:MM): ").strip()

    try:
        result = planner.update(date=date, start=start, end=end)
    except InvalidWindow as e:
        _println(f"Invalid time window: {e}")
        return

    while True:
        _show_result(planner, result)
        action = _prompt(
            "[d] date  [s] start  [e] end  [p] pick suggestion  [c] create  [blank = back]: "
        ).strip().lower()

        try:
            if not action:
                return
            if action == "d":
                result = planner.update(date=_prompt("New date (YYYY-MM-DD): ").strip())
            elif action == "s":
                result = planner.update(start=_prompt("New start (HH:MM): ").strip())
            elif action == "e":
                result = planner.update(end=_prompt("New end (HH:MM): ").strip())
            elif action == "p":
                result = _pick_suggestion(planner, result)
            elif action == "c":
                if _create(planner, data_path):
                    return
                result = planner.evaluate()
            else:
                _println("Invalid choice.")
        except InvalidWindow as e:
            _println(f"Invalid time window: {e}")


def _pick_suggestion(planner: SlotPlanner, result: ConflictResult) -> ConflictResult:
    slots = result.suggested_slots
    if not slots:
        _println("Nothing to pick.")
        return result

    pick = _prompt("Suggestion number: ").strip()
    if not pick.isdigit() or not (1 <= int(pick) <= len(slots)):
        _println("Out of range.")
        return result

    slot = slots[int(pick) - 1]
    return planner.update(start=slot.start, end=slot.end)


def _create(planner: SlotPlanner, data_path: Optional[Path]) -> bool:
    title = _prompt("Title: ").strip()
    if not title:
        _println("A title is required.")
        return False
    location = _prompt("Location [optional]: ").strip()
    capacity_s = _prompt("Max participants [optional]: ").strip()
    capacity = int(capacity_s) if capacity_s.isdigit() else None

    try:
        event_id, status = planner.submit(title, path=data_path, location=location, max_participants=capacity)
    except SlotTakenError:
        _println("[red]This slot was just taken by another event.[/] Please pick a new time.")
        return False

    if status == APPROVED:
        _println(f"Created {event_id}: [green]approved[/] and live.")
    else:
        _println(f"Created {event_id}: [yellow]pending[/] admin review.")
    return True


def _event_row(ev: ScheduledEvent) -> list[str]:
    return [ev.event_id, ev.window.date, f"{ev.window.start}-{ev.window.end}", ev.title, ev.location]


def _flow_review(data_path: Optional[Path]) -> None:
    while True:
        pending = storage.list_events(PENDING, data_path)
        if not pending:
            _println("No pending events.")
            return

        table = Table(title="Pending events", box=box.SIMPLE)
        table.add_column("#", justify="right")
        for col in ("ID", "Date", "Time", "Title", "Location"):
            table.add_column(col)
        for i, ev in enumerate(pending, start=1):
            table.add_row(str(i), *_event_row(ev))
        console.print(table)

        pick = _prompt("Enter number to review [blank = back]: ").strip()
        if not pick:
            return
        if not pick.isdigit() or not (1 <= int(pick) <= len(pending)):
            _println("Out of range.")
            continue

        ev = pending[int(pick) - 1]
        decision = _prompt("[a] approve  [r] reject  [blank = skip]: ").strip().lower()
        status = {"a": APPROVED, "r": REJECTED}.get(decision)
        if status is None:
            continue

        try:
            storage.set_approval_status(ev.event_id, status, data_path)
            _println(f"{ev.title} is now {status}.")
        except StoreError as e:
            _println(f"[red]{e}[/]")


def _flow_agenda(data_path: Optional[Path]) -> None:
    events = storage.list_events(APPROVED, data_path)
    if not events:
        _println("No approved events.")
        return

    table = Table(title="Agenda", box=box.SIMPLE)
    for col in ("ID", "Date", "Time", "Title", "Location", "Registered"):
        table.add_column(col)
    for ev in events:
        cap = f"/{ev.max_participants}" if ev.max_participants is not None else ""
        table.add_row(*_event_row(ev), f"{len(ev.registered)}{cap}")
    console.print(table)
