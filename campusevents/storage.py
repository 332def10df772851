"""
Persistent event store.

This module manages the file:

    data/events.json

It stands in for the hosted database the web app talks to: events, their
approval state, registrations, attendance and feedback. Like the database, it re-checks
slot conflicts on every approved insert and is the final word on them; the
scheduler's verdict is only advisory.

Every function takes an optional path so tests can point it at a temporary
file.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from campusevents.model import (
    APPROVAL_STATUSES,
    APPROVED,
    MAX_RATING,
    MIN_RATING,
    Feedback,
    Registration,
    ScheduledEvent,
    TimeWindow,
)
from campusevents.scheduler import InvalidWindow, detect_conflict, normalize_date, validate_window

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for store-level failures shown to the user."""


class SlotTakenError(StoreError):
    """An approved event already occupies (part of) the requested window."""


class EventNotFound(StoreError):
    pass


class CapacityReached(StoreError):
    pass


class RegistrationError(StoreError):
    pass


class FeedbackError(StoreError):
    pass


def _default_events_path() -> Path:
    """
    Return the default path of events.json inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "events.json"


def _resolve(path: str | Path | None) -> Path:
    return Path(path) if path is not None else _default_events_path()


def load_events(path: str | Path | None = None) -> list[ScheduledEvent]:
    """
    Load all events from events.json.

    Returns an empty list if the file does not exist or is invalid.
    Records without an id, or that cannot be read, are dropped. Valid
    windows are zero-padded; invalid ones are kept as stored but never take
    part in conflict checks.
    """
    events_path = _resolve(path)

    # First run: nothing stored yet
    if not events_path.exists():
        return []

    try:
        data = json.loads(events_path.read_text(encoding="utf-8"))
        raw = data.get("events", [])
        if not isinstance(raw, list):
            return []
        out: list[ScheduledEvent] = []
        for item in raw:
            if not (isinstance(item, dict) and item.get("event_id")):
                continue
            try:
                event = ScheduledEvent.from_dict(item)
            except (TypeError, ValueError):
                logger.warning("Skipping unreadable event record %r", item.get("event_id"))
                continue
            window = _checked_window(event)
            if window is not None:
                event.window = window
            out.append(event)
        return out
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        logger.warning("Could not read %s, starting with an empty store", events_path)
        return []


def save_events(events: Iterable[ScheduledEvent], path: str | Path | None = None) -> None:
    """
    Save events to events.json, sorted by date/start for a stable file.

    Creates parent directories if needed.
    """
    events_path = _resolve(path)
    events_path.parent.mkdir(parents=True, exist_ok=True)

    ordered = sorted(events, key=lambda e: (e.window.date, e.window.start, e.event_id))
    payload = {"events": [e.to_dict() for e in ordered]}

    events_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def _checked_window(event: ScheduledEvent) -> Optional[TimeWindow]:
    try:
        return validate_window(event.window)
    except InvalidWindow as e:
        logger.warning("Event %s has an invalid window (%s)", event.event_id, e)
        return None


def _find(events: list[ScheduledEvent], event_id: str) -> ScheduledEvent:
    for ev in events:
        if ev.event_id == event_id:
            return ev
    raise EventNotFound(f"No event with id {event_id!r}")


def get_event(event_id: str, path: str | Path | None = None) -> ScheduledEvent:
    return _find(load_events(path), event_id)


def list_events(status: Optional[str] = None, path: str | Path | None = None) -> list[ScheduledEvent]:
    events = load_events(path)
    if status is not None:
        events = [e for e in events if e.approval_status == status]
    return sorted(events, key=lambda e: (e.window.date, e.window.start))


def fetch_approved_events(date: str, path: str | Path | None = None) -> list[ScheduledEvent]:
    """
    Approved events on exactly this date. No ordering guarantee.

    Events whose stored window is invalid are left out.
    """
    day = normalize_date(date)
    return [
        e
        for e in load_events(path)
        if e.approval_status == APPROVED and e.window.date == day and _is_valid(e)
    ]


def _is_valid(event: ScheduledEvent) -> bool:
    try:
        validate_window(event.window)
    except InvalidWindow:
        return False
    return True


def _ensure_slot_free(events: list[ScheduledEvent], window: TimeWindow, ignore_id: str = "") -> None:
    taken = [
        e.window
        for e in events
        if e.approval_status == APPROVED
        and e.window.date == window.date
        and e.event_id != ignore_id
        and _is_valid(e)
    ]
    if detect_conflict(window, taken):
        raise SlotTakenError(f"{window.label()} overlaps an approved event")


def create_event(
    candidate: TimeWindow,
    approval_status: str,
    title: str,
    path: str | Path | None = None,
    description: str = "",
    location: str = "",
    category: str = "",
    organizer_name: str = "",
    max_participants: Optional[int] = None,
) -> str:
    """
    Store a new event and return its id.

    Approved inserts are re-checked against the approved events on disk;
    a collision raises SlotTakenError even if the caller saw a free slot.
    """
    if approval_status not in APPROVAL_STATUSES:
        raise ValueError(f"Unknown approval status: {approval_status!r}")

    candidate = validate_window(candidate)
    events = load_events(path)
    if approval_status == APPROVED:
        _ensure_slot_free(events, candidate)

    event = ScheduledEvent(
        event_id=uuid.uuid4().hex[:12],
        title=title.strip(),
        window=candidate,
        approval_status=approval_status,
        description=description,
        location=location,
        category=category,
        organizer_name=organizer_name,
        max_participants=max_participants,
    )
    events.append(event)
    save_events(events, path)
    logger.info("Created %s event %s (%s)", approval_status, event.event_id, candidate.label())
    return event.event_id


def set_approval_status(event_id: str, status: str, path: str | Path | None = None) -> ScheduledEvent:
    """
    Admin decision on a submission. Approving re-checks the slot and
    raises InvalidWindow if the stored window cannot be checked.
    """
    if status not in APPROVAL_STATUSES:
        raise ValueError(f"Unknown approval status: {status!r}")

    events = load_events(path)
    event = _find(events, event_id)
    if status == APPROVED:
        _ensure_slot_free(events, validate_window(event.window), ignore_id=event.event_id)

    event.approval_status = status
    save_events(events, path)
    logger.info("Event %s is now %s", event_id, status)
    return event


def register_student(event_id: str, registration: Registration, path: str | Path | None = None) -> bool:
    """
    Register a student. Returns False if they were already registered.
    """
    events = load_events(path)
    event = _find(events, event_id)

    if event.approval_status != APPROVED:
        raise RegistrationError(f"Event {event_id} is not open for registration")
    if any(r.user_id == registration.user_id for r in event.registered):
        return False
    if event.max_participants is not None and len(event.registered) >= event.max_participants:
        raise CapacityReached(f"Event {event_id} is full ({event.max_participants} participants)")

    event.registered.append(registration)
    save_events(events, path)
    return True


def unregister_student(event_id: str, user_id: str, path: str | Path | None = None) -> bool:
    events = load_events(path)
    event = _find(events, event_id)

    before = len(event.registered)
    event.registered = [r for r in event.registered if r.user_id != user_id]
    if len(event.registered) == before:
        return False

    event.attended = [x for x in event.attended if x != user_id]
    save_events(events, path)
    return True


def registration_count(event_id: str, path: str | Path | None = None) -> int:
    return len(get_event(event_id, path).registered)


def mark_attendance(event_id: str, user_id: str, present: bool = True, path: str | Path | None = None) -> None:
    """
    Record presence (or absence) of a registered student.
    """
    events = load_events(path)
    event = _find(events, event_id)

    if not any(r.user_id == user_id for r in event.registered):
        raise RegistrationError(f"User {user_id} is not registered for event {event_id}")

    attended = [x for x in event.attended if x != user_id]
    if present:
        attended.append(user_id)
    event.attended = attended
    save_events(events, path)


def submit_feedback(
    event_id: str,
    user_id: str,
    rating: int,
    comment: str = "",
    path: str | Path | None = None,
) -> Feedback:
    """
    Store a student's rating (1-5) and comment for an event they attended.
    One feedback per student and event.
    """
    if not (MIN_RATING <= rating <= MAX_RATING):
        raise FeedbackError(f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")

    events = load_events(path)
    event = _find(events, event_id)

    if user_id not in event.attended:
        raise FeedbackError(f"User {user_id} did not attend event {event_id}")
    if any(f.user_id == user_id for f in event.feedback):
        raise FeedbackError(f"User {user_id} already gave feedback for event {event_id}")

    feedback = Feedback(
        user_id=user_id,
        rating=rating,
        comment=comment.strip(),
        created_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )
    event.feedback.append(feedback)
    save_events(events, path)
    return feedback
