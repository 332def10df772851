"""
Slot scheduling and conflict detection.

Given the approved events already on a date, decide whether a candidate
window collides with any of them, route the new event to auto-approval or
admin review, and propose free windows inside working hours.

Overlap rule (half-open windows, touching is not a conflict):
    start < other_end AND end > other_start

Everything here is a pure function over the values it is given. Keeping the
approved-event set in sync with the candidate date is the caller's job
(see campusevents.planner).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from campusevents.model import APPROVED, PENDING, ConflictResult, ScheduledEvent, TimeWindow, WorkingHours

logger = logging.getLogger(__name__)

MIN_GAP_MINUTES = 60
MAX_SUGGESTIONS = 3

# on_candidate_changed() outcomes
REFETCH = "refetch"
RECHECK = "recheck"
UNCHANGED = "unchanged"


class InvalidWindow(ValueError):
    """A window with a malformed date/time or with end <= start."""


def _time_to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    parts = hhmm.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def _minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _span(window: TimeWindow) -> tuple[int, int]:
    return _time_to_minutes(window.start), _time_to_minutes(window.end)


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def normalize_date(date: str) -> str:
    """
    Return the date as zero-padded 'YYYY-MM-DD' ('2024-8-20' -> '2024-08-20').
    Raises InvalidWindow if it is not a calendar date.
    """
    try:
        parsed = datetime.strptime(str(date).strip(), "%Y-%m-%d")
    except ValueError:
        raise InvalidWindow(f"Invalid date: {date!r}") from None
    return parsed.strftime("%Y-%m-%d")


def validate_window(window: TimeWindow) -> TimeWindow:
    """
    Reject a window before it reaches the scheduler.

    Raises InvalidWindow if the date is not 'YYYY-MM-DD', a time is not a
    valid 'HH:MM' of the same day, or end <= start. The returned window is
    zero-padded, so equal dates and times compare equal as strings.
    """
    date = normalize_date(window.date)

    try:
        start, end = _span(window)
    except ValueError as e:
        raise InvalidWindow(str(e)) from None

    if end <= start:
        raise InvalidWindow(f"End must be after start: {window.start}-{window.end}")

    return TimeWindow(date=date, start=_minutes_to_time(start), end=_minutes_to_time(end))


def validate_working_hours(hours: WorkingHours) -> WorkingHours:
    try:
        start = _time_to_minutes(hours.start)
        end = _time_to_minutes(hours.end)
    except ValueError as e:
        raise InvalidWindow(str(e)) from None
    if end <= start:
        raise InvalidWindow(f"Working hours must end after they start: {hours.start}-{hours.end}")
    return WorkingHours(start=_minutes_to_time(start), end=_minutes_to_time(end))


def detect_conflict(candidate: TimeWindow, existing: Iterable[TimeWindow]) -> bool:
    """
    True if the candidate shares any instant with any existing window.
    Stops at the first match.
    """
    c_start, c_end = _span(candidate)
    for other in existing:
        o_start, o_end = _span(other)
        if _overlaps(c_start, c_end, o_start, o_end):
            logger.debug("%s overlaps %s", candidate.label(), other.label())
            return True
    return False


def decide_approval(has_conflict: bool) -> str:
    """
    No conflict -> approved right away. Conflict -> pending admin review.
    """
    return PENDING if has_conflict else APPROVED


def suggest_slots(
    existing: Sequence[TimeWindow],
    working_hours: WorkingHours,
    date: str = "",
) -> list[TimeWindow]:
    """
    Free windows of at least MIN_GAP_MINUTES inside working hours.

    Order: gap before the first event, gaps between events (chronological),
    gap after the last event. The list is cut to the first MAX_SUGGESTIONS
    entries in that order; a wider gap later in the day never displaces an
    earlier one.
    """
    wh_start = _time_to_minutes(working_hours.start)
    wh_end = _time_to_minutes(working_hours.end)

    if not existing:
        return [TimeWindow(date=date, start=_minutes_to_time(wh_start), end=_minutes_to_time(wh_end))]

    day = date or existing[0].date
    spans = sorted(_span(w) for w in existing)

    def window(a: int, b: int) -> TimeWindow:
        return TimeWindow(date=day, start=_minutes_to_time(a), end=_minutes_to_time(b))

    slots: list[TimeWindow] = []

    first_start = spans[0][0]
    if first_start - wh_start >= MIN_GAP_MINUTES:
        slots.insert(0, window(wh_start, first_start))

    for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
        if next_start - prev_end >= MIN_GAP_MINUTES:
            slots.append(window(prev_end, next_start))

    last_end = spans[-1][1]
    if wh_end - last_end >= MIN_GAP_MINUTES:
        slots.append(window(last_end, wh_end))

    return slots[:MAX_SUGGESTIONS]


def check_candidate(
    candidate: TimeWindow,
    existing: Sequence[TimeWindow],
    working_hours: Optional[WorkingHours] = None,
) -> ConflictResult:
    """
    Conflict verdict for a candidate; suggestions only when it collides.
    """
    hours = working_hours or WorkingHours()
    if not detect_conflict(candidate, existing):
        return ConflictResult(has_conflict=False)

    slots = suggest_slots(existing, hours, date=candidate.date)
    logger.debug("conflict for %s, %d suggestion(s)", candidate.label(), len(slots))
    return ConflictResult(has_conflict=True, suggested_slots=slots)


def on_candidate_changed(previous: Optional[TimeWindow], next_: TimeWindow) -> str:
    """
    What the caller must do after the candidate changed.

    A new date invalidates the approved-event set (REFETCH before checking
    again). New start/end on the same date only needs a RECHECK against the
    set already held.
    """
    if previous is None or previous.date != next_.date:
        return REFETCH
    if previous.start != next_.start or previous.end != next_.end:
        return RECHECK
    return UNCHANGED


def find_conflicts(events: Iterable[ScheduledEvent]) -> list[tuple[ScheduledEvent, ScheduledEvent]]:
    """
    Overlapping event pairs (A, B) on the same date, each pair once,
    in input order. Events with an invalid window are skipped.
    """
    parsed: list[tuple[TimeWindow, int, int, ScheduledEvent]] = []
    for ev in events:
        try:
            window = validate_window(ev.window)
        except InvalidWindow:
            continue
        start, end = _span(window)
        parsed.append((window, start, end, ev))

    conflicts: list[tuple[ScheduledEvent, ScheduledEvent]] = []
    for i, (w1, s1, e1, ev1) in enumerate(parsed):
        for w2, s2, e2, ev2 in parsed[i + 1 :]:
            if w1.date == w2.date and _overlaps(s1, e1, s2, e2):
                conflicts.append((ev1, ev2))
    return conflicts
