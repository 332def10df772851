"""
Organizer-side slot planning.

SlotPlanner is the caller the scheduler expects: it holds the candidate
window plus the approved events fetched for the candidate's date, and
re-runs the check after every edit. Changing the date triggers a fresh
fetch before anything is checked; editing start/end re-checks against the
set already held.

Only the latest fetch may feed the scheduler. Each fetch gets a sequence
number and results from superseded fetches are dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from campusevents import storage
from campusevents.model import ConflictResult, ScheduledEvent, TimeWindow, WorkingHours
from campusevents.scheduler import (
    REFETCH,
    InvalidWindow,
    check_candidate,
    decide_approval,
    on_candidate_changed,
    validate_window,
)
from campusevents.storage import SlotTakenError

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Sequence[ScheduledEvent]]


class StaleInputError(RuntimeError):
    """The approved-event set held does not belong to the candidate's date."""


class SlotPlanner:
    def __init__(self, fetch_approved: FetchFn, working_hours: Optional[WorkingHours] = None) -> None:
        self.fetch_approved = fetch_approved
        self.working_hours = working_hours or WorkingHours()
        self.candidate: Optional[TimeWindow] = None
        self.last_result: Optional[ConflictResult] = None

        self._existing: list[TimeWindow] = []
        self._existing_date: Optional[str] = None
        self._fetch_seq = 0

    @property
    def existing(self) -> list[TimeWindow]:
        return list(self._existing)

    def begin_fetch(self) -> int:
        """
        Start a fetch and return its sequence number. Any fetch started
        earlier is superseded from now on.
        """
        self._fetch_seq += 1
        return self._fetch_seq

    def accept_fetch(self, seq: int, date: str, events: Sequence[ScheduledEvent]) -> bool:
        """
        Take the result of fetch `seq`. Returns False (and keeps the current
        set) if a newer fetch was started in the meantime.
        """
        if seq != self._fetch_seq:
            logger.debug("discarding fetch #%d for %s (latest is #%d)", seq, date, self._fetch_seq)
            return False
        self._existing = [e.window for e in events]
        self._existing_date = date
        return True

    def refresh(self) -> None:
        if self.candidate is None:
            return
        date = self.candidate.date
        seq = self.begin_fetch()
        self.accept_fetch(seq, date, self.fetch_approved(date))

    def update(
        self,
        date: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> ConflictResult:
        """
        Apply a form edit and return the new verdict.

        The first call needs all three fields; later calls may change any
        subset of them.
        """
        prev = self.candidate
        if prev is None and not (date and start and end):
            raise InvalidWindow("date, start and end are required")

        window = TimeWindow(
            date=date if date is not None else prev.date,
            start=start if start is not None else prev.start,
            end=end if end is not None else prev.end,
        )
        window = validate_window(window)

        action = on_candidate_changed(prev, window)
        self.candidate = window
        if action == REFETCH:
            self.refresh()
        return self.evaluate()

    def evaluate(self) -> ConflictResult:
        if self.candidate is None:
            raise InvalidWindow("No candidate window yet")
        if self._existing_date != self.candidate.date:
            raise StaleInputError(
                f"Approved events are for {self._existing_date}, candidate is on {self.candidate.date}"
            )
        self.last_result = check_candidate(self.candidate, self._existing, self.working_hours)
        return self.last_result

    def submit(
        self,
        title: str,
        create: Optional[Callable[..., str]] = None,
        **details: Any,
    ) -> tuple[str, str]:
        """
        Create the event with the routed approval status.

        Returns (event_id, approval_status). If the store reports the slot
        as taken by a concurrent approval, the approved set is re-fetched
        (so the next evaluate() sees it) and the error is re-raised.
        """
        create_fn = create or storage.create_event
        result = self.evaluate()
        status = decide_approval(result.has_conflict)
        try:
            event_id = create_fn(self.candidate, status, title, **details)
        except SlotTakenError:
            logger.info("slot %s was taken concurrently, refreshing", self.candidate.label())
            self.refresh()
            raise
        return event_id, status
