"""
Central data model definitions used across the project.

This module defines the canonical structure of time windows and events so that:
- the scheduler, the store and the CLI share the same field names
- dates stay plain 'YYYY-MM-DD' strings and times plain 'HH:MM' strings
- JSON (de)serialization lives next to the structure it describes
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional


APPROVED = "approved"
PENDING = "pending"
REJECTED = "rejected"

APPROVAL_STATUSES = (APPROVED, PENDING, REJECTED)

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class TimeWindow:
    """
    One window on a single calendar day: [start, end).

    Windows never span midnight.
    """

    date: str
    start: str
    end: str

    def label(self) -> str:
        return f"{self.date} {self.start}-{self.end}"


@dataclass(frozen=True)
class WorkingHours:
    start: str = "09:00"
    end: str = "18:00"


@dataclass
class ConflictResult:
    has_conflict: bool
    suggested_slots: List[TimeWindow] = field(default_factory=list)


@dataclass
class Registration:
    """
    One student registered for an event.
    """

    user_id: str
    name: str
    email: str
    roll_number: Optional[str] = None


@dataclass
class Feedback:
    user_id: str
    rating: int
    comment: str = ""
    created_at: str = ""


@dataclass
class ScheduledEvent:
    """
    Represents one stored event with its time window and approval state.

    Only the approval status (and priority) change after creation.
    """

    event_id: str
    title: str
    window: TimeWindow
    approval_status: str = PENDING
    description: str = ""
    location: str = ""
    category: str = ""
    organizer_name: str = ""
    max_participants: Optional[int] = None
    priority: int = 0
    registered: List[Registration] = field(default_factory=list)
    attended: List[str] = field(default_factory=list)
    feedback: List[Feedback] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["window"] = asdict(self.window)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduledEvent":
        win = data.get("window") or {}
        window = TimeWindow(
            date=str(win.get("date", "")).strip(),
            start=str(win.get("start", "")).strip(),
            end=str(win.get("end", "")).strip(),
        )

        registered = []
        for r in data.get("registered") or []:
            if isinstance(r, dict) and r.get("user_id"):
                registered.append(
                    Registration(
                        user_id=str(r["user_id"]),
                        name=str(r.get("name", "")),
                        email=str(r.get("email", "")),
                        roll_number=r.get("roll_number"),
                    )
                )

        feedback = []
        for f in data.get("feedback") or []:
            if isinstance(f, dict) and f.get("user_id"):
                feedback.append(
                    Feedback(
                        user_id=str(f["user_id"]),
                        rating=int(f.get("rating", 0)),
                        comment=str(f.get("comment") or ""),
                        created_at=str(f.get("created_at") or ""),
                    )
                )

        capacity = data.get("max_participants")
        return cls(
            event_id=str(data.get("event_id", "")),
            title=str(data.get("title", "")),
            window=window,
            approval_status=str(data.get("approval_status", PENDING)),
            description=str(data.get("description") or ""),
            location=str(data.get("location") or ""),
            category=str(data.get("category") or ""),
            organizer_name=str(data.get("organizer_name") or ""),
            max_participants=int(capacity) if capacity is not None else None,
            priority=int(data.get("priority") or 0),
            registered=registered,
            attended=[str(x) for x in data.get("attended") or []],
            feedback=feedback,
        )
