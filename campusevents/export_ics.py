"""
iCalendar (.ics) export.

Students can take the events they registered for into:
- Google Calendar
- Outlook
- Apple Calendar
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from campusevents.model import ScheduledEvent


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _dt_local(date_yyyy_mm_dd: str, time_hh_mm: str) -> str:
    """
    Convert date + time to ICS local datetime string 'YYYYMMDDTHHMM00'.
    """
    dt = datetime.strptime(f"{date_yyyy_mm_dd} {time_hh_mm}", "%Y-%m-%d %H:%M")
    return dt.strftime("%Y%m%dT%H%M00")


def export_events_to_ics(events: Iterable[ScheduledEvent], out_path: str | Path) -> int:
    """
    Export events to an .ics file. Returns number of exported events.
    Events with an unparseable window are skipped.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//CampusEvents//EN",
        "CALSCALE:GREGORIAN",
    ]

    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    count = 0
    for ev in events:
        try:
            dtstart = _dt_local(ev.window.date, ev.window.start)
            dtend = _dt_local(ev.window.date, ev.window.end)
        except ValueError:
            continue

        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{_ics_escape(ev.event_id)}@campusevents")
        lines.append(f"DTSTAMP:{dtstamp}")
        lines.append(f"DTSTART:{dtstart}")
        lines.append(f"DTEND:{dtend}")
        lines.append(f"SUMMARY:{_ics_escape(ev.title or 'Campus event')}")
        if ev.location:
            lines.append(f"LOCATION:{_ics_escape(ev.location)}")
        if ev.description.strip():
            lines.append(f"DESCRIPTION:{_ics_escape(ev.description.strip())}")
        if ev.category:
            lines.append(f"CATEGORIES:{_ics_escape(ev.category)}")
        lines.append("END:VEVENT")
        count += 1

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    out.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
    return count
