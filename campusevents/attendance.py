"""
Attendance report.

Once attendance is final, the organizer sends the list of present students
to the teacher in charge. Delivery is done by an external notification
service; we only build the payload and POST it.
"""

from __future__ import annotations

import html
import logging
from typing import Any, Optional

import requests

from campusevents.model import ScheduledEvent

logger = logging.getLogger(__name__)

SENDER_NAME = "College Event System"


def present_students(event: ScheduledEvent) -> list[dict[str, str]]:
    """
    Registered students marked present, in registration order.
    """
    present = set(event.attended)
    out: list[dict[str, str]] = []
    for r in event.registered:
        if r.user_id in present:
            out.append({"name": r.name, "roll_number": r.roll_number or "", "email": r.email})
    return out


def build_report_html(event: ScheduledEvent, teacher_name: str, students: list[dict[str, str]]) -> str:
    e = html.escape
    items = "".join(
        f"<li>{e(s['name'])} (Roll: {e(s['roll_number'] or '-')}) - {e(s['email'])}</li>" for s in students
    )
    when = f"{event.window.start}-{event.window.end}"
    return (
        "<div>"
        "<h2>Attendance Report</h2>"
        f"<p>Dear {e(teacher_name)},</p>"
        f"<p>Below is the list of students who attended the event <strong>\"{e(event.title)}\"</strong> "
        f"held on <strong>{e(event.window.date)}</strong> at <strong>{e(when)}</strong>.</p>"
        f"<h3>Present Students ({len(students)})</h3>"
        f"<ol>{items}</ol>"
        f"<p><strong>Organizer:</strong> {e(event.organizer_name or '-')}</p>"
        "</div>"
    )


def build_payload(event: ScheduledEvent, teacher_name: str, teacher_email: str) -> dict[str, Any]:
    students = present_students(event)
    return {
        "teacherName": teacher_name,
        "teacherEmail": teacher_email,
        "eventName": event.title,
        "eventDate": event.window.date,
        "eventTime": f"{event.window.start}-{event.window.end}",
        "organizerName": event.organizer_name,
        "presentStudents": [
            {"name": s["name"], "rollNumber": s["roll_number"], "email": s["email"]} for s in students
        ],
        "subject": f'Attendance List for Event "{event.title}"',
        "from": SENDER_NAME,
        "html": build_report_html(event, teacher_name, students),
    }


def send_attendance_report(
    event: ScheduledEvent,
    teacher_name: str,
    teacher_email: str,
    endpoint: str,
    api_key: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 30,
) -> bool:
    """
    POST the report to the notification endpoint.

    Returns True on a 2xx answer, False on HTTP or network errors.
    """
    payload = build_payload(event, teacher_name, teacher_email)
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    http = session or requests.Session()
    logger.info("Sending attendance report for %s to %s", event.event_id, teacher_email)
    try:
        resp = http.post(endpoint, json=payload, headers=headers, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("Attendance report for %s failed: %s", event.event_id, e)
        return False
    return True
