"""
Unit tests for the local event store.

Storage contract:
- Missing/invalid file -> empty list
- fetch_approved_events only returns approved events of that exact date
- approved inserts and approvals re-check the slot (authoritative)
- registrations respect approval state and capacity
"""

import json
import tempfile
import unittest
from pathlib import Path

from campusevents import storage
from campusevents.model import APPROVED, PENDING, REJECTED, Registration, TimeWindow
from campusevents.scheduler import InvalidWindow
from campusevents.storage import (
    CapacityReached,
    EventNotFound,
    FeedbackError,
    RegistrationError,
    SlotTakenError,
)

DAY = "2024-08-20"


def _record(event_id: str, status: str, date: str, start: str, end: str, **extra) -> dict:
    window = {"date": date, "start": start, "end": end}
    return {"event_id": event_id, "title": event_id, "approval_status": status, "window": window, **extra}


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "events.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def create(self, start: str, end: str, status: str = APPROVED, date: str = DAY, **details) -> str:
        return storage.create_event(TimeWindow(date, start, end), status, f"{start} event", path=self.path, **details)


class TestLoadSave(StoreTestCase):
    def test_load_missing_file_returns_empty(self) -> None:
        self.assertEqual(storage.load_events(self.path), [])

    def test_load_corrupt_file_returns_empty(self) -> None:
        self.path.write_text("{not json", encoding="utf-8")
        self.assertEqual(storage.load_events(self.path), [])

    def test_saved_file_schema(self) -> None:
        event_id = self.create("10:00", "11:00", location="Main Auditorium")
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(len(data["events"]), 1)
        stored = data["events"][0]
        self.assertEqual(stored["event_id"], event_id)
        self.assertEqual(stored["window"], {"date": DAY, "start": "10:00", "end": "11:00"})
        self.assertEqual(stored["location"], "Main Auditorium")


class TestFetchAndCreate(StoreTestCase):
    def test_fetch_only_approved_same_date(self) -> None:
        a = self.create("09:00", "10:00")
        self.create("09:00", "10:00", status=PENDING)
        self.create("12:00", "13:00", status=REJECTED)
        self.create("09:00", "10:00", date="2024-08-21")

        approved = storage.fetch_approved_events(DAY, self.path)
        self.assertEqual([e.event_id for e in approved], [a])

    def test_approved_insert_into_taken_slot_is_refused(self) -> None:
        self.create("09:00", "10:00")
        with self.assertRaises(SlotTakenError):
            self.create("09:30", "10:30")
        self.assertEqual(len(storage.load_events(self.path)), 1)

    def test_touching_approved_insert_is_fine(self) -> None:
        self.create("09:00", "10:00")
        self.create("10:00", "11:00")
        self.assertEqual(len(storage.fetch_approved_events(DAY, self.path)), 2)

    def test_pending_insert_is_always_stored(self) -> None:
        self.create("09:00", "10:00")
        self.create("09:30", "10:30", status=PENDING)
        self.assertEqual(len(storage.list_events(PENDING, self.path)), 1)

    def test_unknown_status(self) -> None:
        with self.assertRaises(ValueError):
            self.create("09:00", "10:00", status="maybe")

    def test_unpadded_date_is_stored_padded(self) -> None:
        self.create("9:00", "10:00", date="2024-8-20")
        self.assertEqual(storage.load_events(self.path)[0].window, TimeWindow(DAY, "09:00", "10:00"))
        self.assertEqual(len(storage.fetch_approved_events("2024-8-20", self.path)), 1)

    def test_unpadded_date_cannot_bypass_the_slot_check(self) -> None:
        self.create("09:00", "10:00")
        with self.assertRaises(SlotTakenError):
            self.create("09:30", "10:15", date="2024-8-20")


class TestBrokenRecords(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        records = [
            _record("good", APPROVED, DAY, "09:00", "10:00"),
            _record("bad", APPROVED, DAY, "9h", "10:00"),
            _record("junk", APPROVED, DAY, "11:00", "12:00", max_participants="lots"),
            _record("queued", PENDING, "2024-8-20", "14:00", "1500"),
        ]
        self.path.write_text(json.dumps({"events": records}), encoding="utf-8")

    def test_unreadable_record_is_dropped(self) -> None:
        ids = [e.event_id for e in storage.load_events(self.path)]
        self.assertEqual(ids, ["good", "bad", "queued"])

    def test_invalid_window_is_left_out_of_checks(self) -> None:
        approved = storage.fetch_approved_events(DAY, self.path)
        self.assertEqual([e.event_id for e in approved], ["good"])
        self.create("10:00", "11:00")
        with self.assertRaises(SlotTakenError):
            self.create("09:30", "10:30")

    def test_approving_an_invalid_window_is_refused(self) -> None:
        with self.assertRaises(InvalidWindow):
            storage.set_approval_status("queued", APPROVED, self.path)
        self.assertEqual(storage.get_event("queued", self.path).approval_status, PENDING)


class TestApproval(StoreTestCase):
    def test_approve_and_reject(self) -> None:
        a = self.create("09:00", "10:00", status=PENDING)
        b = self.create("11:00", "12:00", status=PENDING)

        storage.set_approval_status(a, APPROVED, self.path)
        storage.set_approval_status(b, REJECTED, self.path)

        self.assertEqual(storage.get_event(a, self.path).approval_status, APPROVED)
        self.assertEqual(storage.get_event(b, self.path).approval_status, REJECTED)

    def test_approving_into_taken_slot_is_refused(self) -> None:
        self.create("09:00", "10:00")
        pending = self.create("09:30", "10:30", status=PENDING)
        with self.assertRaises(SlotTakenError):
            storage.set_approval_status(pending, APPROVED, self.path)
        self.assertEqual(storage.get_event(pending, self.path).approval_status, PENDING)

    def test_reapproving_keeps_own_slot(self) -> None:
        a = self.create("09:00", "10:00")
        storage.set_approval_status(a, APPROVED, self.path)

    def test_unknown_event(self) -> None:
        with self.assertRaises(EventNotFound):
            storage.set_approval_status("nope", APPROVED, self.path)


class TestRegistration(StoreTestCase):
    def _student(self, n: int) -> Registration:
        return Registration(user_id=f"s{n}", name=f"Student {n}", email=f"s{n}@college.edu", roll_number=f"R{n}")

    def test_register_counts_and_duplicates(self) -> None:
        ev = self.create("09:00", "10:00")
        self.assertTrue(storage.register_student(ev, self._student(1), self.path))
        self.assertFalse(storage.register_student(ev, self._student(1), self.path))
        self.assertEqual(storage.registration_count(ev, self.path), 1)

    def test_capacity(self) -> None:
        ev = self.create("09:00", "10:00", max_participants=2)
        storage.register_student(ev, self._student(1), self.path)
        storage.register_student(ev, self._student(2), self.path)
        with self.assertRaises(CapacityReached):
            storage.register_student(ev, self._student(3), self.path)

    def test_pending_event_is_closed(self) -> None:
        ev = self.create("09:00", "10:00", status=PENDING)
        with self.assertRaises(RegistrationError):
            storage.register_student(ev, self._student(1), self.path)

    def test_unregister_drops_attendance(self) -> None:
        ev = self.create("09:00", "10:00")
        storage.register_student(ev, self._student(1), self.path)
        storage.mark_attendance(ev, "s1", path=self.path)
        self.assertTrue(storage.unregister_student(ev, "s1", self.path))
        self.assertFalse(storage.unregister_student(ev, "s1", self.path))
        stored = storage.get_event(ev, self.path)
        self.assertEqual(stored.registered, [])
        self.assertEqual(stored.attended, [])

    def test_attendance_toggle(self) -> None:
        ev = self.create("09:00", "10:00")
        storage.register_student(ev, self._student(1), self.path)
        storage.mark_attendance(ev, "s1", path=self.path)
        storage.mark_attendance(ev, "s1", path=self.path)
        self.assertEqual(storage.get_event(ev, self.path).attended, ["s1"])
        storage.mark_attendance(ev, "s1", present=False, path=self.path)
        self.assertEqual(storage.get_event(ev, self.path).attended, [])

    def test_attendance_requires_registration(self) -> None:
        ev = self.create("09:00", "10:00")
        with self.assertRaises(RegistrationError):
            storage.mark_attendance(ev, "s9", path=self.path)


class TestFeedback(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ev = self.create("09:00", "10:00")
        for n in (1, 2):
            reg = Registration(user_id=f"s{n}", name=f"Student {n}", email=f"s{n}@college.edu")
            storage.register_student(self.ev, reg, self.path)
        storage.mark_attendance(self.ev, "s1", path=self.path)

    def test_feedback_is_stored(self) -> None:
        storage.submit_feedback(self.ev, "s1", 4, "  Great session ", self.path)
        stored = storage.get_event(self.ev, self.path).feedback
        self.assertEqual(len(stored), 1)
        self.assertEqual((stored[0].user_id, stored[0].rating, stored[0].comment), ("s1", 4, "Great session"))
        self.assertTrue(stored[0].created_at)

    def test_only_attendees_can_rate(self) -> None:
        with self.assertRaises(FeedbackError):
            storage.submit_feedback(self.ev, "s2", 5, path=self.path)

    def test_one_feedback_per_student(self) -> None:
        storage.submit_feedback(self.ev, "s1", 5, path=self.path)
        with self.assertRaises(FeedbackError):
            storage.submit_feedback(self.ev, "s1", 3, path=self.path)

    def test_rating_range(self) -> None:
        for rating in (0, 6):
            with self.assertRaises(FeedbackError):
                storage.submit_feedback(self.ev, "s1", rating, path=self.path)
        self.assertEqual(storage.get_event(self.ev, self.path).feedback, [])


if __name__ == "__main__":
    unittest.main()
