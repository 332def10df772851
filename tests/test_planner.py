"""
Tests for the organizer-side planner.

Planner contract:
- a new date re-fetches approved events before checking
- start/end edits re-check against the set already held
- only the latest fetch may feed the scheduler
- a store-side slot collision triggers a re-fetch and is re-raised
"""

import tempfile
import unittest
from pathlib import Path

from campusevents import storage
from campusevents.model import APPROVED, PENDING, ScheduledEvent, TimeWindow
from campusevents.planner import SlotPlanner, StaleInputError
from campusevents.scheduler import InvalidWindow
from campusevents.storage import SlotTakenError


def _approved(date: str, start: str, end: str, event_id: str = "x") -> ScheduledEvent:
    window = TimeWindow(date, start, end)
    return ScheduledEvent(event_id=event_id, title=event_id, window=window, approval_status=APPROVED)


class FakeStore:
    def __init__(self) -> None:
        self.by_date = {
            "2024-08-20": [
                _approved("2024-08-20", "09:00", "10:00", "a"),
                _approved("2024-08-20", "13:00", "14:00", "b"),
            ],
            "2024-08-21": [],
        }
        self.fetches: list[str] = []

    def fetch(self, date: str) -> list[ScheduledEvent]:
        self.fetches.append(date)
        return list(self.by_date.get(date, []))


class TestSlotPlanner(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FakeStore()
        self.planner = SlotPlanner(self.store.fetch)

    def test_first_update_needs_all_fields(self) -> None:
        with self.assertRaises(InvalidWindow):
            self.planner.update(date="2024-08-20", start="10:00")

    def test_invalid_window_is_rejected(self) -> None:
        with self.assertRaises(InvalidWindow):
            self.planner.update(date="2024-08-20", start="11:00", end="10:00")
        self.assertEqual(self.store.fetches, [])

    def test_time_edit_rechecks_without_fetch(self) -> None:
        result = self.planner.update(date="2024-08-20", start="10:30", end="11:30")
        self.assertFalse(result.has_conflict)

        result = self.planner.update(start="09:30", end="10:15")
        self.assertTrue(result.has_conflict)
        self.assertEqual(
            [(s.start, s.end) for s in result.suggested_slots], [("10:00", "13:00"), ("14:00", "18:00")]
        )
        self.assertEqual(self.store.fetches, ["2024-08-20"])

    def test_date_edit_refetches(self) -> None:
        self.assertTrue(self.planner.update(date="2024-08-20", start="09:30", end="10:15").has_conflict)
        result = self.planner.update(date="2024-08-21")
        self.assertFalse(result.has_conflict)
        self.assertEqual(self.store.fetches, ["2024-08-20", "2024-08-21"])

    def test_superseded_fetch_is_discarded(self) -> None:
        self.planner.update(date="2024-08-20", start="10:30", end="11:30")

        old = self.planner.begin_fetch()
        new = self.planner.begin_fetch()
        self.assertFalse(self.planner.accept_fetch(old, "2024-08-22", []))
        self.assertTrue(self.planner.accept_fetch(new, "2024-08-20", self.store.fetch("2024-08-20")))
        self.assertEqual(len(self.planner.existing), 2)

    def test_stale_set_is_refused(self) -> None:
        self.planner.update(date="2024-08-20", start="10:30", end="11:30")
        seq = self.planner.begin_fetch()
        self.planner.accept_fetch(seq, "2024-08-21", [])
        with self.assertRaises(StaleInputError):
            self.planner.evaluate()

    def test_submit_routes_by_conflict(self) -> None:
        calls = []

        def create(candidate, status, title, **details):
            calls.append((candidate, status, title, details))
            return "new-id"

        self.planner.update(date="2024-08-20", start="09:30", end="10:15")
        event_id, status = self.planner.submit("Workshop", create=create, location="Hall B")

        self.assertEqual(event_id, "new-id")
        self.assertEqual(status, PENDING)
        self.assertEqual(calls[0][2], "Workshop")
        self.assertEqual(calls[0][3], {"location": "Hall B"})

    def test_submit_refetches_when_slot_taken(self) -> None:
        def create(candidate, status, title, **details):
            raise SlotTakenError("taken")

        self.planner.update(date="2024-08-21", start="10:00", end="11:00")
        with self.assertRaises(SlotTakenError):
            self.planner.submit("Seminar", create=create)
        self.assertEqual(self.store.fetches, ["2024-08-21", "2024-08-21"])


class TestPlannerWithJsonStore(unittest.TestCase):
    def test_concurrent_approval_is_caught_by_store(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "events.json"
            planner = SlotPlanner(lambda day: storage.fetch_approved_events(day, p))
            self.assertFalse(planner.update(date="2024-08-20", start="10:00", end="11:00").has_conflict)

            # another organizer gets the slot approved first
            storage.create_event(TimeWindow("2024-08-20", "10:30", "11:30"), APPROVED, "Other", path=p)

            with self.assertRaises(SlotTakenError):
                planner.submit("Mine", path=p)
            self.assertTrue(planner.evaluate().has_conflict)

            event_id, status = planner.submit("Mine", path=p)
            self.assertEqual(status, PENDING)
            self.assertEqual(storage.get_event(event_id, p).approval_status, PENDING)

    def test_unpadded_date_sees_approved_events(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "events.json"
            storage.create_event(TimeWindow("2024-08-20", "09:00", "10:00"), APPROVED, "Tech Talk", path=p)

            planner = SlotPlanner(lambda day: storage.fetch_approved_events(day, p))
            result = planner.update(date="2024-8-20", start="09:30", end="10:15")
            self.assertTrue(result.has_conflict)

            event_id, status = planner.submit("Mine", path=p)
            self.assertEqual(status, PENDING)
            self.assertEqual(storage.get_event(event_id, p).window.date, "2024-08-20")


if __name__ == "__main__":
    unittest.main()
