"""Tests for domain/scheduling/slots.py"""

import unittest
from datetime import date, datetime

from appointly.domain.scheduling.slots import generate_slots, intervals_overlap
from appointly.domain.scheduling.working_hours import EffectiveHours
from appointly.shared.errors import ValidationFailed

DAY = date(2030, 1, 7)
EARLIER = datetime(2030, 1, 1, 8, 0)
NINE_TO_SIX = EffectiveHours(540, 1080)


def labels(slots, available=None):
    return [s.label for s in slots if available is None or s.available is available]


class TestSlots(unittest.TestCase):
    def test_empty_day_full_grid(self):
        slots = generate_slots(DAY, NINE_TO_SIX, 30, 30, [], EARLIER)
        self.assertEqual(len(slots), 18)
        self.assertEqual(slots[0].label, "09:00")
        self.assertEqual(slots[-1].label, "17:30")
        self.assertTrue(all(s.available for s in slots))

    def test_interval_drives_grid(self):
        slots = generate_slots(DAY, EffectiveHours(540, 600), 15, 15, [], EARLIER)
        self.assertEqual(labels(slots), ["09:00", "09:15", "09:30", "09:45"])

    def test_trailing_slot_past_closing_is_kept(self):
        slots = generate_slots(DAY, NINE_TO_SIX, 60, 30, [], EARLIER)
        self.assertEqual(slots[-1].label, "17:30")
        self.assertTrue(slots[-1].available)

    def test_booked_interval_blocks_overlapping_slots(self):
        # 10:00-11:00 taken
        slots = generate_slots(DAY, NINE_TO_SIX, 30, 30, [(600, 60)], EARLIER)
        self.assertEqual(labels(slots, available=False), ["10:00", "10:30"])
        self.assertIn("09:30", labels(slots, available=True))
        self.assertIn("11:00", labels(slots, available=True))

    def test_longer_service_overlaps_following_booking(self):
        slots = generate_slots(DAY, NINE_TO_SIX, 60, 30, [(600, 30)], EARLIER)
        self.assertEqual(labels(slots, available=False), ["09:30", "10:00"])

    def test_past_slots_unavailable(self):
        now = datetime(2030, 1, 7, 12, 10)
        slots = generate_slots(DAY, NINE_TO_SIX, 30, 30, [], now)
        unavailable = labels(slots, available=False)
        self.assertEqual(unavailable[0], "09:00")
        self.assertEqual(unavailable[-1], "12:00")
        self.assertEqual(labels(slots, available=True)[0], "12:30")

    def test_closed_day_is_empty(self):
        self.assertEqual(generate_slots(DAY, EffectiveHours(0, 0, closed=True), 30, 30, [], EARLIER), [])

    def test_non_positive_interval_or_duration_rejected(self):
        with self.assertRaises(ValidationFailed):
            generate_slots(DAY, NINE_TO_SIX, 30, 0, [], EARLIER)
        with self.assertRaises(ValidationFailed):
            generate_slots(DAY, NINE_TO_SIX, -15, 30, [], EARLIER)

    def test_intervals_overlap_is_half_open(self):
        self.assertFalse(intervals_overlap(540, 570, 570, 600))
        self.assertTrue(intervals_overlap(540, 571, 570, 600))
        self.assertTrue(intervals_overlap(560, 565, 540, 600))
