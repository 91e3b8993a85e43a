"""
Conflict filtering of generated slots against committed appointments.
"""

from datetime import time
from typing import List, Sequence

from models.appointment import Appointment
from shared_types.availability import SlotData
from utils.datetime_utils import parse_time_string


class ConflictFilter:
    """Marks slots that collide with booked appointments. Pure, no database access."""

    @staticmethod
    def apply_conflicts(slots: Sequence[SlotData], appointments: Sequence[Appointment]) -> List[SlotData]:
        """
        Flag slots overlapping any non-cancelled appointment.

        Slots are never removed or reordered; colliding ones come back with
        available=False so the cache keeps a complete picture of the day.

        Args:
            slots: Slots for one provider and date
            appointments: That provider's appointments on the same date

        Returns:
            New list of slots, same order, with availability set
        """
        busy = [
            (appointment.start_time, appointment.end_time)
            for appointment in appointments
            if not appointment.is_cancelled
        ]

        result: List[SlotData] = []
        for slot in slots:
            slot_start = parse_time_string(slot.start)
            slot_end = parse_time_string(slot.end)
            conflicted = any(
                ConflictFilter._check_time_overlap(slot_start, slot_end, busy_start, busy_end)
                for busy_start, busy_end in busy
            )
            result.append(
                SlotData(
                    start=slot.start,
                    end=slot.end,
                    duration_minutes=slot.duration_minutes,
                    available=slot.available and not conflicted,
                )
            )
        return result

    @staticmethod
    def _check_time_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
        """Check if two half-open time intervals overlap."""
        return start1 < end2 and start2 < end1
