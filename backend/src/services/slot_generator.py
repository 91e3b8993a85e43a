"""
Slot generation from weekly availability templates.

Pure functions with no database access: callers fetch templates and the
date's exception and pass them in.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional, Sequence, Tuple

from models.availability_exception import AvailabilityException
from models.availability_template import AvailabilityTemplate
from shared_types.availability import SlotData
from utils.datetime_utils import format_time, minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


class SlotGenerator:
    """Turns template windows into fixed-duration slots for one date."""

    @staticmethod
    def generate_slots(
        templates: Sequence[AvailabilityTemplate],
        exception: Optional[AvailabilityException],
        duration_minutes: int,
        target_date: date_type,
    ) -> List[SlotData]:
        """
        Generate candidate slots for a date.

        A blackout exception yields no slots. A replacement exception's window is
        used instead of the day's templates. Otherwise every template that applies
        on the date yields its own run of back-to-back slots aligned at the
        template's start; a trailing partial window is dropped. Overlapping
        templates produce overlapping runs which are kept as-is.

        Args:
            templates: Provider's templates (any weekday; filtered here)
            exception: The date's exception, if any
            duration_minutes: Slot length in minutes
            target_date: Civil date to generate for

        Returns:
            Slots ordered by (start, end), all marked available

        Raises:
            ValueError: If duration_minutes is not positive
        """
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

        windows = SlotGenerator._windows_for_date(templates, exception, target_date)

        slots: List[Tuple[int, int]] = []
        for window_start, window_end in windows:
            slots.extend(SlotGenerator._slots_in_window(window_start, window_end, duration_minutes))

        slots.sort()
        return [
            SlotData(
                start=format_time(minutes_to_time(start)),
                end=format_time(minutes_to_time(end)),
                duration_minutes=duration_minutes,
            )
            for start, end in slots
        ]

    @staticmethod
    def _windows_for_date(
        templates: Sequence[AvailabilityTemplate],
        exception: Optional[AvailabilityException],
        target_date: date_type,
    ) -> List[Tuple[time, time]]:
        """Working windows for the date after applying the exception."""
        if exception is not None and exception.exception_date == target_date:
            if exception.is_blackout:
                return []
            if exception.is_replacement:
                if exception.start_time is None or exception.end_time is None:
                    logger.warning(
                        f"Replacement exception {exception.id} for provider {exception.provider_id} "
                        f"on {target_date} has no window, treating as blackout"
                    )
                    return []
                return [(exception.start_time, exception.end_time)]

        return [
            (template.start_time, template.end_time)
            for template in templates
            if template.applies_on(target_date)
        ]

    @staticmethod
    def _slots_in_window(window_start: time, window_end: time, duration_minutes: int) -> List[Tuple[int, int]]:
        """(start, end) minute pairs that fit entirely inside the window."""
        start = time_to_minutes(window_start)
        end = time_to_minutes(window_end)

        result: List[Tuple[int, int]] = []
        current = start
        while current + duration_minutes <= end:
            result.append((current, current + duration_minutes))
            current += duration_minutes
        return result
