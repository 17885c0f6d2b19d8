"""Multi-day detection and date range expansion for calendar events."""
import logging
from datetime import date, timedelta
from typing import List, Optional

from processor.models import CalendarEvent

logger = logging.getLogger(__name__)


class MultiDayResolver:
    """Determines which calendar dates an event occupies."""

    MAX_DAYS = 90
    DEFAULT_CUTOFF = '05:00'

    def __init__(self, next_day_cutoff: str = DEFAULT_CUTOFF):
        """
        Initialize the resolver.

        Args:
            next_day_cutoff: Time of day (HH:MM) before which an event ending
                on the following day still counts as a single-day event
        """
        self.next_day_cutoff = next_day_cutoff or self.DEFAULT_CUTOFF
        self.cutoff_seconds = self._to_seconds(self.next_day_cutoff)

    def is_multi_day(self, event: CalendarEvent) -> bool:
        """
        Check if an event spans multiple days.

        Events ending before the cutoff on the day after they start are
        treated as single-day events (typical late-night shows).

        Args:
            event: Event to check

        Returns:
            True if the event spans multiple days
        """
        start_date = event.start_date
        end_date = event.end_date

        if not start_date or not end_date or start_date == end_date:
            return False

        start = _parse_date(start_date)
        end = _parse_date(end_date)
        if start is None or end is None:
            return False

        diff = abs((end - start).days)

        if diff == 1 and event.end_time:
            if self._to_seconds(event.end_time) < self.cutoff_seconds:
                return False

        return True

    def get_date_range(self, start_date: str, end_date: str) -> List[str]:
        """
        Generate all dates an event spans, capped at MAX_DAYS.

        Args:
            start_date: Start date (YYYY-MM-DD)
            end_date: End date (YYYY-MM-DD)

        Returns:
            List of date strings (YYYY-MM-DD)
        """
        start = _parse_date(start_date)
        end = _parse_date(end_date)
        if start is None or end is None:
            return []

        dates = []
        current = start
        while current <= end and len(dates) < self.MAX_DAYS:
            dates.append(current.isoformat())
            current += timedelta(days=1)

        if current <= end:
            logger.debug(
                f"Date range {start_date}..{end_date} truncated to {self.MAX_DAYS} days"
            )

        return dates

    @staticmethod
    def _to_seconds(time_str: str) -> int:
        parts = time_str.split(':')
        try:
            hours = int(parts[0])
            minutes = int(parts[1]) if len(parts) > 1 else 0
        except ValueError:
            return 0
        return hours * 3600 + minutes * 60


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return None
