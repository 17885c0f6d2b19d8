"""Groups events by calendar date, expanding multi-day and recurring events."""
import logging
from datetime import date, datetime, time, tzinfo
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.models import CalendarEvent, DateGroup, EventItem, Occurrence
from processor.multi_day import MultiDayResolver

logger = logging.getLogger(__name__)


class DateGrouper:
    """Builds date-keyed groups of event occurrences for one calendar page."""

    def __init__(self, site_tz: tzinfo, resolver: Optional[MultiDayResolver] = None):
        """
        Initialize the grouper.

        Args:
            site_tz: Site default timezone, used when an event has no valid
                venue timezone
            resolver: Multi-day resolver (default cutoff when omitted)
        """
        self.site_tz = site_tz
        self.resolver = resolver or MultiDayResolver()

    def get_event_timezone(self, event: CalendarEvent) -> tzinfo:
        """
        Get the timezone for an event.

        Uses the venue timezone if it is a valid zone name, otherwise the
        site timezone.
        """
        if event.venue_timezone:
            try:
                return ZoneInfo(event.venue_timezone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.debug(
                    f"Invalid timezone '{event.venue_timezone}' for event "
                    f"{event.event_id}, using site timezone"
                )
        return self.site_tz

    def build_paged_events(self, events: Iterable[CalendarEvent]) -> List[EventItem]:
        """
        Pair each event with its start datetime.

        Args:
            events: Events returned by the page query

        Returns:
            List of EventItem objects, skipping events without a start date
        """
        paged_events = []

        for event in events:
            if not event.start_date:
                continue
            try:
                start_day = date.fromisoformat(event.start_date)
                start_time = time.fromisoformat(event.start_time) if event.start_time else time()
            except ValueError:
                logger.warning(
                    f"Skipping event {event.event_id} with unparseable start "
                    f"'{event.start_date} {event.start_time}'"
                )
                continue

            event_tz = self.get_event_timezone(event)
            paged_events.append(
                EventItem(event=event, start=datetime.combine(start_day, start_time, tzinfo=event_tz))
            )

        return paged_events

    def get_event_dates(self, event: CalendarEvent, show_past: bool, today: str) -> List[str]:
        """
        Dates an event is displayed on, before page boundary filtering.

        Explicit occurrence dates win over range expansion. Expanded dates in
        the past are dropped unless past events are being shown.
        """
        has_occurrence_dates = bool(event.occurrence_dates)

        if has_occurrence_dates:
            event_dates = list(event.occurrence_dates)
        elif self.resolver.is_multi_day(event):
            event_dates = self.resolver.get_date_range(
                event.start_date, event.end_date or event.start_date
            )
        else:
            return [event.start_date]

        if not show_past:
            event_dates = [d for d in event_dates if d >= today]

        return event_dates

    def group_events_by_date(self, paged_events: List[EventItem], show_past: bool = False,
                             date_start: str = '', date_end: str = '',
                             today: Optional[str] = None) -> Dict[str, DateGroup]:
        """
        Group events by date, expanding multi-day events across their range.

        Args:
            paged_events: Event items for the current page
            show_past: Whether past events are shown (reverses sort order)
            date_start: Optional page start boundary (YYYY-MM-DD)
            date_end: Optional page end boundary (YYYY-MM-DD)
            today: Current date in the site timezone (YYYY-MM-DD)

        Returns:
            Dict of date key to DateGroup, ordered by date
        """
        if today is None:
            today = datetime.now(self.site_tz).date().isoformat()

        date_groups: Dict[str, DateGroup] = {}

        for item in paged_events:
            event = item.event
            start_date = event.start_date
            end_date = event.end_date or start_date

            if not start_date:
                continue

            event_tz = self.get_event_timezone(event)
            has_occurrence_dates = bool(event.occurrence_dates)
            is_multi_day = False if has_occurrence_dates else self.resolver.is_multi_day(event)

            all_dates = self.get_event_dates(event, show_past, today)
            full_span = (
                event.occurrence_dates if has_occurrence_dates
                else self.resolver.get_date_range(start_date, end_date) if is_multi_day
                else [start_date]
            )

            event_dates = [
                d for d in all_dates
                if not (date_start and d < date_start) and not (date_end and d > date_end)
            ]

            for date_key in event_dates:
                group = date_groups.get(date_key)
                if group is None:
                    try:
                        day = date.fromisoformat(date_key)
                    except ValueError:
                        logger.warning(f"Skipping invalid occurrence date '{date_key}' for {event.event_id}")
                        continue
                    group = DateGroup(
                        date_key=date_key,
                        date_obj=datetime.combine(day, time(), tzinfo=event_tz),
                    )
                    date_groups[date_key] = group

                group.events.append(Occurrence(
                    event=event,
                    start=item.start,
                    display_date=date_key,
                    is_multi_day=is_multi_day,
                    is_start_day=True if has_occurrence_dates else date_key == start_date,
                    is_end_day=True if has_occurrence_dates else date_key == end_date,
                    is_continuation=False if has_occurrence_dates else date_key != start_date,
                    original_start_date=start_date,
                    original_end_date=end_date,
                    day_number=full_span.index(date_key) + 1 if date_key in full_span else 1,
                    total_days=len(full_span),
                ))

        return dict(sorted(date_groups.items(), reverse=show_past))

    @staticmethod
    def detect_time_gaps(date_groups: Dict[str, DateGroup]) -> Dict[str, int]:
        """
        Detect gaps between consecutive date groups.

        Args:
            date_groups: Date-grouped events in display order

        Returns:
            Map of date key to gap in days, for gaps of two days or more
        """
        gaps = {}
        previous_date = None

        for date_key in date_groups:
            current_date = date.fromisoformat(date_key)
            if previous_date is not None:
                days_diff = abs((current_date - previous_date).days)
                if days_diff > 1:
                    gaps[date_key] = days_diff
            previous_date = current_date

        return gaps
