"""Importer for manually configured weekly recurring events."""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from dateutil.rrule import WEEKLY, rrule, weekday

from processor.models import RawEvent

logger = logging.getLogger(__name__)


class WeeklyRecurringImporter:
    """
    Generates one event per week on a fixed weekday.

    Weekdays count from 0 = Sunday through 6 = Saturday; out of range values
    fall back to Sunday.
    """

    def __init__(self, title: str, day_of_week: int = 0, start_time: str = '',
                 end_time: str = '', description: str = '', expiration_date: str = '',
                 ticket_url: str = '', price: str = '', venue_name: str = '',
                 venue_address: str = '', venue_timezone: str = '', search: str = '',
                 exclude_keywords: str = '', as_series: bool = False,
                 terms: Optional[Dict[str, List[str]]] = None):
        self.title = (title or '').strip()
        try:
            self.day_of_week = abs(int(day_of_week))
        except (TypeError, ValueError):
            self.day_of_week = 0
        if self.day_of_week > 6:
            self.day_of_week = 0
        self.start_time = (start_time or '').strip()
        self.end_time = (end_time or '').strip()
        self.description = description or ''
        self.expiration_date = (expiration_date or '').strip()
        self.ticket_url = ticket_url or None
        self.price = price or ''
        self.venue_name = venue_name or ''
        self.venue_address = venue_address or ''
        self.venue_timezone = venue_timezone or ''
        self.search = search or ''
        self.exclude_keywords = exclude_keywords or ''
        self.as_series = as_series
        self.terms = terms or {}

    def fetch_events(self, days_ahead: int = 90, now: Optional[datetime] = None) -> List[RawEvent]:
        """
        Generate the weekly occurrences inside the import window.

        Args:
            days_ahead: Import horizon in days
            now: Reference time (defaults to the current time)

        Returns:
            One RawEvent per occurrence, or a single series event carrying
            all occurrence dates when `as_series` is set
        """
        if not self.title:
            logger.warning("Weekly recurring event has no title, skipping")
            return []

        if not self.passes_keyword_filters(self.title):
            logger.info(f"Weekly recurring event '{self.title}' filtered by keywords")
            return []

        dates = self.get_occurrence_dates(days_ahead, now)
        if not dates:
            logger.info(f"No upcoming occurrences for weekly event '{self.title}'")
            return []

        if self.as_series:
            event = self._build_event(dates[0])
            event.occurrence_dates = [d.isoformat() for d in dates]
            return [event]

        events = [self._build_event(day) for day in dates]
        logger.info(f"Generated {len(events)} occurrences of '{self.title}'")
        return events

    def get_occurrence_dates(self, days_ahead: int = 90, now: Optional[datetime] = None) -> List[date]:
        """Dates from today through the horizon (or expiration) on the configured weekday."""
        today = (now or datetime.now()).date()
        until = today + timedelta(days=days_ahead)

        if self.expiration_date:
            try:
                expiration = date.fromisoformat(self.expiration_date)
            except ValueError:
                logger.warning(f"Invalid expiration date '{self.expiration_date}' for '{self.title}'")
            else:
                until = min(until, expiration)

        if until < today:
            return []

        rule = rrule(
            WEEKLY,
            byweekday=weekday((self.day_of_week - 1) % 7),
            dtstart=datetime.combine(today, datetime.min.time()),
            until=datetime.combine(until, datetime.min.time()),
        )
        return [occurrence.date() for occurrence in rule]

    def passes_keyword_filters(self, text: str) -> bool:
        """Include keywords must match (when set); exclude keywords must not."""
        text = text.lower()
        include = _keywords(self.search)
        exclude = _keywords(self.exclude_keywords)

        if include and not any(keyword in text for keyword in include):
            return False
        if any(keyword in text for keyword in exclude):
            return False
        return True

    def _build_event(self, day: date) -> RawEvent:
        end_date = day
        if self.start_time and self.end_time and _minutes(self.end_time) < _minutes(self.start_time):
            # Runs past midnight.
            end_date = day + timedelta(days=1)

        return RawEvent(
            title=self.title,
            start_date=day.isoformat(),
            start_time=self.start_time,
            end_date=end_date.isoformat(),
            end_time=self.end_time,
            venue_timezone=self.venue_timezone,
            description=self.description,
            venue=self.venue_name,
            venue_address=self.venue_address,
            ticket_url=self.ticket_url,
            price=self.price,
            terms={taxonomy: list(names) for taxonomy, names in self.terms.items()},
        )


def _minutes(value: str) -> int:
    hours, _, minutes = value.partition(':')
    try:
        return int(hours) * 60 + int(minutes[:2] or 0)
    except ValueError:
        return 0


def _keywords(value: str) -> List[str]:
    return [keyword.strip().lower() for keyword in (value or '').split(',') if keyword.strip()]
