"""Importer for iCalendar (ICS) feeds."""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import icalendar
import recurring_ical_events

from importers.fetch import fetch_text
from processor.models import RawEvent

logger = logging.getLogger(__name__)

UTC_NAMES = ('UTC', 'Z', 'Etc/UTC', 'GMT')


class IcsFeedImporter:
    """
    Imports events from an ICS feed.

    Recurring events are expanded into one event per occurrence inside the
    import window (one day back through `days_ahead` days ahead).
    """

    FILTER_DAYS_BEFORE = 1

    def __init__(self, feed_url: str, timeout: int = 30, venue_name: str = '',
                 venue_address: str = '', terms: Optional[Dict[str, List[str]]] = None):
        """
        Initialize the ICS importer.

        Args:
            feed_url: ICS feed URL (https:// or webcal://)
            timeout: HTTP request timeout in seconds
            venue_name: Venue override for every event of the feed
            venue_address: Venue address override
            terms: Taxonomy term names applied to every event
        """
        self.feed_url = feed_url
        self.timeout = timeout
        self.venue_name = venue_name
        self.venue_address = venue_address
        self.terms = terms or {}

    def fetch_events(self, days_ahead: int = 90, now: Optional[datetime] = None) -> List[RawEvent]:
        """
        Fetch and parse the feed.

        Args:
            days_ahead: Import horizon in days
            now: Reference time (defaults to the current time)

        Returns:
            List of RawEvent objects
        """
        logger.info(f"Fetching ICS feed {self.feed_url} for {days_ahead} days ahead")
        content = fetch_text(self.feed_url, timeout=self.timeout)
        events = self.parse_events(content, days_ahead, now)
        logger.info(f"Successfully parsed {len(events)} events from {self.feed_url}")
        return events

    def parse_events(self, content: str, days_ahead: int = 90,
                     now: Optional[datetime] = None) -> List[RawEvent]:
        """Parse ICS text into raw events within the import window."""
        try:
            calendar = icalendar.Calendar.from_ical(content)
        except ValueError as e:
            logger.error(f"Invalid ICS content from {self.feed_url}: {e}")
            return []

        calendar_tz = _valid_zone_name(str(calendar.get('X-WR-TIMEZONE', '')).strip())

        now = now or datetime.now()
        window_start = (now - timedelta(days=self.FILTER_DAYS_BEFORE)).date()
        window_end = (now + timedelta(days=days_ahead)).date()

        events = []
        for component in recurring_ical_events.of(calendar).between(window_start, window_end):
            try:
                event = self._normalize_event(component, calendar_tz)
            except (ValueError, KeyError, AttributeError) as e:
                logger.warning(f"Failed to parse ICS event '{component.get('SUMMARY', '')}': {e}")
                continue

            if event.title:
                events.append(event)

        return events

    def _normalize_event(self, component, calendar_tz: str) -> RawEvent:
        """Convert a VEVENT component to a RawEvent."""
        url = str(component.get('URL', '') or '')
        event = RawEvent(
            title=str(component.get('SUMMARY', '')).strip(),
            start_date='',
            description=str(component.get('DESCRIPTION', '') or '').strip(),
            ticket_url=url or None,
            organizer=_organizer_name(component.get('ORGANIZER')),
            source_url=url or None,
            venue_timezone=calendar_tz,
            terms={taxonomy: list(names) for taxonomy, names in self.terms.items()},
        )

        start_prop = component.get('DTSTART')
        if start_prop is not None:
            event.start_date, event.start_time, tz_name = localize(start_prop, calendar_tz)
            if tz_name:
                event.venue_timezone = tz_name

        end_prop = component.get('DTEND')
        if end_prop is not None:
            end_date, end_time, tz_name = localize(end_prop, calendar_tz)
            if not end_time and end_date > event.start_date:
                # DTEND of an all-day event is exclusive.
                end_date = (date.fromisoformat(end_date) - timedelta(days=1)).isoformat()
            event.end_date, event.end_time = end_date, end_time
            if tz_name and not event.venue_timezone:
                event.venue_timezone = tz_name

        event.venue, event.venue_address = split_location(str(component.get('LOCATION', '') or ''))
        if self.venue_name:
            event.venue = self.venue_name
        if self.venue_address:
            event.venue_address = self.venue_address

        return event


def localize(prop, calendar_tz: str) -> Tuple[str, str, str]:
    """
    Local date, time and timezone name of a DTSTART/DTEND property.

    An explicit TZID keeps the wall-clock time of that zone. Floating
    times are read in the calendar timezone. UTC times are converted to the
    calendar timezone when it is known. Date-only values have no time.

    Returns:
        (YYYY-MM-DD, HH:MM or '', timezone name or '')
    """
    value = prop.dt
    if not isinstance(value, datetime):
        return value.isoformat(), '', ''

    tzid = _valid_zone_name(str(prop.params.get('TZID', '')))

    if value.tzinfo is None:
        return value.strftime('%Y-%m-%d'), value.strftime('%H:%M'), calendar_tz

    if not tzid and _is_utc(value):
        if calendar_tz:
            value = value.astimezone(ZoneInfo(calendar_tz))
            return value.strftime('%Y-%m-%d'), value.strftime('%H:%M'), calendar_tz
        return value.strftime('%Y-%m-%d'), value.strftime('%H:%M'), ''

    tz_name = tzid or _valid_zone_name(_tz_name(value))
    if tz_name:
        value = value.astimezone(ZoneInfo(tz_name))
    return value.strftime('%Y-%m-%d'), value.strftime('%H:%M'), tz_name


def split_location(location: str) -> Tuple[str, str]:
    """Split 'Venue, 123 Street, City' into venue name and address."""
    location = location.strip()
    if not location:
        return '', ''
    parts = location.split(',', 1)
    if len(parts) == 2:
        return parts[0].strip(), parts[1].strip()
    return location, location


def _organizer_name(organizer) -> str:
    if organizer is None:
        return ''
    params = getattr(organizer, 'params', {})
    name = params.get('CN') if params else None
    if name:
        return str(name).strip()
    value = str(organizer)
    return value[len('mailto:'):] if value.lower().startswith('mailto:') else value


def _tz_name(value: datetime) -> str:
    tzinfo = value.tzinfo
    return getattr(tzinfo, 'key', None) or getattr(tzinfo, 'zone', None) or value.tzname() or ''


def _is_utc(value: datetime) -> bool:
    return value.tzinfo is timezone.utc or _tz_name(value) in UTC_NAMES


def _valid_zone_name(name: str) -> str:
    if not name:
        return ''
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Ignoring unknown timezone '{name}'")
        return ''
    return name
