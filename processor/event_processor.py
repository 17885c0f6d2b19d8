"""Event processor for validating and normalizing imported event data."""
import hashlib
import logging
import re
import time
from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor import price_formatter
from processor.models import CalendarEvent, RawEvent

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor for validating and normalizing event data."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000
    TTL_DAYS = 90

    DATE_FORMATS = [
        '%Y-%m-%d',      # ISO 8601
        '%m/%d/%Y',      # US format
        '%m-%d-%Y',      # US format with dashes
        '%B %d, %Y',     # Full month name
        '%b %d, %Y',     # Abbreviated month name
        '%d/%m/%Y',      # European format
        '%Y/%m/%d',      # Alternative ISO format
    ]

    TIME_FORMATS = [
        '%H:%M',         # 24-hour format
        '%H:%M:%S',      # 24-hour with seconds
        '%I:%M %p',      # 12-hour format with AM/PM
        '%I:%M%p',       # 12-hour format without space
        '%I %p',         # Hour only with AM/PM
        '%I%p',          # Hour only without space
        '%I:%M:%S %p',   # 12-hour with seconds and AM/PM
    ]

    def process_events(self, raw_events: List[RawEvent]) -> List[CalendarEvent]:
        """
        Process and validate raw event data.

        Events that fail validation are logged and skipped. When two sources
        yield the same event (same identifier) the first one wins.

        Args:
            raw_events: List of RawEvent objects from import sources

        Returns:
            List of validated CalendarEvent objects
        """
        processed_events = []
        seen_ids = set()

        for event in raw_events:
            try:
                processed_event = self._process_single_event(event)
            except Exception as e:
                logger.warning(f"Failed to process event '{event.title}': {e}")
                continue

            if not processed_event:
                continue

            if processed_event.event_id in seen_ids:
                logger.info(
                    f"Skipping duplicate event '{processed_event.title}' on "
                    f"{processed_event.start_date}"
                )
                continue

            seen_ids.add(processed_event.event_id)
            processed_events.append(processed_event)

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(raw_events)} total events"
        )
        return processed_events

    def _process_single_event(self, event: RawEvent) -> Optional[CalendarEvent]:
        """
        Process a single event.

        Args:
            event: Raw event

        Returns:
            CalendarEvent or None if validation fails
        """
        if not self._validate_required_fields(event):
            return None

        start_date = self._normalize_date(event.start_date)
        if not start_date:
            logger.warning(
                f"Invalid date format for event '{event.title}': {event.start_date}"
            )
            return None

        end_date = self._normalize_date(event.end_date) if event.end_date else start_date
        if not end_date or end_date < start_date:
            logger.warning(
                f"Invalid end date for event '{event.title}': {event.end_date}, "
                f"using start date"
            )
            end_date = start_date

        start_time = self._normalize_time(event.start_time) if event.start_time else ''
        end_time = self._normalize_time(event.end_time) if event.end_time else ''

        occurrence_dates = sorted({
            normalized for normalized in
            (self._normalize_date(d) for d in event.occurrence_dates)
            if normalized
        })
        # Series span through their last occurrence so date range queries find them
        if occurrence_dates and occurrence_dates[-1] > end_date:
            end_date = occurrence_dates[-1]

        title = event.title.strip()[:self.MAX_TITLE_LENGTH]
        description = (event.description or '')[:self.MAX_DESCRIPTION_LENGTH]
        venue = (event.venue or '').strip()

        event_id = self.generate_event_id(
            title=title,
            start_date=start_date,
            venue=venue,
        )

        return CalendarEvent(
            event_id=event_id,
            title=title,
            description=description,
            start_date=start_date,
            start_time=start_time or '',
            end_date=end_date,
            end_time=end_time or '',
            venue_timezone=self._validate_timezone(event.venue_timezone),
            venue=venue,
            venue_address=(event.venue_address or '').strip(),
            ticket_url=event.ticket_url or None,
            price=price_formatter.normalize(event.price),
            performer=(event.performer or '').strip(),
            organizer=(event.organizer or '').strip(),
            source_url=event.source_url or None,
            occurrence_dates=occurrence_dates,
            term_names={
                taxonomy: [name.strip() for name in names if name and name.strip()]
                for taxonomy, names in (event.terms or {}).items()
            },
            last_updated=int(time.time()),
            ttl=self._calculate_ttl(occurrence_dates[-1] if occurrence_dates else end_date),
        )

    def _validate_required_fields(self, event: RawEvent) -> bool:
        """
        Validate that required fields are present and non-empty.

        Args:
            event: Event to validate

        Returns:
            True if valid, False otherwise
        """
        if not event.title or not event.title.strip():
            logger.warning("Event missing required field: title")
            return False

        if not event.start_date or not event.start_date.strip():
            logger.warning(f"Event '{event.title}' missing required field: start_date")
            return False

        return True

    def _normalize_date(self, date_str: str) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        for fmt in self.DATE_FORMATS:
            try:
                date_obj = datetime.strptime(date_str.strip(), fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def _normalize_time(self, time_str: str) -> Optional[str]:
        """
        Normalize time to 24-hour format (HH:MM:SS).

        Args:
            time_str: Time string in various formats

        Returns:
            24-hour formatted time string or None if parsing fails
        """
        time_str = re.sub(r'\s+', ' ', time_str.strip()).upper().replace('.', '')

        for fmt in self.TIME_FORMATS:
            try:
                time_obj = datetime.strptime(time_str, fmt)
                return time_obj.strftime('%H:%M:%S')
            except ValueError:
                continue

        logger.warning(f"Unparseable time '{time_str}', leaving empty")
        return None

    @staticmethod
    def _validate_timezone(tz_name: str) -> str:
        """Return the timezone name if valid, otherwise an empty string."""
        if not tz_name:
            return ''
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Dropping invalid timezone '{tz_name}'")
            return ''
        return tz_name

    def _calculate_ttl(self, last_date: str) -> int:
        """
        Calculate TTL as TTL_DAYS after the last day of the event.

        Args:
            last_date: ISO 8601 formatted date string (YYYY-MM-DD)

        Returns:
            Unix timestamp for TTL
        """
        date_obj = datetime.strptime(last_date, '%Y-%m-%d')
        ttl_date = date_obj + timedelta(days=self.TTL_DAYS)
        return int(ttl_date.timestamp())

    def generate_event_id(self, title: str, start_date: str, venue: str) -> str:
        """
        Generate a deterministic identifier for an event.

        Title and venue are normalized (case, whitespace, leading article) so
        the same show imported from two sources maps to one event.

        Args:
            title: Event title
            start_date: Event start date (ISO 8601 format)
            venue: Venue name

        Returns:
            Unique event ID (SHA256 hash)
        """
        composite = f"{normalize_text(title)}|{start_date}|{normalize_text(venue)}"
        return hashlib.sha256(composite.encode('utf-8')).hexdigest()


def normalize_text(text: str) -> str:
    """Lowercase, collapse whitespace and drop a leading article."""
    text = re.sub(r'\s+', ' ', (text or '').lower()).strip()
    return re.sub(r'^(the|a|an)\s+', '', text)
