"""Data models for event processing and calendar display."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


NO_END_TIME_SENTINEL = '23:59:59'


@dataclass
class RawEvent:
    """Raw event from an import source."""
    title: str
    start_date: str
    start_time: str = ''
    end_date: str = ''
    end_time: str = ''
    venue_timezone: str = ''
    description: str = ''
    venue: str = ''
    venue_address: str = ''
    ticket_url: Optional[str] = None
    price: str = ''
    performer: str = ''
    organizer: str = ''
    source_url: Optional[str] = None
    occurrence_dates: List[str] = field(default_factory=list)
    terms: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class CalendarEvent:
    """Validated and normalized event as stored in the events table."""
    event_id: str
    title: str
    start_date: str
    start_time: str = ''
    end_date: str = ''
    end_time: str = ''
    venue_timezone: str = ''
    description: str = ''
    venue: str = ''
    venue_address: str = ''
    ticket_url: Optional[str] = None
    price: str = ''
    performer: str = ''
    organizer: str = ''
    source_url: Optional[str] = None
    occurrence_dates: List[str] = field(default_factory=list)
    terms: Dict[str, List[int]] = field(default_factory=dict)
    term_names: Dict[str, List[str]] = field(default_factory=dict)
    status: str = 'publish'
    last_updated: int = 0
    ttl: int = 0

    @property
    def start_datetime(self) -> str:
        """Start as a sortable 'YYYY-MM-DD HH:MM:SS' string."""
        return f"{self.start_date} {self.start_time or '00:00:00'}"

    @property
    def end_datetime(self) -> str:
        """End as a sortable string; missing end time uses the sentinel."""
        end_date = self.end_date or self.start_date
        return f"{end_date} {self.end_time or NO_END_TIME_SENTINEL}"


@dataclass
class Taxonomy:
    """A classification axis for events (venue, genre, promoter...)."""
    name: str
    label: str
    hierarchical: bool = False
    public: bool = True


@dataclass
class Term:
    """Taxonomy term. Venue terms carry address and coordinate metadata."""
    taxonomy: str
    term_id: int
    name: str
    slug: str
    parent: int = 0
    address: str = ''
    coordinates: str = ''
    timezone: str = ''


@dataclass
class EventItem:
    """An event paired with its start datetime in the event timezone."""
    event: CalendarEvent
    start: datetime


@dataclass
class Occurrence:
    """One calendar-day instance of an event."""
    event: CalendarEvent
    start: datetime
    display_date: str
    is_multi_day: bool
    is_start_day: bool
    is_end_day: bool
    is_continuation: bool
    original_start_date: str
    original_end_date: str
    day_number: int
    total_days: int


@dataclass
class DateGroup:
    """Occurrences sharing a display date."""
    date_key: str
    date_obj: datetime
    events: List[Occurrence] = field(default_factory=list)


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int
    updated: int
    deleted: int
    errors: list[str]
