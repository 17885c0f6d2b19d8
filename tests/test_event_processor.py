"""Unit tests for EventProcessor."""
from datetime import datetime, timedelta

from processor.event_processor import EventProcessor, normalize_text
from processor.models import RawEvent


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_process_events_valid_event(self):
        """Test processing a valid event."""
        processor = EventProcessor()

        raw_events = [
            RawEvent(
                title="Live Music Night",
                start_date="2025-10-18",
                start_time="7:00 PM",
                end_time="21:00",
                venue="The Blue Room",
                venue_address="123 Main St, Austin, TX",
                venue_timezone="America/Chicago",
                description="Enjoy live entertainment",
                price="$10 - $15",
                ticket_url="https://example.com/tickets/123",
                terms={'genre': ['Jazz', ' ']},
            )
        ]

        processed = processor.process_events(raw_events)

        assert len(processed) == 1
        event = processed[0]

        assert event.title == "Live Music Night"
        assert event.start_date == "2025-10-18"
        assert event.end_date == "2025-10-18"
        assert event.start_time == "19:00:00"
        assert event.end_time == "21:00:00"
        assert event.venue == "The Blue Room"
        assert event.venue_timezone == "America/Chicago"
        assert event.price == "$10.00 - $15.00"
        assert event.ticket_url == "https://example.com/tickets/123"
        assert event.term_names == {'genre': ['Jazz']}
        assert event.status == 'publish'
        assert event.event_id is not None
        assert event.last_updated > 0
        assert event.ttl > 0

    def test_process_events_missing_required_fields(self):
        """Test that events with missing required fields are skipped."""
        processor = EventProcessor()

        raw_events = [
            RawEvent(title="", start_date="2025-10-18"),
            RawEvent(title="No Date", start_date=""),
            RawEvent(title="Valid Event", start_date="2025-10-18"),
        ]

        processed = processor.process_events(raw_events)

        assert len(processed) == 1
        assert processed[0].title == "Valid Event"

    def test_generate_event_id_consistency(self):
        """Test that the same event always gets the same identifier."""
        processor = EventProcessor()

        id1 = processor.generate_event_id("Live Music", "2025-10-18", "Blue Room")
        id2 = processor.generate_event_id("Live Music", "2025-10-18", "Blue Room")

        assert id1 == id2
        assert len(id1) == 64

    def test_generate_event_id_normalizes_text(self):
        """Case, whitespace and leading articles do not change the identifier."""
        processor = EventProcessor()

        id1 = processor.generate_event_id("The  Live Music", "2025-10-18", "Blue Room")
        id2 = processor.generate_event_id("live music", "2025-10-18", "  blue room ")

        assert id1 == id2

    def test_generate_event_id_uniqueness(self):
        """Test that different events get different identifiers."""
        processor = EventProcessor()

        base = processor.generate_event_id("Live Music", "2025-10-18", "Blue Room")

        assert processor.generate_event_id("Live Music", "2025-10-19", "Blue Room") != base
        assert processor.generate_event_id("Live Music", "2025-10-18", "Red Room") != base
        assert processor.generate_event_id("Comedy Night", "2025-10-18", "Blue Room") != base

    def test_normalize_date_formats(self):
        """Test the accepted date formats."""
        processor = EventProcessor()

        assert processor._normalize_date("2025-10-18") == "2025-10-18"
        assert processor._normalize_date("10/18/2025") == "2025-10-18"
        assert processor._normalize_date("October 18, 2025") == "2025-10-18"
        assert processor._normalize_date("Oct 18, 2025") == "2025-10-18"
        assert processor._normalize_date("18th of Octember") is None

    def test_normalize_time_formats(self):
        """Test the accepted time formats."""
        processor = EventProcessor()

        assert processor._normalize_time("19:30") == "19:30:00"
        assert processor._normalize_time("7:30 PM") == "19:30:00"
        assert processor._normalize_time("7:30pm") == "19:30:00"
        assert processor._normalize_time("7 p.m.") == "19:00:00"
        assert processor._normalize_time("12:00 AM") == "00:00:00"
        assert processor._normalize_time("late") is None

    def test_calculate_ttl(self):
        """TTL is TTL_DAYS after the last day of the event."""
        processor = EventProcessor()

        ttl = processor._calculate_ttl("2025-10-18")

        expected = int((datetime(2025, 10, 18) + timedelta(days=EventProcessor.TTL_DAYS)).timestamp())
        assert ttl == expected

    def test_ttl_uses_last_occurrence(self):
        """Series events expire after their last occurrence."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(
                title="Weekly Trivia",
                start_date="2025-10-01",
                occurrence_dates=["2025-10-15", "bad", "2025-10-01", "2025-10-08"],
            )
        ])

        event = processed[0]
        assert event.occurrence_dates == ["2025-10-01", "2025-10-08", "2025-10-15"]
        assert event.ttl == processor._calculate_ttl("2025-10-15")

    def test_series_spans_through_last_occurrence(self):
        """A series ends on its last occurrence so later dates can be queried."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(
                title="Weekly Trivia",
                start_date="2025-10-24",
                end_date="2025-10-24",
                occurrence_dates=["2025-10-24", "2025-10-31", "2025-11-07", "2025-11-14"],
            )
        ])

        event = processed[0]
        assert event.start_date == "2025-10-24"
        assert event.end_date == "2025-11-14"

    def test_process_events_truncates_long_fields(self):
        """Test that long title and description are truncated."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="A" * 300, start_date="2025-10-18", description="B" * 3000)
        ])

        assert len(processed[0].title) == EventProcessor.MAX_TITLE_LENGTH
        assert len(processed[0].description) == EventProcessor.MAX_DESCRIPTION_LENGTH

    def test_end_date_before_start_falls_back_to_start(self):
        """An end date earlier than the start date is replaced by the start date."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Backwards", start_date="2025-10-18", end_date="2025-10-10")
        ])

        assert processed[0].end_date == "2025-10-18"

    def test_multi_day_event_keeps_end_date(self):
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Festival", start_date="2025-02-27", end_date="2025-03-01")
        ])

        assert processed[0].end_date == "2025-03-01"

    def test_process_events_skips_invalid_dates(self):
        """Test that events with unparseable dates are skipped."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Bad Date", start_date="sometime soon")
        ])

        assert processed == []

    def test_invalid_time_is_left_empty(self):
        """Unparseable times are dropped rather than failing the event."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Doors Whenever", start_date="2025-10-18", start_time="doors at dusk")
        ])

        assert processed[0].start_time == ''

    def test_invalid_timezone_is_dropped(self):
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Somewhere", start_date="2025-10-18", venue_timezone="Mars/Olympus")
        ])

        assert processed[0].venue_timezone == ''

    def test_duplicate_events_keep_first(self):
        """The same show from two sources is stored once."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Live Music", start_date="2025-10-18", venue="Blue Room", price="$10"),
            RawEvent(title="The Live Music", start_date="2025-10-18", venue="blue room", price="$20"),
        ])

        assert len(processed) == 1
        assert processed[0].price == "$10.00"

    def test_process_events_multiple_valid_and_invalid(self):
        """Test processing a mix of valid and invalid events."""
        processor = EventProcessor()

        processed = processor.process_events([
            RawEvent(title="Valid 1", start_date="2025-10-18"),
            RawEvent(title="", start_date="2025-10-18"),
            RawEvent(title="Valid 2", start_date="10/19/2025"),
            RawEvent(title="Invalid", start_date="not a date"),
        ])

        assert [event.title for event in processed] == ["Valid 1", "Valid 2"]


def test_normalize_text():
    """Test title and venue normalization."""
    assert normalize_text("  The   Blue Room ") == "blue room"
    assert normalize_text("An Evening") == "evening"
    assert normalize_text("Theater") == "theater"
    assert normalize_text("") == ""
