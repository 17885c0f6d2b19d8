"""Display variables for rendering a single event occurrence."""
import html
import re
from datetime import date, datetime, time, tzinfo
from typing import Dict, Optional

from processor.models import CalendarEvent

UNICODE_ESCAPE = re.compile(r'\\u([0-9a-fA-F]{4})')


def build(event: CalendarEvent, event_tz: tzinfo, is_multi_day: bool = False,
          is_continuation: bool = False, show_price: bool = True,
          show_ticket_link: bool = True) -> Dict:
    """
    Build the display variables of an event.

    Args:
        event: Event being rendered
        event_tz: Timezone the event's wall-clock times are in
        is_multi_day: Event spans several calendar days
        is_continuation: Rendering a day after the event's first day
        show_price: Whether the price line is shown
        show_ticket_link: Whether the ticket link is shown

    Returns:
        Dict of formatted values and flags for the templates
    """
    formatted_time_display = ''
    iso_start_date = ''
    multi_day_label = ''

    start = _combine(event.start_date, event.start_time, event_tz)
    if start is not None:
        iso_start_date = start.isoformat()
        end_day = _parse_day(event.end_date)

        if is_multi_day and end_day is not None:
            if is_continuation:
                formatted_time_display = f'{format_short_date(start)} – {format_short_date(end_day)}'
            else:
                multi_day_label = f'through {format_short_date(end_day)}'
                formatted_time_display = format_time_range(start, event.start_time, event.end_date,
                                                           event.end_time, event_tz)
        else:
            # Each occurrence of a series runs on a single day
            end_date = event.start_date if event.occurrence_dates else event.end_date
            formatted_time_display = format_time_range(start, event.start_time, end_date,
                                                       event.end_time, event_tz)

    return {
        'formatted_time_display': formatted_time_display,
        'venue_name': decode_unicode(event.venue),
        'performer_name': decode_unicode(event.performer),
        'price': event.price,
        'ticket_url': event.ticket_url or '',
        'iso_start_date': iso_start_date,
        'show_performer': False,
        'show_price': show_price,
        'show_ticket_link': show_ticket_link,
        'multi_day_label': multi_day_label,
        'is_continuation': is_continuation,
        'is_multi_day': is_multi_day,
    }


def format_time_range(start: datetime, start_time: str, end_date: str, end_time: str,
                      event_tz: tzinfo) -> str:
    """
    Format a start/end time range.

    A shared AM/PM period is printed once ("7:00 - 9:00 PM"). Events ending
    on another day, or without a real end time, show the start time only.
    Events without a start time show nothing.
    """
    if not start_time:
        return ''

    start_formatted = format_time(start)
    if not end_date or not end_time or is_sentinel_end_time(end_time):
        return start_formatted

    end = _combine(end_date, end_time, event_tz)
    if end is None or end.date() != start.date():
        return start_formatted

    if _period(start) == _period(end):
        return f'{start.hour % 12 or 12}:{start.minute:02d} - {format_time(end)}'

    return f'{start_formatted} - {format_time(end)}'


def is_sentinel_end_time(value: str) -> bool:
    """23:59 is stored when an event has no real end time."""
    return value[:5] == '23:59'


def decode_unicode(value: str) -> str:
    """Decode literal \\uXXXX escapes left over from JSON imports."""
    return UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), value or '')


def format_time(value: datetime) -> str:
    """'7:00 PM' style time."""
    return f'{value.hour % 12 or 12}:{value.minute:02d} {_period(value)}'


def format_short_date(value) -> str:
    """'Oct 18' style date."""
    return f"{value.strftime('%b')} {value.day}"


def format_date_label(value) -> str:
    """'Saturday, October 18th' style date header."""
    return f"{value.strftime('%A, %B')} {value.day}{ordinal_suffix(value.day)}"


def ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return 'th'
    return {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')


def escape(value) -> str:
    return html.escape(str(value if value is not None else ''), quote=True)


def _period(value: datetime) -> str:
    return 'AM' if value.hour < 12 else 'PM'


def _parse_day(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None


def _combine(day: str, clock: str, event_tz: tzinfo) -> Optional[datetime]:
    parsed_day = _parse_day(day)
    if parsed_day is None:
        return None
    try:
        parsed_time = time.fromisoformat(clock) if clock else time()
    except ValueError:
        parsed_time = time()
    return datetime.combine(parsed_day, parsed_time, tzinfo=event_tz)
