"""HTML rendering of date-grouped calendar events."""
import json
from datetime import date
from typing import Dict, List, Optional

from calendar_view import display_vars
from calendar_view.display_vars import escape
from calendar_view.pagination import build_query_string
from processor.models import CalendarEvent, DateGroup, Occurrence

LAZY_RENDER_THRESHOLD = 5

NO_EVENTS_HTML = (
    '<div class="data-machine-events-no-events">\n'
    '\t<p>No events found.</p>\n'
    '\t<p>\n'
    '\t\t<button type="button" class="data-machine-events-no-events-today-link">'
    'Show events from Today</button>\n'
    '\t</p>\n'
    '</div>'
)


def render_date_groups(date_groups: Dict[str, DateGroup], gaps: Optional[Dict[str, int]] = None,
                       include_gaps: bool = True) -> str:
    """
    Render grouped events.

    The first LAZY_RENDER_THRESHOLD events of each day are rendered in full;
    the rest are placeholders carrying their data as JSON for client-side
    hydration.

    Args:
        date_groups: Date key to DateGroup, in display order
        gaps: Date key to gap in days (from DateGrouper.detect_time_gaps)
        include_gaps: Whether to render time-gap separators

    Returns:
        HTML fragment
    """
    if not date_groups:
        return NO_EVENTS_HTML

    gaps = gaps or {}
    parts = []

    for date_key, group in date_groups.items():
        if include_gaps and date_key in gaps:
            parts.append(render_time_gap(gaps[date_key]))

        date_obj = group.date_obj
        day_of_week = date_obj.strftime('%A').lower()
        parts.append(
            f'<div class="datamachine-date-group datamachine-day-{day_of_week}" '
            f'data-date="{escape(date_key)}" data-events-count="{len(group.events)}">'
        )
        parts.append(
            f'<h3 class="datamachine-day-badge datamachine-day-badge-{day_of_week}">'
            f'{escape(display_vars.format_date_label(date_obj))}</h3>'
        )
        parts.append('<div class="datamachine-events-wrapper">')

        for index, occurrence in enumerate(group.events):
            event_vars = display_vars.build(
                occurrence.event,
                occurrence.start.tzinfo,
                is_multi_day=occurrence.is_multi_day,
                is_continuation=occurrence.is_continuation,
            )
            if index < LAZY_RENDER_THRESHOLD:
                parts.append(render_event_item(occurrence.event, event_vars))
            else:
                parts.append(render_event_placeholder(occurrence, event_vars))

        parts.append('</div><!-- .datamachine-events-wrapper -->')
        parts.append('</div><!-- .datamachine-date-group -->')

    return '\n'.join(parts)


def render_time_gap(gap_days: int) -> str:
    return (
        f'<div class="datamachine-time-gap-separator" data-gap-days="{int(gap_days)}">'
        f'<span class="datamachine-time-gap-label">{int(gap_days)} days later</span></div>'
    )


def render_event_item(event: CalendarEvent, event_vars: Dict) -> str:
    """Full event card."""
    link = event.source_url or event.ticket_url or ''
    ticket_url = event_vars['ticket_url']
    has_tickets = 'true' if event_vars['show_ticket_link'] and ticket_url else 'false'

    classes = ['datamachine-event-item']
    if event_vars['is_continuation']:
        classes.append('datamachine-event-continuation')
    if event_vars['is_multi_day']:
        classes.append('datamachine-event-multi-day')

    meta = []
    if event_vars['formatted_time_display']:
        meta.append(
            f'<div class="datamachine-event-time">{escape(event_vars["formatted_time_display"])}'
            + (f' <span class="datamachine-multi-day-label">{escape(event_vars["multi_day_label"])}</span>'
               if event_vars['multi_day_label'] else '')
            + '</div>'
        )
    if event_vars['venue_name']:
        meta.append(f'<div class="datamachine-event-venue">{escape(event_vars["venue_name"])}</div>')
    if event_vars['show_performer'] and event_vars['performer_name']:
        meta.append(f'<div class="datamachine-event-performer">{escape(event_vars["performer_name"])}</div>')
    if event_vars['show_price'] and event_vars['price']:
        meta.append(f'<div class="datamachine-event-price">{escape(event_vars["price"])}</div>')
    meta.append(f'<a href="{escape(link)}" class="datamachine-more-info-button">More Info</a>')

    return (
        f'<div class="{" ".join(classes)}" data-event-id="{escape(event.event_id)}" '
        f'data-title="{escape(event.title)}" '
        f'data-venue="{escape(event_vars["venue_name"])}" '
        f'data-performer="{escape(event_vars["performer_name"])}" '
        f'data-date="{escape(event_vars["iso_start_date"])}" '
        f'data-ticket-url="{escape(ticket_url)}" '
        f'data-has-tickets="{has_tickets}">'
        f'<div class="datamachine-event-link">'
        f'<h4 class="datamachine-event-title"><a href="{escape(link)}">{escape(event.title)}</a></h4>'
        f'<div class="datamachine-event-meta">{"".join(meta)}</div>'
        f'</div></div>'
    )


def render_event_placeholder(occurrence: Occurrence, event_vars: Dict) -> str:
    """Skeleton card with the event serialized into data-event-json."""
    event = occurrence.event
    placeholder_data = {
        'id': event.event_id,
        'title': event.title,
        'permalink': event.source_url or event.ticket_url or '',
        'event_data': {
            'startDate': event.start_date,
            'startTime': event.start_time,
            'endDate': event.end_date,
            'endTime': event.end_time,
            'venue': event.venue,
            'venueTimezone': event.venue_timezone,
            'performer': event.performer,
            'price': event.price,
            'ticketUrl': event.ticket_url or '',
        },
        'display_vars': event_vars,
        'display_context': {
            'display_date': occurrence.display_date,
            'is_multi_day': occurrence.is_multi_day,
            'is_start_day': occurrence.is_start_day,
            'is_end_day': occurrence.is_end_day,
            'is_continuation': occurrence.is_continuation,
            'day_number': occurrence.day_number,
            'total_days': occurrence.total_days,
        },
    }

    classes = ['datamachine-event-item', 'datamachine-event-placeholder']
    if event_vars['is_continuation']:
        classes.append('datamachine-event-continuation')
    if event_vars['is_multi_day']:
        classes.append('datamachine-event-multi-day')

    return (
        f'<div class="{" ".join(classes)}" data-event-json="{escape(json.dumps(placeholder_data))}">'
        '<div class="datamachine-placeholder-skeleton">'
        '<div class="datamachine-skeleton-badges"></div>'
        '<div class="datamachine-skeleton-title"></div>'
        '<div class="datamachine-skeleton-meta"></div>'
        '<div class="datamachine-skeleton-button"></div>'
        '</div></div>'
    )


def render_results_counter(page_start_date: str, page_end_date: str, event_count: int,
                           total_events: int) -> str:
    """
    'Viewing Dec 3 - Dec 7 (47 of 120 Events)'.

    The 'of N' part only appears when the page shows a subset; a single-day
    page shows one date. Empty when nothing is shown.
    """
    if not page_start_date or not page_end_date or not event_count:
        return ''

    formatted_start = display_vars.format_short_date(date.fromisoformat(page_start_date))
    formatted_end = display_vars.format_short_date(date.fromisoformat(page_end_date))
    is_same_day = page_start_date == page_end_date
    is_paginated = event_count < total_events
    event_label = 'Event' if total_events == 1 else 'Events'

    dates = formatted_start if is_same_day else f'{formatted_start} - {formatted_end}'
    counts = f'{event_count} of {total_events}' if is_paginated else f'{event_count}'

    return (
        '<div class="data-machine-events-results-counter">'
        f'Viewing {escape(dates)} ({counts} {event_label})'
        '</div>'
    )


def render_navigation(show_past: bool, past_count: int, future_count: int,
                      query_params: Optional[Dict[str, List[str]]] = None) -> str:
    """Link between the upcoming and past views, when the other view has events."""
    params = {
        key: value for key, value in (query_params or {}).items()
        if key not in ('past', 'paged')
    }

    if show_past and future_count > 0:
        href = '?' + build_query_string(params) if params else '?'
        link = f'<a href="{escape(href)}" class="data-machine-events-upcoming-link">Upcoming Events →</a>'
    elif not show_past and past_count > 0:
        href = '?' + build_query_string({**params, 'past': ['1']})
        link = f'<a href="{escape(href)}" class="data-machine-events-past-link">← Past Events</a>'
    else:
        return ''

    return f'<div class="data-machine-events-past-navigation">{link}</div>'
