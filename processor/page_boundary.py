"""Pagination boundaries for date-grouped event calendars."""
import logging
import math
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from processor.date_grouper import DateGrouper
from processor.models import CalendarEvent
from processor.query_builder import EventQueryBuilder, QueryParams

logger = logging.getLogger(__name__)


class PageBoundary:
    """
    Splits the unique event dates of a query into pages.

    A page holds at least DAYS_PER_PAGE days AND at least
    MIN_EVENTS_FOR_PAGINATION events; days are never split across pages.
    """

    DAYS_PER_PAGE = 5
    MIN_EVENTS_FOR_PAGINATION = 20

    def __init__(self, event_store, query_builder: EventQueryBuilder,
                 grouper: DateGrouper, cache=None):
        """
        Initialize the page boundary calculator.

        Args:
            event_store: Object with find_events(EventQuery)
            query_builder: Builds the event query from parameters
            grouper: Expands events into their display dates
            cache: Optional CalendarCache
        """
        self.event_store = event_store
        self.query_builder = query_builder
        self.grouper = grouper
        self.cache = cache

    def get_unique_event_dates(self, params: QueryParams, now: datetime) -> Dict:
        """
        Get unique event dates for pagination (cached).

        Args:
            params: Query parameters
            now: Current site-local datetime

        Returns:
            Dict with 'dates', 'total_events' and 'events_per_date'
        """
        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.generate_key(asdict(params), 'dates')
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        query = self.query_builder.build(params, now=now)
        events = self.event_store.find_events(query)
        result = self.compute_unique_event_dates(events, params.show_past, now.date().isoformat())

        if self.cache is not None:
            self.cache.set(cache_key, result, self.cache.TTL_DATES)

        return result

    def compute_unique_event_dates(self, events: Iterable[CalendarEvent], show_past: bool,
                                   today: str) -> Dict:
        """
        Count events per display date.

        Multi-day and recurring events count once on every day they occupy.
        """
        events = list(events)
        events_per_date: Dict[str, int] = {}

        for event in events:
            if not event.start_date:
                continue
            for date_key in self.grouper.get_event_dates(event, show_past, today):
                events_per_date[date_key] = events_per_date.get(date_key, 0) + 1

        events_per_date = dict(sorted(events_per_date.items(), reverse=show_past))

        return {
            'dates': list(events_per_date.keys()),
            'total_events': len(events),
            'events_per_date': events_per_date,
        }

    @classmethod
    def get_date_boundaries_for_page(cls, unique_dates: List[str], page: int,
                                     total_events: int = 0,
                                     events_per_date: Optional[Dict[str, int]] = None) -> Dict:
        """
        Get date boundaries for a specific page.

        Args:
            unique_dates: Ordered list of unique dates
            page: Page number (1-based, clamped to the valid range)
            total_events: Total event count
            events_per_date: Event counts keyed by date

        Returns:
            Dict with 'start_date', 'end_date' and 'max_pages'
        """
        total_days = len(unique_dates)

        if total_days == 0:
            return {'start_date': '', 'end_date': '', 'max_pages': 0}

        if 0 < total_events < cls.MIN_EVENTS_FOR_PAGINATION:
            return {
                'start_date': unique_dates[0],
                'end_date': unique_dates[-1],
                'max_pages': 1,
            }

        if not events_per_date:
            max_pages = math.ceil(total_days / cls.DAYS_PER_PAGE)
            page = max(1, min(page, max_pages))
            start_index = (page - 1) * cls.DAYS_PER_PAGE
            end_index = min(start_index + cls.DAYS_PER_PAGE - 1, total_days - 1)
            return {
                'start_date': unique_dates[start_index],
                'end_date': unique_dates[end_index],
                'max_pages': max_pages,
            }

        page_boundaries = []
        current_page_start = 0
        cumulative_events = 0
        days_in_current_page = 0

        for i, date_key in enumerate(unique_dates):
            cumulative_events += events_per_date.get(date_key, 0)
            days_in_current_page += 1

            is_last_date = i == total_days - 1
            meets_minimums = (
                days_in_current_page >= cls.DAYS_PER_PAGE
                and cumulative_events >= cls.MIN_EVENTS_FOR_PAGINATION
            )

            if meets_minimums or is_last_date:
                page_boundaries.append((current_page_start, i))
                current_page_start = i + 1
                cumulative_events = 0
                days_in_current_page = 0

        max_pages = len(page_boundaries)
        page = max(1, min(page, max_pages))
        start, end = page_boundaries[page - 1]

        return {
            'start_date': unique_dates[start],
            'end_date': unique_dates[end],
            'max_pages': max_pages,
        }
