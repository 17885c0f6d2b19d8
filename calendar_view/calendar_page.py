"""Assembles one page of the date-grouped event calendar."""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from calendar_view import event_renderer, pagination
from processor.date_grouper import DateGrouper
from processor.page_boundary import PageBoundary
from processor.query_builder import EventQueryBuilder, QueryParams
from processor.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)


class CalendarService:
    """Runs the calendar pipeline: scope, pagination, query, grouping, rendering."""

    def __init__(self, event_store, query_builder: EventQueryBuilder, grouper: DateGrouper,
                 page_boundary: PageBoundary, site_tz, cache=None):
        """
        Initialize the calendar service.

        Args:
            event_store: Object with find_events(EventQuery) and count_events(now)
            query_builder: Builds event queries from parameters
            grouper: Groups events by display date
            page_boundary: Computes unique dates and page boundaries
            site_tz: Site timezone
            cache: Optional CalendarCache for past/future counts
        """
        self.event_store = event_store
        self.query_builder = query_builder
        self.grouper = grouper
        self.page_boundary = page_boundary
        self.site_tz = site_tz
        self.cache = cache

    def get_calendar_page(self, params: QueryParams, page: int = 1, scope: str = '',
                          include_html: bool = True, include_gaps: bool = True,
                          query_args: Optional[Dict[str, List[str]]] = None,
                          now: Optional[datetime] = None) -> Dict:
        """
        Build one calendar page.

        Explicit date filters override the scope. A scope's time bounds only
        apply on the page that contains the scope's first or last day.

        Args:
            params: Query parameters from the request
            page: Requested page (clamped to the available pages)
            scope: Named scope ('today', 'tonight', 'this-weekend', 'this-week')
            include_html: Whether to render HTML fragments
            include_gaps: Whether to render time-gap separators
            query_args: Raw request query parameters, preserved in links
            now: Current site-local datetime

        Returns:
            Dict with current_page, max_pages, total_event_count, event_count,
            event_counts, date_boundaries and (optionally) html
        """
        now = now or datetime.now(self.site_tz)
        today = now.date().isoformat()

        bounds = None
        if scope and not params.date_start and not params.date_end:
            bounds = ScopeResolver.resolve(scope, now)
            if bounds is not None:
                params = replace(
                    params,
                    date_start=bounds.date_start,
                    date_end=bounds.date_end,
                    time_start=bounds.time_start,
                    time_end=bounds.time_end,
                )
                logger.debug(f"Scope '{scope}' resolved to {bounds}")

        unique = self.page_boundary.get_unique_event_dates(params, now)
        boundaries = PageBoundary.get_date_boundaries_for_page(
            unique['dates'], page, unique['total_events'], unique['events_per_date']
        )
        max_pages = boundaries['max_pages']
        current_page = max(1, min(page, max_pages or 1))

        events = []
        date_groups = {}
        page_start = page_end = ''

        if boundaries['start_date']:
            page_start, page_end = sorted((boundaries['start_date'], boundaries['end_date']))
            page_params = replace(
                params,
                date_start=page_start,
                date_end=page_end,
                time_start=params.time_start if bounds and page_start == bounds.date_start else '',
                time_end=params.time_end if bounds and page_end == bounds.date_end else '',
            )
            events = self.event_store.find_events(self.query_builder.build(page_params, now=now))
            paged_events = self.grouper.build_paged_events(events)
            date_groups = self.grouper.group_events_by_date(
                paged_events, params.show_past, page_start, page_end, today
            )

        event_counts = self.get_event_counts(now)

        result = {
            'current_page': current_page,
            'max_pages': max_pages,
            'total_event_count': unique['total_events'],
            'event_count': len(events),
            'event_counts': event_counts,
            'date_boundaries': {'start_date': page_start, 'end_date': page_end},
        }

        if include_html:
            gaps = DateGrouper.detect_time_gaps(date_groups) if include_gaps else {}
            counter_start, counter_end = (
                (page_end, page_start) if params.show_past else (page_start, page_end)
            )
            result['html'] = {
                'events': event_renderer.render_date_groups(date_groups, gaps, include_gaps),
                'counter': event_renderer.render_results_counter(
                    counter_start, counter_end, len(events), unique['total_events']
                ),
                'pagination': pagination.render_pagination(current_page, max_pages, query_args),
                'navigation': event_renderer.render_navigation(
                    params.show_past, event_counts['past'], event_counts['future'], query_args
                ),
            }

        logger.info(
            f"Calendar page {current_page}/{max_pages}: {len(events)} events "
            f"in {len(date_groups)} days ({params.source})"
        )
        return result

    def get_event_counts(self, now: datetime) -> Dict[str, int]:
        """Past and upcoming event counts, cached for TTL_COUNTS."""
        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.generate_key({}, 'counts')
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        counts = self.event_store.count_events(now.strftime('%Y-%m-%d %H:%M:%S'))

        if self.cache is not None:
            self.cache.set(cache_key, counts, self.cache.TTL_COUNTS)

        return counts
