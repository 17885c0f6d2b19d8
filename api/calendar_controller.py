"""GET /events/calendar: one rendered calendar page."""
import logging
import math
from typing import Any, Dict

from api.request import Request, clean_date, get_term_filters, json_response
from calendar_view.calendar_page import CalendarService
from processor.geo_query import GeoQuery
from processor.query_builder import QueryParams, absint, sanitize_key
from processor.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)


class CalendarController:
    """Translates calendar requests into CalendarService calls."""

    def __init__(self, calendar_service: CalendarService):
        self.calendar_service = calendar_service

    def get(self, request: Request) -> Dict[str, Any]:
        params = build_query_params(request)
        page = max(1, absint(request.get('paged', '1')) or 1)

        scope = sanitize_key(request.get('scope'))
        if not ScopeResolver.is_valid(scope):
            logger.info(f"Ignoring unknown scope '{scope}'")
            scope = ''

        result = self.calendar_service.get_calendar_page(
            params,
            page=page,
            scope=scope,
            include_html=request.get('include_html', '1') != '0',
            include_gaps=request.get('include_gaps', '1') != '0',
            query_args=request.query,
        )
        result['success'] = True
        return json_response(200, result)


def build_query_params(request: Request) -> QueryParams:
    """Read calendar filters from the query string."""
    date_start = clean_date(request.get('date_start'))
    date_end = clean_date(request.get('date_end'))

    return QueryParams(
        show_past=request.get('past') == '1',
        search_query=request.get('event_search').strip(),
        date_start=date_start,
        date_end=date_end,
        tax_filters=get_term_filters(request, 'tax_filter'),
        archive_taxonomy=sanitize_key(request.get('archive_taxonomy')),
        archive_term_id=absint(request.get('archive_term_id', '0')),
        source='api',
        user_date_range=bool(date_start or date_end),
        geo_lat=request.get('lat').strip(),
        geo_lng=request.get('lng').strip(),
        geo_radius=parse_radius(request.get('radius')),
        geo_radius_unit=sanitize_key(request.get('radius_unit', 'mi')) or 'mi',
    )


def parse_radius(value: str) -> float:
    """Search radius as a float; missing or non-positive values use the default."""
    try:
        radius = float(value)
    except (TypeError, ValueError):
        return float(GeoQuery.DEFAULT_RADIUS)
    if not math.isfinite(radius) or radius <= 0:
        return float(GeoQuery.DEFAULT_RADIUS)
    return radius
