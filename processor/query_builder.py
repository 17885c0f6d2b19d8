"""Translates calendar filter parameters into an event query."""
import logging
import operator
import re
from dataclasses import dataclass, field
from datetime import datetime
from functools import reduce
from typing import Dict, List, Optional, Union

from boto3.dynamodb.conditions import Attr

from processor.geo_query import GeoQuery
from processor.models import CalendarEvent

logger = logging.getLogger(__name__)


START_KEY = 'start_datetime'
END_KEY = 'end_datetime'

_COMPARATORS = {
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


@dataclass
class QueryParams:
    """Calendar query parameters, defaults as for an unfiltered upcoming view."""
    show_past: bool = False
    search_query: str = ''
    date_start: str = ''
    date_end: str = ''
    time_start: str = ''
    time_end: str = ''
    tax_filters: Dict[str, List[int]] = field(default_factory=dict)
    tax_query_override: Optional[List['TaxClause']] = None
    archive_taxonomy: str = ''
    archive_term_id: int = 0
    source: str = 'unknown'
    user_date_range: bool = False
    geo_lat: Union[str, float] = ''
    geo_lng: Union[str, float] = ''
    geo_radius: float = 25
    geo_radius_unit: str = 'mi'


@dataclass
class DateClause:
    """Comparison of a stored datetime attribute against a value."""
    key: str
    compare: str
    value: str

    def matches(self, event: CalendarEvent) -> bool:
        return _COMPARATORS[self.compare](getattr(event, self.key), self.value)

    def to_condition(self):
        attr = Attr(self.key)
        return {
            '<': attr.lt,
            '<=': attr.lte,
            '>': attr.gt,
            '>=': attr.gte,
        }[self.compare](self.value)


@dataclass
class AnyOf:
    """OR group of date clauses."""
    clauses: List[DateClause]

    def matches(self, event: CalendarEvent) -> bool:
        return any(clause.matches(event) for clause in self.clauses)

    def to_condition(self):
        return reduce(operator.or_, (clause.to_condition() for clause in self.clauses))


@dataclass
class TaxClause:
    """Event must carry at least one of the given terms in a taxonomy."""
    taxonomy: str
    terms: List[int]

    def matches(self, event: CalendarEvent) -> bool:
        event_terms = event.terms.get(self.taxonomy, [])
        return any(term_id in event_terms for term_id in self.terms)


@dataclass
class EventQuery:
    """Query evaluated against stored events."""
    order: str = 'ASC'
    status: str = 'publish'
    date_clauses: List[Union[DateClause, AnyOf]] = field(default_factory=list)
    tax_clauses: List[TaxClause] = field(default_factory=list)
    search: str = ''

    def matches(self, event: CalendarEvent) -> bool:
        """Check whether an event satisfies every clause of the query."""
        if event.status != self.status:
            return False
        if not all(clause.matches(event) for clause in self.date_clauses):
            return False
        if not all(clause.matches(event) for clause in self.tax_clauses):
            return False
        if self.search and not _matches_search(event, self.search):
            return False
        return True

    def to_filter_expression(self):
        """
        Render the status and date clauses as a DynamoDB filter expression.

        Taxonomy and search clauses are evaluated with matches().
        """
        conditions = [Attr('status').eq(self.status)]
        conditions.extend(clause.to_condition() for clause in self.date_clauses)
        return reduce(operator.and_, conditions)

    def sort(self, events: List[CalendarEvent]) -> List[CalendarEvent]:
        return sorted(events, key=lambda e: e.start_datetime, reverse=self.order == 'DESC')


class EventQueryBuilder:
    """Builds EventQuery objects from calendar filter parameters."""

    def __init__(self, site_tz, geo_query: Optional[GeoQuery] = None):
        """
        Initialize the builder.

        Args:
            site_tz: Site timezone used for "now" comparisons
            geo_query: Venue proximity search (geo filters ignored when None)
        """
        self.site_tz = site_tz
        self.geo_query = geo_query

    def build(self, params: QueryParams, now: Optional[datetime] = None) -> EventQuery:
        """
        Build a query for calendar events.

        Args:
            params: Query parameters
            now: Current site-local datetime

        Returns:
            EventQuery for the request
        """
        if now is None:
            now = datetime.now(self.site_tz)
        current_datetime = now.strftime('%Y-%m-%d %H:%M:%S')

        query = EventQuery(order='DESC' if params.show_past else 'ASC')

        if not params.user_date_range:
            query.date_clauses.append(DateClause(
                key=END_KEY,
                compare='<' if params.show_past else '>=',
                value=current_datetime,
            ))

        if params.date_start:
            start_datetime = f"{params.date_start} {params.time_start or '00:00:00'}"
            # Multi-day events that started before the boundary but run into it.
            query.date_clauses.append(AnyOf([
                DateClause(key=START_KEY, compare='>=', value=start_datetime),
                DateClause(key=END_KEY, compare='>=', value=start_datetime),
            ]))

        if params.date_end:
            end_datetime = f"{params.date_end} {params.time_end or '23:59:59'}"
            query.date_clauses.append(DateClause(key=START_KEY, compare='<=', value=end_datetime))

        base_constraint = params.tax_query_override
        if base_constraint is None and params.archive_taxonomy and params.archive_term_id:
            base_constraint = [TaxClause(
                taxonomy=sanitize_key(params.archive_taxonomy),
                terms=[int(params.archive_term_id)],
            )]
        if base_constraint:
            query.tax_clauses.extend(base_constraint)

        geo_clause = self.build_geo_clause(params)
        if geo_clause is not None:
            query.tax_clauses.append(geo_clause)

        for taxonomy, term_ids in (params.tax_filters or {}).items():
            if not isinstance(term_ids, (list, tuple)):
                term_ids = [term_ids]
            query.tax_clauses.append(TaxClause(
                taxonomy=sanitize_key(taxonomy),
                terms=[absint(term_id) for term_id in term_ids],
            ))

        if params.search_query:
            query.search = params.search_query

        return query

    def build_geo_clause(self, params: QueryParams) -> Optional[TaxClause]:
        """
        Venue constraint for a geo radius filter.

        Returns None when no (valid) coordinates are given. When no venue lies
        within the radius the clause targets term 0, forcing an empty result.
        """
        if self.geo_query is None or not params.geo_lat or not params.geo_lng:
            return None

        radius = params.geo_radius if params.geo_radius not in (None, '') else GeoQuery.DEFAULT_RADIUS
        if not GeoQuery.validate_params(params.geo_lat, params.geo_lng, radius):
            logger.info(f"Ignoring invalid geo filter {params.geo_lat},{params.geo_lng} r={radius}")
            return None

        venue_ids = self.geo_query.get_venue_ids_within_radius(
            float(params.geo_lat),
            float(params.geo_lng),
            float(radius),
            params.geo_radius_unit or 'mi',
        )
        return TaxClause(taxonomy='venue', terms=venue_ids or [0])


def sanitize_key(key: str) -> str:
    """Lowercase and strip everything outside [a-z0-9_-]."""
    return re.sub(r'[^a-z0-9_\-]', '', str(key).lower())


def absint(value) -> int:
    try:
        return abs(int(value))
    except (TypeError, ValueError):
        return 0


def _matches_search(event: CalendarEvent, search: str) -> bool:
    needle = search.lower()
    haystack = (event.title, event.description, event.venue, event.performer)
    return any(needle in (value or '').lower() for value in haystack)
