"""Unit tests for the calendar event query builder."""
from datetime import datetime
from unittest.mock import Mock
from zoneinfo import ZoneInfo

import pytest

from processor.query_builder import (
    AnyOf, DateClause, EventQuery, EventQueryBuilder, QueryParams, TaxClause, absint, sanitize_key
)


SITE_TZ = ZoneInfo('America/New_York')
NOW = datetime(2025, 10, 18, 14, 30, 0, tzinfo=SITE_TZ)


@pytest.fixture
def builder():
    return EventQueryBuilder(SITE_TZ)


def test_upcoming_query_compares_end_against_now(builder):
    """The default view shows events that have not ended yet, ascending."""
    query = builder.build(QueryParams(), now=NOW)

    assert query.order == 'ASC'
    assert query.date_clauses == [DateClause('end_datetime', '>=', '2025-10-18 14:30:00')]
    assert query.tax_clauses == []


def test_past_query_is_descending(builder):
    query = builder.build(QueryParams(show_past=True), now=NOW)

    assert query.order == 'DESC'
    assert query.date_clauses == [DateClause('end_datetime', '<', '2025-10-18 14:30:00')]


def test_date_range_with_times(builder):
    """Explicit date ranges include events that run into the start boundary."""
    params = QueryParams(
        date_start='2025-10-18', date_end='2025-10-19',
        time_start='17:00:00', time_end='03:59:59', user_date_range=True,
    )

    query = builder.build(params, now=NOW)

    assert query.date_clauses == [
        AnyOf([
            DateClause('start_datetime', '>=', '2025-10-18 17:00:00'),
            DateClause('end_datetime', '>=', '2025-10-18 17:00:00'),
        ]),
        DateClause('start_datetime', '<=', '2025-10-19 03:59:59'),
    ]


def test_date_range_defaults_to_whole_days(builder):
    params = QueryParams(date_start='2025-10-18', date_end='2025-10-20')

    query = builder.build(params, now=NOW)

    assert query.date_clauses[1].clauses[0].value == '2025-10-18 00:00:00'
    assert query.date_clauses[2].value == '2025-10-20 23:59:59'


def test_taxonomy_filters(builder):
    """Each filtered taxonomy becomes its own clause (AND across taxonomies)."""
    params = QueryParams(tax_filters={'Genre': ['3', '-4'], 'venue': 7})

    query = builder.build(params, now=NOW)

    assert query.tax_clauses == [TaxClause('genre', [3, 4]), TaxClause('venue', [7])]


def test_archive_constraint(builder):
    params = QueryParams(archive_taxonomy='venue', archive_term_id=12)

    query = builder.build(params, now=NOW)

    assert query.tax_clauses == [TaxClause('venue', [12])]


def test_override_replaces_archive_constraint(builder):
    override = [TaxClause('promoter', [5])]
    params = QueryParams(archive_taxonomy='venue', archive_term_id=12, tax_query_override=override)

    query = builder.build(params, now=NOW)

    assert query.tax_clauses == override


def test_search_query(builder):
    query = builder.build(QueryParams(search_query='jazz'), now=NOW)
    assert query.search == 'jazz'


def test_geo_clause_restricts_to_nearby_venues():
    """Test that a geo filter becomes a venue clause."""
    geo_query = Mock()
    geo_query.get_venue_ids_within_radius.return_value = [1, 2]
    builder = EventQueryBuilder(SITE_TZ, geo_query=geo_query)

    query = builder.build(QueryParams(geo_lat='30.26', geo_lng='-97.74', geo_radius=10), now=NOW)

    assert query.tax_clauses == [TaxClause('venue', [1, 2])]
    geo_query.get_venue_ids_within_radius.assert_called_once_with(30.26, -97.74, 10.0, 'mi')


def test_geo_clause_with_no_venues_matches_nothing():
    geo_query = Mock()
    geo_query.get_venue_ids_within_radius.return_value = []
    builder = EventQueryBuilder(SITE_TZ, geo_query=geo_query)

    clause = builder.build_geo_clause(QueryParams(geo_lat='30.26', geo_lng='-97.74'))

    assert clause == TaxClause('venue', [0])


def test_invalid_geo_params_ignored():
    geo_query = Mock()
    builder = EventQueryBuilder(SITE_TZ, geo_query=geo_query)

    assert builder.build_geo_clause(QueryParams(geo_lat='999', geo_lng='0')) is None
    assert builder.build_geo_clause(QueryParams()) is None
    geo_query.get_venue_ids_within_radius.assert_not_called()


def test_event_query_matches(make_event):
    """Test in-memory evaluation of every clause type."""
    query = EventQuery(
        date_clauses=[DateClause('end_datetime', '>=', '2025-10-18 00:00:00')],
        tax_clauses=[TaxClause('genre', [3])],
        search='blue',
    )

    matching = make_event(title='Blue Note Jazz', terms={'genre': [3, 9]})

    assert query.matches(matching)
    assert not query.matches(make_event(title='Blue Note Jazz', terms={'genre': [9]}))
    assert not query.matches(make_event(title='Red Hot', terms={'genre': [3]}))
    assert not query.matches(make_event(
        title='Blue Note Jazz', terms={'genre': [3]}, start_date='2025-10-01', end_date='2025-10-01'
    ))
    assert not query.matches(make_event(title='Blue Note Jazz', terms={'genre': [3]}, status='draft'))


def test_search_matches_venue(make_event):
    query = EventQuery(search='ROOM')
    assert query.matches(make_event(venue='The Blue Room'))


def test_event_query_sort(make_event):
    early = make_event(start_time='10:00:00')
    late = make_event(start_time='20:00:00')
    next_day = make_event(start_date='2025-10-19')

    assert EventQuery().sort([next_day, late, early]) == [early, late, next_day]
    assert EventQuery(order='DESC').sort([early, next_day, late]) == [next_day, late, early]


def test_to_filter_expression_builds_condition():
    query = EventQuery(date_clauses=[
        DateClause('end_datetime', '>=', '2025-10-18 00:00:00'),
        AnyOf([
            DateClause('start_datetime', '>=', '2025-10-18 00:00:00'),
            DateClause('end_datetime', '>=', '2025-10-18 00:00:00'),
        ]),
    ])

    expression = query.to_filter_expression()

    assert expression.expression_operator == 'AND'


def test_sanitize_key():
    assert sanitize_key('Genre Type!') == 'genretype'
    assert sanitize_key('this-weekend') == 'this-weekend'


def test_absint():
    assert absint('-5') == 5
    assert absint('x') == 0
    assert absint(None) == 0
