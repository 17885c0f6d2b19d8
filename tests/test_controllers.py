"""Tests for the API controllers."""
import json
from unittest.mock import Mock

import pytest

from api.calendar_controller import CalendarController, build_query_params, parse_radius
from api.filters_controller import FiltersController
from api.geocoding_controller import GeocodingController
from api.request import Request
from processor.models import Term
from processor.query_builder import TaxClause


def body(response):
    return json.loads(response['body'])


def test_build_query_params():
    """Test translation of calendar query parameters."""
    request = Request('GET', '/events/calendar', {
        'past': ['1'],
        'event_search': ['  jazz '],
        'date_start': ['2025-10-18'],
        'date_end': ['not-a-date'],
        'tax_filter[genre][]': ['3'],
        'archive_taxonomy': ['Venue'],
        'archive_term_id': ['12'],
        'lat': ['30.26'],
        'lng': ['-97.74'],
        'radius': ['10'],
        'radius_unit': ['km'],
    })

    params = build_query_params(request)

    assert params.show_past is True
    assert params.search_query == 'jazz'
    assert params.date_start == '2025-10-18'
    assert params.date_end == ''
    assert params.user_date_range is True
    assert params.tax_filters == {'genre': [3]}
    assert params.archive_taxonomy == 'venue'
    assert params.archive_term_id == 12
    assert (params.geo_lat, params.geo_lng, params.geo_radius, params.geo_radius_unit) == ('30.26', '-97.74', 10, 'km')
    assert params.source == 'api'


def test_build_query_params_defaults():
    params = build_query_params(Request('GET', '/events/calendar', {}))

    assert params.show_past is False
    assert params.user_date_range is False
    assert params.geo_radius == 25
    assert params.geo_radius_unit == 'mi'


def test_build_query_params_fractional_radius():
    params = build_query_params(Request('GET', '/events/calendar', {'radius': ['2.5']}))

    assert params.geo_radius == 2.5


@pytest.mark.parametrize('value', ['', 'wide', '0', '-3', 'nan'])
def test_parse_radius_falls_back_to_default(value):
    assert parse_radius(value) == 25.0


def test_calendar_controller_get():
    service = Mock()
    service.get_calendar_page.return_value = {'current_page': 2, 'max_pages': 3}
    request = Request('GET', '/events/calendar', {'paged': ['2'], 'scope': ['tonight'], 'include_html': ['0']})

    response = CalendarController(service).get(request)

    assert response['statusCode'] == 200
    assert body(response) == {'current_page': 2, 'max_pages': 3, 'success': True}
    kwargs = service.get_calendar_page.call_args.kwargs
    assert kwargs['page'] == 2
    assert kwargs['scope'] == 'tonight'
    assert kwargs['include_html'] is False
    assert kwargs['include_gaps'] is True
    assert kwargs['query_args'] == request.query


def test_calendar_controller_ignores_unknown_scope_and_bad_page():
    service = Mock()
    service.get_calendar_page.return_value = {}

    CalendarController(service).get(Request('GET', '/', {'paged': ['abc'], 'scope': ['someday']}))

    kwargs = service.get_calendar_page.call_args.kwargs
    assert kwargs['page'] == 1
    assert kwargs['scope'] == ''


@pytest.fixture
def filters_controller():
    counter = Mock()
    counter.get_all_taxonomies_with_counts.return_value = {
        'venue': {'label': 'Venues', 'name': 'venue', 'hierarchical': False, 'terms': []},
        'genre': {'label': 'Genres', 'name': 'genre', 'hierarchical': True, 'terms': []},
    }
    term_store = Mock()
    term_store.get_term.return_value = Term('venue', 12, 'Blue Room', 'blue-room')
    geo_query = Mock()
    geo_query.get_venue_ids_within_radius.return_value = [4, 5]
    return FiltersController(counter, term_store, geo_query, dependencies={'genre': 'venue'})


def test_filters_controller_basic(filters_controller):
    """Test the filter payload without archive or geo context."""
    request = Request('GET', '/events/filters', {'active[venue][]': ['4'], 'past': ['1']})

    payload = body(filters_controller.get(request))

    assert payload['success'] is True
    assert payload['taxonomies']['genre']['filtered'] is True
    assert payload['taxonomies']['venue']['filtered'] is False
    assert payload['dependencies'] == {'genre': 'venue'}
    assert payload['archive_context'] == {}
    assert payload['geo_context']['active'] is False
    assert payload['meta'] == {
        'context': 'modal',
        'active_filters': {'venue': [4]},
        'date_context': {'date_start': '', 'date_end': '', 'past': '1'},
    }
    kwargs = filters_controller.counter.get_all_taxonomies_with_counts.call_args.kwargs
    assert kwargs['tax_query_override'] is None


def test_filters_controller_archive_and_geo(filters_controller):
    """Archive and geo constraints are combined."""
    request = Request('GET', '/events/filters', {
        'archive_taxonomy': ['venue'],
        'archive_term_id': ['12'],
        'lat': ['30.26'],
        'lng': ['-97.74'],
        'radius': ['15'],
    })

    payload = body(filters_controller.get(request))

    assert payload['archive_context'] == {'taxonomy': 'venue', 'term_id': 12, 'term_name': 'Blue Room'}
    assert payload['geo_context'] == {
        'active': True, 'venue_count': 2, 'lat': 30.26, 'lng': -97.74, 'radius': 15.0, 'radius_unit': 'mi',
    }
    kwargs = filters_controller.counter.get_all_taxonomies_with_counts.call_args.kwargs
    assert kwargs['tax_query_override'] == [TaxClause('venue', [12]), TaxClause('venue', [4, 5])]


def test_build_geo_context_invalid(filters_controller):
    geo_context, clause = filters_controller.build_geo_context('200', '0', 'x', 'mi')

    assert clause is None
    assert geo_context['active'] is False
    assert geo_context['radius'] == 25.0


def test_build_geo_context_no_venues(filters_controller):
    filters_controller.geo_query.get_venue_ids_within_radius.return_value = []

    geo_context, clause = filters_controller.build_geo_context('30.26', '-97.74', '5', 'mi')

    assert geo_context['venue_count'] == 0
    assert clause == TaxClause('venue', [0])


def test_geocoding_controller():
    service = Mock()
    service.geocode.return_value = {'lat': '1', 'lng': '2', 'display_name': 'Main St', 'cached': False}

    response = GeocodingController(service).search(Request('GET', '/events/geocode', {'query': ['Main St']}))

    assert response['statusCode'] == 200
    assert body(response)['lat'] == '1'
    service.geocode.assert_called_once_with('Main St')


def test_geocoding_controller_error():
    service = Mock()
    service.geocode.return_value = {'error': 'Query must be at least 3 characters.'}

    response = GeocodingController(service).search(Request('GET', '/events/geocode', {'query': ['x']}))

    assert response['statusCode'] == 400
    assert body(response) == {
        'code': 'geocoding_failed',
        'message': 'Query must be at least 3 characters.',
        'data': {'status': 400},
    }
