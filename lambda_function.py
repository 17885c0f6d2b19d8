"""AWS Lambda handler for the events calendar: import sync and calendar API."""
import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List

from api.calendar_controller import CalendarController
from api.filters_controller import FiltersController
from api.geocoding_controller import GeocodingController
from api.request import Request, error_response
from app_config import Settings
from calendar_view.calendar_page import CalendarService
from importers.ics_feed import IcsFeedImporter
from importers.recurring_event import WeeklyRecurringImporter
from importers.structured_data import StructuredDataImporter
from processor.date_grouper import DateGrouper
from processor.event_processor import EventProcessor
from processor.geo_query import GeoQuery
from processor.multi_day import MultiDayResolver
from processor.page_boundary import PageBoundary
from processor.query_builder import EventQueryBuilder
from processor.taxonomy_counts import TaxonomyCounter
from services.geocoding import GeocodingService
from storage.calendar_cache import CalendarCache
from storage.dynamodb_manager import DynamoDBManager
from storage.term_store import TermStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def create_importer(source: Dict[str, Any], timeout: int):
    """
    Build an importer from an IMPORT_SOURCES entry.

    Raises:
        ValueError: For unknown source types
    """
    source_type = source.get('type', '')
    common = {
        'venue_name': source.get('venue_name', ''),
        'venue_address': source.get('venue_address', ''),
        'terms': source.get('terms') or {},
    }

    if source_type == 'ics':
        return IcsFeedImporter(feed_url=source['url'], timeout=timeout, **common)
    if source_type == 'structured_data':
        return StructuredDataImporter(page_url=source['url'], timeout=timeout, **common)
    if source_type == 'weekly':
        return WeeklyRecurringImporter(
            title=source.get('title', ''),
            day_of_week=source.get('day_of_week', 0),
            start_time=source.get('start_time', ''),
            end_time=source.get('end_time', ''),
            description=source.get('description', ''),
            expiration_date=source.get('expiration_date', ''),
            ticket_url=source.get('ticket_url', ''),
            price=source.get('price', ''),
            venue_timezone=source.get('venue_timezone', ''),
            search=source.get('search', ''),
            exclude_keywords=source.get('exclude_keywords', ''),
            as_series=bool(source.get('as_series', False)),
            **common,
        )

    raise ValueError(f"Unknown import source type: {source_type!r}")


def build_controllers(settings: Settings) -> Dict[str, Any]:
    """Wire storage, processing and controllers for an API request."""
    site_tz = settings.tz
    event_store = DynamoDBManager(table_name=settings.table_name)
    term_store = TermStore(table_name=settings.terms_table_name)
    cache = CalendarCache(table_name=settings.cache_table_name)

    geo_query = GeoQuery(term_store)
    query_builder = EventQueryBuilder(site_tz, geo_query=geo_query)
    grouper = DateGrouper(site_tz, MultiDayResolver(settings.next_day_cutoff))
    page_boundary = PageBoundary(event_store, query_builder, grouper, cache=cache)

    return {
        'calendar': CalendarController(
            CalendarService(event_store, query_builder, grouper, page_boundary, site_tz, cache=cache)
        ),
        'filters': FiltersController(
            TaxonomyCounter(event_store, term_store, settings.taxonomies, site_tz),
            term_store,
            geo_query,
            dependencies=settings.taxonomy_dependencies,
        ),
        'geocode': GeocodingController(
            GeocodingService(cache, settings.nominatim_user_agent, settings.timeout_seconds)
        ),
    }


ROUTES = {
    ('GET', '/events/calendar'): ('calendar', 'get'),
    ('GET', '/events/filters'): ('filters', 'get'),
    ('GET', '/events/geocode'): ('geocode', 'search'),
}


def handle_http(event: Dict[str, Any], settings: Settings) -> Dict[str, Any]:
    """Dispatch an API Gateway proxy event to its controller."""
    logger = logging.getLogger(__name__)
    request = Request.from_event(event)

    route = next(
        (target for (method, path), target in ROUTES.items()
         if request.method == method and request.path.endswith(path)),
        None
    )
    if route is None:
        logger.info(f"No route for {request.method} {request.path}")
        return error_response(404, 'rest_no_route', 'No route was found matching the URL and request method.')

    try:
        controller_name, action = route
        controller = build_controllers(settings)[controller_name]
        return getattr(controller, action)(request)
    except Exception as e:
        logger.error(
            f"Request {request.method} {request.path} failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, type(e).__name__, 'Internal server error')


def run_sync(settings: Settings) -> Dict[str, Any]:
    """
    Import every configured source and synchronize the events table.

    A failing source aborts the run before storage is touched, so events of
    that source are not deleted.
    """
    logger = logging.getLogger(__name__)
    start_time = time.time()
    logger.info(
        f"Lambda execution started",
        extra={
            'table_name': settings.table_name,
            'days_ahead': settings.days_ahead,
            'timeout_seconds': settings.timeout_seconds
        }
    )

    try:
        processor = EventProcessor()
        dynamodb_manager = DynamoDBManager(table_name=settings.table_name)
        term_store = TermStore(table_name=settings.terms_table_name)
        cache = CalendarCache(table_name=settings.cache_table_name)

        # Fetch events from every source with error handling
        raw_events: List = []
        try:
            for source in settings.import_sources:
                importer = create_importer(source, settings.timeout_seconds)
                logger.info(f"Fetching events from {source.get('type')} source")
                raw_events.extend(importer.fetch_events(days_ahead=settings.days_ahead))
            logger.info(f"Fetched {len(raw_events)} raw events from {len(settings.import_sources)} sources")
        except Exception as e:
            logger.error(
                f"Failed to fetch events from import sources after retries: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            duration = time.time() - start_time
            return {
                'statusCode': 500,
                'body': json.dumps({
                    'message': 'Failed to fetch calendar events',
                    'error': str(e),
                    'error_type': type(e).__name__,
                    'duration_seconds': round(duration, 2)
                })
            }

        # Process and validate events
        logger.info("Processing and validating events")
        processed_events = processor.process_events(raw_events)
        logger.info(f"Processed {len(processed_events)} valid events")

        # Synchronize with DynamoDB with error handling
        try:
            geocoder = None
            if settings.geocode_new_venues:
                geocoder = GeocodingService(cache, settings.nominatim_user_agent, settings.timeout_seconds)
            venues_geocoded = term_store.attach_venues(processed_events, geocoder=geocoder)

            logger.info("Synchronizing events with DynamoDB")
            window_start = datetime.now(settings.tz).strftime('%Y-%m-%d %H:%M:%S')
            sync_result = dynamodb_manager.sync_events(processed_events, window_start=window_start)
        except Exception as e:
            logger.error(
                f"Error during DynamoDB sync operation: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            duration = time.time() - start_time
            return {
                'statusCode': 500,
                'body': json.dumps({
                    'message': 'Failed to sync events with DynamoDB',
                    'error': str(e),
                    'error_type': type(e).__name__,
                    'note': 'Previous events remain in DynamoDB',
                    'duration_seconds': round(duration, 2)
                })
            }

        try:
            cache.invalidate_all()
        except Exception as e:
            logger.error(
                f"Failed to invalidate calendar cache after sync: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            sync_result.errors.append(f"Cache invalidation failed: {e}")

        duration = time.time() - start_time

        logger.info(
            f"Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_added': sync_result.added,
                'events_updated': sync_result.updated,
                'events_deleted': sync_result.deleted,
                'errors': sync_result.errors
            }
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'statistics': {
                    'raw_events_fetched': len(raw_events),
                    'valid_events_processed': len(processed_events),
                    'venues_geocoded': venues_geocoded,
                    'events_added': sync_result.added,
                    'events_updated': sync_result.updated,
                    'events_deleted': sync_result.deleted,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    API Gateway proxy events are routed to the calendar API; any other
    event (EventBridge schedule) runs the import sync.

    Args:
        event: API Gateway or EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    if is_http_event(event):
        return handle_http(event, settings)

    return run_sync(settings)


def is_http_event(event: Dict[str, Any]) -> bool:
    return isinstance(event, dict) and (
        'httpMethod' in event or 'http' in (event.get('requestContext') or {})
    )
