"""Importer for schema.org Event JSON-LD embedded in venue web pages."""
import json
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup
from dateutil.parser import isoparse

from importers.fetch import fetch_text
from processor import price_formatter
from processor.models import RawEvent

logger = logging.getLogger(__name__)


class StructuredDataImporter:
    """Scraper for pages that publish their events as JSON-LD."""

    def __init__(self, page_url: str, timeout: int = 30, venue_name: str = '',
                 venue_address: str = '', terms: Optional[Dict[str, List[str]]] = None):
        """
        Initialize the structured data importer.

        Args:
            page_url: Page carrying <script type="application/ld+json"> blocks
            timeout: HTTP request timeout in seconds
            venue_name: Venue override for every event on the page
            venue_address: Venue address override
            terms: Taxonomy term names applied to every event
        """
        self.page_url = page_url
        self.timeout = timeout
        self.venue_name = venue_name
        self.venue_address = venue_address
        self.terms = terms or {}

    def fetch_events(self, days_ahead: int = 90, now: Optional[datetime] = None) -> List[RawEvent]:
        """
        Fetch the page and extract its events.

        Args:
            days_ahead: Import horizon in days; later events are dropped
            now: Reference time (defaults to the current time)

        Returns:
            List of RawEvent objects
        """
        logger.info(f"Fetching structured data from {self.page_url}")
        html_content = fetch_text(self.page_url, timeout=self.timeout)
        events = self.parse_events(html_content)

        now = now or datetime.now()
        today = now.date().isoformat()
        horizon = (now.date() + timedelta(days=days_ahead)).isoformat()
        events = [
            event for event in events
            if (event.end_date or event.start_date) >= today and event.start_date <= horizon
        ]

        logger.info(f"Successfully fetched {len(events)} events from {self.page_url}")
        return events

    def parse_events(self, html_content: str) -> List[RawEvent]:
        """
        Parse events from the page's JSON-LD blocks.

        Args:
            html_content: HTML content of the page

        Returns:
            List of RawEvent objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        events = []

        for script in soup.find_all('script', type='application/ld+json'):
            try:
                data = json.loads(script.string or '')
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed JSON-LD block on {self.page_url}: {e}")
                continue

            for node in _walk_events(data):
                try:
                    event = self._parse_event_node(node)
                    if event:
                        events.append(event)
                except (ValueError, TypeError, OverflowError) as e:
                    logger.warning(f"Failed to parse event '{node.get('name', '')}': {e}")
                    continue

        return events

    def _parse_event_node(self, node: Dict) -> Optional[RawEvent]:
        title = _text(node.get('name'))
        if not title or not node.get('startDate'):
            logger.warning(f"Skipping event without name or startDate on {self.page_url}")
            return None

        start_date, start_time = _split_datetime(node['startDate'])
        end_date, end_time = _split_datetime(node['endDate']) if node.get('endDate') else ('', '')

        venue, venue_address = _parse_location(node.get('location'))
        offers = node.get('offers') or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}

        return RawEvent(
            title=title,
            start_date=start_date,
            start_time=start_time,
            end_date=end_date,
            end_time=end_time,
            description=_text(node.get('description')),
            venue=self.venue_name or venue,
            venue_address=self.venue_address or venue_address,
            ticket_url=offers.get('url') or node.get('url') or None,
            price=_parse_price(offers),
            performer=_names(node.get('performer')),
            organizer=_names(node.get('organizer')),
            source_url=node.get('url') or self.page_url,
            terms={taxonomy: list(names) for taxonomy, names in self.terms.items()},
        )


def _walk_events(data) -> Iterator[Dict]:
    """Yield every node whose @type is Event or an Event subtype."""
    if isinstance(data, list):
        for item in data:
            yield from _walk_events(item)
        return
    if not isinstance(data, dict):
        return

    node_type = data.get('@type', '')
    types = node_type if isinstance(node_type, list) else [node_type]
    if any(isinstance(t, str) and t.endswith('Event') for t in types):
        yield data
        return

    if '@graph' in data:
        yield from _walk_events(data['@graph'])
    if data.get('@type') == 'ItemList':
        for element in data.get('itemListElement', []):
            yield from _walk_events(element.get('item', element) if isinstance(element, dict) else element)


def _split_datetime(value: str) -> Tuple[str, str]:
    """Wall-clock date and time as written; date-only values have no time."""
    value = str(value).strip()
    parsed = isoparse(value)
    if len(value) <= 10:
        return parsed.strftime('%Y-%m-%d'), ''
    return parsed.strftime('%Y-%m-%d'), parsed.strftime('%H:%M')


def _parse_location(location) -> Tuple[str, str]:
    if isinstance(location, list):
        location = location[0] if location else None
    if not location:
        return '', ''
    if isinstance(location, str):
        return location.strip(), ''

    name = _text(location.get('name'))
    address = location.get('address') or ''
    if isinstance(address, dict):
        parts = [
            address.get('streetAddress'),
            address.get('addressLocality'),
            address.get('addressRegion'),
            address.get('postalCode'),
        ]
        address = ', '.join(str(part).strip() for part in parts if part)
    return name, str(address).strip()


def _parse_price(offers: Dict) -> str:
    if not offers:
        return ''
    low = offers.get('lowPrice', offers.get('price'))
    high = offers.get('highPrice')
    if low in (None, '') and high in (None, ''):
        return ''
    if str(low) in ('0', '0.0', '0.00') and high in (None, ''):
        return 'Free'
    try:
        return price_formatter.format_range(
            float(low) if low not in (None, '') else None,
            float(high) if high not in (None, '') else None,
        )
    except (TypeError, ValueError):
        return str(low)


def _names(value) -> str:
    if not value:
        return ''
    if isinstance(value, list):
        return ', '.join(name for name in (_names(item) for item in value) if name)
    if isinstance(value, dict):
        return _text(value.get('name'))
    return _text(value)


def _text(value) -> str:
    if value is None:
        return ''
    return BeautifulSoup(str(value), 'html.parser').get_text(' ', strip=True)
