"""DynamoDB storage for taxonomy terms (venues, genres, promoters)."""
import logging
import re
import time
from typing import Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from processor.geo_query import filter_venues
from processor.models import CalendarEvent, Term

logger = logging.getLogger(__name__)


class TermStore:
    """Terms table keyed by taxonomy (hash) and numeric term_id (range)."""

    VENUE_TAXONOMY = 'venue'
    GEOCODE_RATE_LIMIT_SECONDS = 2

    def __init__(self, table_name: str):
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        self._terms: Dict[str, List[Term]] = {}
        logger.info(f"Initialized TermStore for table: {table_name}")

    def list_terms(self, taxonomy: str) -> List[Term]:
        """
        List every term of a taxonomy.

        Results are memoized per instance; writes through this store keep
        the memo current.
        """
        if taxonomy in self._terms:
            return list(self._terms[taxonomy])

        try:
            response = self.table.query(KeyConditionExpression=Key('taxonomy').eq(taxonomy))
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    KeyConditionExpression=Key('taxonomy').eq(taxonomy),
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error listing terms for taxonomy '{taxonomy}': {e}")
            raise

        terms = [self._item_to_term(item) for item in items]
        self._terms[taxonomy] = terms
        return list(terms)

    def get_term(self, taxonomy: str, term_id: int) -> Optional[Term]:
        for term in self.list_terms(taxonomy):
            if term.term_id == int(term_id):
                return term
        return None

    def ensure_term(self, taxonomy: str, name: str, parent: int = 0,
                    address: str = '', timezone: str = '') -> Term:
        """
        Find a term by slug, creating it when missing.

        Args:
            taxonomy: Taxonomy name
            name: Term display name
            parent: Parent term id for hierarchical taxonomies
            address: Venue street address
            timezone: Venue IANA timezone

        Returns:
            The existing or newly created Term
        """
        slug = slugify(name)
        for term in self.list_terms(taxonomy):
            if term.slug == slug:
                return term

        existing_ids = [term.term_id for term in self._terms.get(taxonomy, [])]
        term = Term(
            taxonomy=taxonomy,
            term_id=max(existing_ids, default=0) + 1,
            name=name.strip(),
            slug=slug,
            parent=parent,
            address=address,
            timezone=timezone,
        )
        self.save_term(term)
        logger.info(f"Created {taxonomy} term '{term.name}' ({term.term_id})")
        return term

    def save_term(self, term: Term) -> None:
        try:
            self.table.put_item(Item=self._term_to_item(term))
        except ClientError as e:
            logger.error(f"Error saving {term.taxonomy} term '{term.name}': {e}")
            raise

        terms = [t for t in self._terms.get(term.taxonomy, []) if t.term_id != term.term_id]
        terms.append(term)
        self._terms[term.taxonomy] = terms

    def get_venues_with_coordinates(self) -> List[Term]:
        return filter_venues(self.list_terms(self.VENUE_TAXONOMY))

    def attach_venues(self, events: List[CalendarEvent], geocoder=None) -> int:
        """
        Resolve event term names and venues into term ids.

        Venue terms are created on first sight. When a geocoder is given, new
        venues with an address are geocoded, one lookup every
        GEOCODE_RATE_LIMIT_SECONDS.

        Args:
            events: Processed events; their `terms` are filled in place
            geocoder: Optional GeocodingService

        Returns:
            Count of venues geocoded
        """
        geocoded = 0
        last_lookup = 0.0
        failed = set()

        for event in events:
            terms: Dict[str, List[int]] = {}

            for taxonomy, names in event.term_names.items():
                ids = [self.ensure_term(taxonomy, name).term_id for name in names if slugify(name)]
                if ids:
                    terms[taxonomy] = sorted(set(ids))

            if event.venue and slugify(event.venue):
                venue = self.ensure_term(
                    self.VENUE_TAXONOMY,
                    event.venue,
                    address=event.venue_address,
                    timezone=event.venue_timezone,
                )
                terms[self.VENUE_TAXONOMY] = sorted(set(terms.get(self.VENUE_TAXONOMY, []) + [venue.term_id]))

                if (geocoder is not None and venue.address and not venue.coordinates
                        and venue.term_id not in failed):
                    wait = self.GEOCODE_RATE_LIMIT_SECONDS - (time.monotonic() - last_lookup)
                    if last_lookup and wait > 0:
                        time.sleep(wait)
                    last_lookup = time.monotonic()

                    result = geocoder.geocode(venue.address)
                    if 'error' in result:
                        logger.warning(f"Could not geocode venue '{venue.name}': {result['error']}")
                        failed.add(venue.term_id)
                    else:
                        venue.coordinates = f"{result['lat']},{result['lng']}"
                        self.save_term(venue)
                        geocoded += 1

            event.terms = terms

        logger.info(f"Attached terms to {len(events)} events, geocoded {geocoded} venues")
        return geocoded

    @staticmethod
    def _item_to_term(item: dict) -> Term:
        return Term(
            taxonomy=item['taxonomy'],
            term_id=int(item['term_id']),
            name=item.get('name', ''),
            slug=item.get('slug', ''),
            parent=int(item.get('parent', 0)),
            address=item.get('address', ''),
            coordinates=item.get('coordinates', ''),
            timezone=item.get('timezone', ''),
        )

    @staticmethod
    def _term_to_item(term: Term) -> dict:
        return {
            'taxonomy': term.taxonomy,
            'term_id': term.term_id,
            'name': term.name,
            'slug': term.slug,
            'parent': term.parent,
            'address': term.address,
            'coordinates': term.coordinates,
            'timezone': term.timezone,
        }


def slugify(name: str) -> str:
    """URL-safe slug: lowercase words joined by hyphens."""
    slug = re.sub(r'[^a-z0-9]+', '-', (name or '').lower())
    return slug.strip('-')
