"""GET /events/filters: taxonomy filter options with event counts."""
import logging
from typing import Any, Dict, List, Optional

from api.request import Request, clean_date, get_term_filters, json_response
from processor.geo_query import GeoQuery
from processor.query_builder import TaxClause, absint, sanitize_key
from processor.taxonomy_counts import TaxonomyCounter

logger = logging.getLogger(__name__)


class FiltersController:
    """Builds the filter modal payload."""

    def __init__(self, counter: TaxonomyCounter, term_store, geo_query: GeoQuery,
                 dependencies: Optional[Dict[str, str]] = None):
        """
        Initialize the controller.

        Args:
            counter: Taxonomy term counter
            term_store: TermStore used to name the archive term
            geo_query: Venue proximity search
            dependencies: Child taxonomy -> parent taxonomy
        """
        self.counter = counter
        self.term_store = term_store
        self.geo_query = geo_query
        self.dependencies = dependencies or {}

    def get(self, request: Request) -> Dict[str, Any]:
        active_filters = get_term_filters(request, 'active')
        context = sanitize_key(request.get('context', 'modal')) or 'modal'
        date_context = {
            'date_start': clean_date(request.get('date_start')),
            'date_end': clean_date(request.get('date_end')),
            'past': '1' if request.get('past') == '1' else '',
        }

        tax_query_override: Optional[List[TaxClause]] = None
        archive_context: Dict[str, Any] = {}

        archive_taxonomy = sanitize_key(request.get('archive_taxonomy'))
        archive_term_id = absint(request.get('archive_term_id', '0'))
        if archive_taxonomy and archive_term_id:
            tax_query_override = [TaxClause(taxonomy=archive_taxonomy, terms=[archive_term_id])]
            term = self.term_store.get_term(archive_taxonomy, archive_term_id)
            archive_context = {
                'taxonomy': archive_taxonomy,
                'term_id': archive_term_id,
                'term_name': term.name if term else '',
            }

        geo_context, venue_clause = self.build_geo_context(
            request.get('lat').strip(),
            request.get('lng').strip(),
            request.get('radius', '25'),
            sanitize_key(request.get('radius_unit', 'mi')) or 'mi',
        )
        if venue_clause is not None:
            tax_query_override = (tax_query_override or []) + [venue_clause]

        taxonomies = self.counter.get_all_taxonomies_with_counts(
            active_filters=active_filters,
            date_context=date_context,
            tax_query_override=tax_query_override,
            dependencies=self.dependencies,
        )

        for taxonomy_name, taxonomy_info in taxonomies.items():
            parent_taxonomy = self.dependencies.get(taxonomy_name)
            taxonomy_info['filtered'] = bool(parent_taxonomy and active_filters.get(parent_taxonomy))

        return json_response(200, {
            'success': True,
            'taxonomies': taxonomies,
            'dependencies': self.dependencies,
            'archive_context': archive_context,
            'geo_context': geo_context,
            'meta': {
                'context': context,
                'active_filters': active_filters,
                'date_context': date_context,
            },
        })

    def build_geo_context(self, lat: str, lng: str, radius: str, radius_unit: str):
        """
        Geo context for the response plus the venue constraint it implies.

        Returns:
            (geo_context dict, TaxClause or None)
        """
        try:
            radius_value = float(radius)
        except (TypeError, ValueError):
            radius_value = float(GeoQuery.DEFAULT_RADIUS)

        geo_context = {
            'active': False,
            'venue_count': 0,
            'lat': 0,
            'lng': 0,
            'radius': radius_value,
            'radius_unit': radius_unit,
        }

        if not lat or not lng or not GeoQuery.validate_params(lat, lng, radius_value):
            return geo_context, None

        venue_ids = self.geo_query.get_venue_ids_within_radius(
            float(lat), float(lng), radius_value, radius_unit
        )
        geo_context.update({
            'active': True,
            'venue_count': len(venue_ids),
            'lat': float(lat),
            'lng': float(lng),
        })
        return geo_context, TaxClause(taxonomy='venue', terms=venue_ids or [0])
