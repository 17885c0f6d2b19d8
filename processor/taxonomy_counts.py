"""Taxonomy filter options with per-term event counts."""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from processor.models import CalendarEvent, Taxonomy, Term
from processor.query_builder import EventQuery, TaxClause

logger = logging.getLogger(__name__)


class TaxonomyCounter:
    """Builds filter options (terms with event counts) for each taxonomy."""

    def __init__(self, event_store, term_store, taxonomies: List[Taxonomy], site_tz):
        """
        Initialize the counter.

        Args:
            event_store: Object with find_events(EventQuery)
            term_store: Object with list_terms(taxonomy)
            taxonomies: Registered event taxonomies
            site_tz: Site timezone for "today"
        """
        self.event_store = event_store
        self.term_store = term_store
        self.taxonomies = taxonomies
        self.site_tz = site_tz

    def get_all_taxonomies_with_counts(self, active_filters: Optional[Dict[str, List[int]]] = None,
                                       date_context: Optional[Dict[str, str]] = None,
                                       tax_query_override: Optional[List[TaxClause]] = None,
                                       dependencies: Optional[Dict[str, str]] = None,
                                       excluded: Iterable[str] = (),
                                       now: Optional[datetime] = None) -> Dict[str, Dict]:
        """
        Get every public taxonomy with its terms and event counts.

        Args:
            active_filters: Selected term ids keyed by taxonomy
            date_context: 'date_start', 'date_end' and 'past' ('1' for past)
            tax_query_override: Base constraint (archive term, geo venues)
            dependencies: Child taxonomy -> parent taxonomy
            excluded: Taxonomies left out of the result
            now: Current site-local datetime

        Returns:
            Dict keyed by taxonomy name with label, hierarchical and terms
        """
        active_filters = active_filters or {}
        dependencies = dependencies or {}
        today = (now or datetime.now(self.site_tz)).date().isoformat()

        events = [
            event for event in self.event_store.find_events(EventQuery())
            if all(clause.matches(event) for clause in (tax_query_override or []))
        ]

        taxonomies_data = {}
        for taxonomy in self.taxonomies:
            if taxonomy.name in excluded or not taxonomy.public:
                continue

            allowed_term_ids = None
            parent_taxonomy = dependencies.get(taxonomy.name)
            if parent_taxonomy and active_filters.get(parent_taxonomy):
                allowed_term_ids = self.get_dependent_terms(
                    taxonomy.name, parent_taxonomy, active_filters[parent_taxonomy], events
                )

            terms_hierarchy = self.get_taxonomy_hierarchy(
                taxonomy, events, allowed_term_ids, date_context, active_filters, today
            )
            if terms_hierarchy:
                taxonomies_data[taxonomy.name] = {
                    'label': taxonomy.label,
                    'name': taxonomy.name,
                    'hierarchical': taxonomy.hierarchical,
                    'terms': terms_hierarchy,
                }

        return taxonomies_data

    def get_taxonomy_hierarchy(self, taxonomy: Taxonomy, events: List[CalendarEvent],
                               allowed_term_ids: Optional[List[int]] = None,
                               date_context: Optional[Dict[str, str]] = None,
                               active_filters: Optional[Dict[str, List[int]]] = None,
                               today: str = '') -> List[Dict]:
        """Terms of one taxonomy that have events, as a flat list or a tree."""
        if allowed_term_ids is not None and not allowed_term_ids:
            return []

        terms = sorted(self.term_store.list_terms(taxonomy.name), key=lambda t: t.name.lower())
        if not terms:
            return []

        term_counts = self.get_batch_term_counts(
            taxonomy.name, events, date_context, active_filters or {}, today
        )

        terms_with_events = []
        for term in terms:
            if allowed_term_ids is not None and term.term_id not in allowed_term_ids:
                continue
            if term_counts.get(term.term_id, 0) > 0:
                terms_with_events.append(term)

        if not terms_with_events:
            return []

        if taxonomy.hierarchical:
            all_terms = {term.term_id: term for term in terms}
            return build_hierarchy_tree(terms_with_events, term_counts, all_terms)

        return [
            _term_node(term, term_counts[term.term_id], level=0)
            for term in terms_with_events
        ]

    @staticmethod
    def get_dependent_terms(child_taxonomy: str, parent_taxonomy: str,
                            parent_term_ids: List[int],
                            events: Iterable[CalendarEvent]) -> List[int]:
        """Child taxonomy terms that share at least one event with the parent terms."""
        parent_term_ids = {int(term_id) for term_id in parent_term_ids}
        if not parent_term_ids:
            return []

        child_ids = set()
        for event in events:
            if parent_term_ids.intersection(event.terms.get(parent_taxonomy, [])):
                child_ids.update(event.terms.get(child_taxonomy, []))
        return sorted(child_ids)

    @staticmethod
    def get_batch_term_counts(taxonomy_name: str, events: Iterable[CalendarEvent],
                              date_context: Optional[Dict[str, str]],
                              active_filters: Dict[str, List[int]],
                              today: str) -> Dict[int, int]:
        """
        Count events per term of a taxonomy.

        Date context and the active filters of the *other* taxonomies narrow
        the events that are counted.
        """
        cross_filters = {
            taxonomy: [int(t) for t in term_ids]
            for taxonomy, term_ids in active_filters.items()
            if taxonomy != taxonomy_name and term_ids
        }

        counts: Dict[int, int] = {}
        for event in events:
            if date_context is not None and not _in_date_context(event, date_context, today):
                continue
            if any(not set(term_ids).intersection(event.terms.get(taxonomy, []))
                   for taxonomy, term_ids in cross_filters.items()):
                continue
            for term_id in set(event.terms.get(taxonomy_name, [])):
                counts[term_id] = counts.get(term_id, 0) + 1

        return counts


def build_hierarchy_tree(terms: List[Term], counts: Dict[int, int],
                         all_terms: Dict[int, Term], parent_id: int = 0,
                         level: int = 0) -> List[Dict]:
    """
    Nest terms under their parents.

    A term whose parent has no events attaches to its nearest ancestor that
    does, or to the root.
    """
    present_ids = {term.term_id for term in terms}
    tree = []

    for term in terms:
        effective_parent = term.parent
        seen = set()
        while effective_parent and effective_parent not in present_ids and effective_parent not in seen:
            seen.add(effective_parent)
            parent_term = all_terms.get(effective_parent)
            effective_parent = parent_term.parent if parent_term else 0
        if effective_parent in seen:
            effective_parent = 0

        if effective_parent == parent_id:
            node = _term_node(term, counts.get(term.term_id, 0), level)
            node['children'] = build_hierarchy_tree(terms, counts, all_terms, term.term_id, level + 1)
            tree.append(node)

    return tree


def flatten_hierarchy(terms_hierarchy: List[Dict]) -> List[Dict]:
    """Depth-first flattening of a term tree."""
    flattened = []
    for term in terms_hierarchy:
        flattened.append(term)
        if term.get('children'):
            flattened.extend(flatten_hierarchy(term['children']))
    return flattened


def _term_node(term: Term, event_count: int, level: int) -> Dict:
    return {
        'term_id': term.term_id,
        'name': term.name,
        'slug': term.slug,
        'event_count': event_count,
        'level': level,
        'children': [],
    }


def _in_date_context(event: CalendarEvent, date_context: Dict[str, str], today: str) -> bool:
    date_start = date_context.get('date_start') or ''
    date_end = date_context.get('date_end') or ''
    show_past = str(date_context.get('past') or '') == '1'
    start = event.start_datetime

    if date_start and date_end:
        return f'{date_start} 00:00:00' <= start <= f'{date_end} 23:59:59'
    if show_past:
        return start < f'{today} 00:00:00'
    return start >= f'{today} 00:00:00'
