"""Address geocoding through OpenStreetMap Nominatim."""
import hashlib
import logging
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class GeocodingService:
    """Geocodes free-form addresses, caching results for 30 days."""

    NOMINATIM_URL = 'https://nominatim.openstreetmap.org/search'
    CACHE_PREFIX = 'geocode_'
    CACHE_TTL = 30 * 24 * 60 * 60
    MIN_QUERY_LENGTH = 3
    MAX_QUERY_LENGTH = 500

    def __init__(self, cache=None, user_agent: str = 'events-calendar/1.0', timeout: int = 10):
        """
        Initialize the geocoding service.

        Args:
            cache: Optional CalendarCache used for result caching
            user_agent: User-Agent sent to Nominatim (required by its usage policy)
            timeout: HTTP request timeout in seconds
        """
        self.cache = cache
        self.user_agent = user_agent
        self.timeout = timeout

    def geocode(self, query: str) -> Dict:
        """
        Geocode an address string.

        Args:
            query: Address or place name

        Returns:
            {'lat', 'lng', 'display_name', 'cached'} on success,
            {'error': message} on failure
        """
        query = (query or '').strip()
        if len(query) < self.MIN_QUERY_LENGTH:
            return {'error': 'Query must be at least 3 characters.'}

        query = query[:self.MAX_QUERY_LENGTH]
        cache_key = self.CACHE_PREFIX + hashlib.md5(query.lower().encode('utf-8')).hexdigest()

        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if isinstance(cached, dict):
                cached['cached'] = True
                return cached

        coordinates = self.query_nominatim(query)
        if not coordinates:
            return {'error': 'Could not geocode address: no results from Nominatim.'}

        lat, lng = coordinates.split(',', 1)
        result = {
            'lat': lat,
            'lng': lng,
            'display_name': query,
            'cached': False,
        }

        if self.cache is not None:
            self.cache.set(cache_key, result, self.CACHE_TTL)

        return result

    def query_nominatim(self, query: str) -> Optional[str]:
        """
        Look up an address on Nominatim.

        Returns:
            'lat,lng' of the best match, or None
        """
        try:
            response = requests.get(
                self.NOMINATIM_URL,
                params={'q': query, 'format': 'json', 'limit': 1},
                headers={'User-Agent': self.user_agent, 'Accept': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            results = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Nominatim lookup failed for '{query}': {e}")
            return None

        if not results or not isinstance(results, list):
            logger.info(f"Nominatim returned no results for '{query}'")
            return None

        best = results[0]
        if not best.get('lat') or not best.get('lon'):
            return None

        return f"{best['lat']},{best['lon']}"
