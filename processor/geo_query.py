"""Venue proximity search using the haversine formula."""
import logging
import math
from typing import Dict, Iterable, List, Optional

from processor.models import Term

logger = logging.getLogger(__name__)


class GeoQuery:
    """Finds venue terms within a radius of a coordinate point."""

    EARTH_RADIUS_MI = 3959
    EARTH_RADIUS_KM = 6371
    DEFAULT_RADIUS = 25
    MAX_RADIUS = 500

    def __init__(self, venue_source):
        """
        Initialize the geo query.

        Args:
            venue_source: Object with get_venues_with_coordinates() returning
                venue Terms (normally a TermStore)
        """
        self.venue_source = venue_source

    def find_venues_within_radius(self, lat: float, lng: float,
                                  radius: float = DEFAULT_RADIUS,
                                  radius_unit: str = 'mi') -> List[Dict[str, float]]:
        """
        Find venues within a radius of a point.

        Args:
            lat: Latitude of center point
            lng: Longitude of center point
            radius: Search radius, clamped to [1, MAX_RADIUS]
            radius_unit: 'mi' or 'km'

        Returns:
            List of {'term_id', 'distance'} dicts sorted by distance
        """
        radius = max(1, min(radius, self.MAX_RADIUS))
        earth_radius = self.EARTH_RADIUS_KM if radius_unit == 'km' else self.EARTH_RADIUS_MI

        results = []
        for venue in self.venue_source.get_venues_with_coordinates():
            point = parse_coordinates(venue.coordinates)
            if point is None:
                continue
            distance = haversine(lat, lng, point[0], point[1], earth_radius)
            if distance <= radius:
                results.append({'term_id': venue.term_id, 'distance': round(distance, 1)})

        results.sort(key=lambda row: row['distance'])
        logger.debug(f"Found {len(results)} venues within {radius}{radius_unit} of {lat},{lng}")
        return results

    def get_venue_ids_within_radius(self, lat: float, lng: float,
                                    radius: float = DEFAULT_RADIUS,
                                    radius_unit: str = 'mi') -> List[int]:
        return [row['term_id'] for row in self.find_venues_within_radius(lat, lng, radius, radius_unit)]

    def get_venue_distance_map(self, lat: float, lng: float,
                               radius: float = DEFAULT_RADIUS,
                               radius_unit: str = 'mi') -> Dict[int, float]:
        return {
            row['term_id']: row['distance']
            for row in self.find_venues_within_radius(lat, lng, radius, radius_unit)
        }

    @staticmethod
    def validate_params(lat, lng, radius=None) -> bool:
        """
        Validate geo parameters.

        Args:
            lat: Latitude value
            lng: Longitude value
            radius: Optional radius value

        Returns:
            True if coordinates are in range and radius is positive
        """
        lat = _to_float(lat)
        lng = _to_float(lng)
        if lat is None or lng is None:
            return False
        if lat < -90 or lat > 90:
            return False
        if lng < -180 or lng > 180:
            return False
        if radius is not None:
            radius = _to_float(radius)
            if radius is None or radius <= 0:
                return False
        return True


def haversine(lat1: float, lng1: float, lat2: float, lng2: float, earth_radius: float) -> float:
    """Great-circle distance between two points."""
    cos_angle = (
        math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.cos(math.radians(lng2) - math.radians(lng1))
        + math.sin(math.radians(lat1)) * math.sin(math.radians(lat2))
    )
    return earth_radius * math.acos(min(1.0, max(-1.0, cos_angle)))


def parse_coordinates(coordinates: str) -> Optional[tuple]:
    """Parse a 'lat,lng' string into a float pair."""
    if not coordinates or ',' not in coordinates:
        return None
    lat_str, lng_str = coordinates.split(',', 1)
    lat = _to_float(lat_str.strip())
    lng = _to_float(lng_str.strip())
    if lat is None or lng is None:
        return None
    return lat, lng


def filter_venues(venues: Iterable[Term]) -> List[Term]:
    """Venues that carry parseable coordinates."""
    return [venue for venue in venues if parse_coordinates(venue.coordinates) is not None]


def _to_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result
