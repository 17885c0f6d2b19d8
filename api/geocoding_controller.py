"""GET /events/geocode: address search."""
from typing import Any, Dict

from api.request import Request, error_response, json_response
from services.geocoding import GeocodingService


class GeocodingController:

    def __init__(self, geocoding_service: GeocodingService):
        self.geocoding_service = geocoding_service

    def search(self, request: Request) -> Dict[str, Any]:
        result = self.geocoding_service.geocode(request.get('query'))

        if result.get('error'):
            return error_response(400, 'geocoding_failed', result['error'])

        return json_response(200, result)
