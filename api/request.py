"""API Gateway proxy event parsing and JSON responses."""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import parse_qsl

from processor.query_builder import absint, sanitize_key

BRACKET_KEY = re.compile(r'^([^\[\]]+)((?:\[[^\[\]]*\])*)$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


@dataclass
class Request:
    """HTTP request extracted from a REST (v1) or HTTP (v2) API Gateway event."""
    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> 'Request':
        if 'requestContext' in event and 'http' in event['requestContext']:
            method = event['requestContext']['http'].get('method', 'GET')
            path = event.get('rawPath') or event['requestContext']['http'].get('path', '/')
            query: Dict[str, List[str]] = {}
            for key, value in parse_qsl(event.get('rawQueryString') or '', keep_blank_values=True):
                query.setdefault(key, []).append(value)
        else:
            method = event.get('httpMethod', 'GET')
            path = event.get('path') or '/'
            multi = event.get('multiValueQueryStringParameters') or {}
            single = event.get('queryStringParameters') or {}
            query = {key: list(values) for key, values in multi.items()}
            for key, value in single.items():
                query.setdefault(key, [value])

        stage = (event.get('requestContext') or {}).get('stage')
        if stage and stage != '$default' and path.startswith(f'/{stage}/'):
            path = path[len(stage) + 1:]

        return cls(method=method.upper(), path=path.rstrip('/') or '/', query=query)

    def get(self, name: str, default: str = '') -> str:
        """Last value of a query parameter."""
        values = self.query.get(name)
        return values[-1] if values else default

    def get_nested(self, name: str) -> Dict[str, Any]:
        """
        Collect bracket-notation parameters into a dict.

        `tax_filter[genre][]=3&tax_filter[genre][]=5&tax_filter[venue]=2`
        gives {'genre': ['3', '5'], 'venue': '2'}.
        """
        result: Dict[str, Any] = {}
        for key, values in self.query.items():
            match = BRACKET_KEY.match(key)
            if not match or match.group(1) != name or not match.group(2):
                continue

            segments = re.findall(r'\[([^\[\]]*)\]', match.group(2))
            sub_key = segments[0]
            if not sub_key:
                continue
            if len(segments) > 1 or len(values) > 1:
                result.setdefault(sub_key, [])
                if not isinstance(result[sub_key], list):
                    result[sub_key] = [result[sub_key]]
                result[sub_key].extend(values)
            else:
                result[sub_key] = values[-1]
        return result


def get_term_filters(request: Request, name: str) -> Dict[str, List[int]]:
    """Bracket parameter `name` as taxonomy -> positive term ids."""
    filters = {}
    for taxonomy, term_ids in request.get_nested(name).items():
        if not isinstance(term_ids, list):
            term_ids = [term_ids]
        clean_ids = [absint(term_id) for term_id in term_ids if absint(term_id) > 0]
        if clean_ids:
            filters[sanitize_key(taxonomy)] = clean_ids
    return filters


def clean_date(value: str) -> str:
    """A YYYY-MM-DD date, or '' for anything else."""
    value = (value or '').strip()
    return value if DATE_PATTERN.match(value) else ''


def json_response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body),
    }


def error_response(status_code: int, code: str, message: str) -> Dict[str, Any]:
    return json_response(status_code, {
        'code': code,
        'message': message,
        'data': {'status': status_code},
    })
