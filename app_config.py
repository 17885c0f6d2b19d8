"""Runtime configuration read from environment variables."""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.models import Taxonomy

logger = logging.getLogger(__name__)


DEFAULT_TAXONOMIES = [
    Taxonomy(name='venue', label='Venues'),
    Taxonomy(name='genre', label='Genres', hierarchical=True),
    Taxonomy(name='promoter', label='Promoters'),
]


@dataclass
class Settings:
    """Settings shared by the import sync and the calendar API."""
    table_name: str = 'calendar-events'
    terms_table_name: str = 'calendar-terms'
    cache_table_name: str = 'calendar-cache'
    log_level: str = 'INFO'
    days_ahead: int = 90
    timeout_seconds: int = 30
    site_timezone: str = 'UTC'
    next_day_cutoff: str = '05:00'
    nominatim_user_agent: str = 'events-calendar/1.0'
    geocode_new_venues: bool = False
    import_sources: List[Dict[str, Any]] = field(default_factory=list)
    taxonomies: List[Taxonomy] = field(default_factory=lambda: list(DEFAULT_TAXONOMIES))
    taxonomy_dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from the process environment."""
        env = os.environ
        settings = cls(
            table_name=env.get('TABLE_NAME', 'calendar-events'),
            terms_table_name=env.get('TERMS_TABLE_NAME', 'calendar-terms'),
            cache_table_name=env.get('CACHE_TABLE_NAME', 'calendar-cache'),
            log_level=env.get('LOG_LEVEL', 'INFO'),
            days_ahead=_int_env('DAYS_AHEAD', 90),
            timeout_seconds=_int_env('TIMEOUT_SECONDS', 30),
            site_timezone=env.get('SITE_TIMEZONE', 'UTC'),
            next_day_cutoff=env.get('NEXT_DAY_CUTOFF', '05:00'),
            nominatim_user_agent=env.get('NOMINATIM_USER_AGENT', 'events-calendar/1.0'),
            geocode_new_venues=env.get('GEOCODE_NEW_VENUES', '').lower() in ('1', 'true', 'yes'),
            import_sources=_json_env('IMPORT_SOURCES', []),
            taxonomy_dependencies=_json_env('TAXONOMY_DEPENDENCIES', {}),
        )

        taxonomies = _json_env('TAXONOMIES', None)
        if taxonomies:
            settings.taxonomies = [
                Taxonomy(
                    name=item['name'],
                    label=item.get('label', item['name'].title()),
                    hierarchical=bool(item.get('hierarchical', False)),
                    public=bool(item.get('public', True)),
                )
                for item in taxonomies
                if isinstance(item, dict) and item.get('name')
            ]

        return settings

    @property
    def tz(self) -> ZoneInfo:
        """Site timezone; unknown names fall back to UTC."""
        try:
            return ZoneInfo(self.site_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Invalid SITE_TIMEZONE '{self.site_timezone}', using UTC")
            return ZoneInfo('UTC')


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def _json_env(name: str, default: Any) -> Any:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON for {name}: {e}")
        return default
