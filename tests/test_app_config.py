"""Unit tests for environment configuration."""
import json
import os
from unittest.mock import patch
from zoneinfo import ZoneInfo

from app_config import DEFAULT_TAXONOMIES, Settings


def test_defaults():
    """Test settings with an empty environment."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings.from_env()

    assert settings.table_name == 'calendar-events'
    assert settings.days_ahead == 90
    assert settings.import_sources == []
    assert settings.taxonomies == DEFAULT_TAXONOMIES
    assert settings.geocode_new_venues is False
    assert settings.tz == ZoneInfo('UTC')


def test_values_from_environment():
    env = {
        'TABLE_NAME': 'events',
        'DAYS_AHEAD': '30',
        'SITE_TIMEZONE': 'America/Chicago',
        'NEXT_DAY_CUTOFF': '04:00',
        'GEOCODE_NEW_VENUES': 'True',
        'IMPORT_SOURCES': json.dumps([{'type': 'ics', 'url': 'https://a/b.ics'}]),
        'TAXONOMY_DEPENDENCIES': json.dumps({'genre': 'venue'}),
        'TAXONOMIES': json.dumps([{'name': 'venue', 'label': 'Places'}, {'name': 'series', 'hierarchical': True}, {}]),
    }
    with patch.dict(os.environ, env, clear=True):
        settings = Settings.from_env()

    assert settings.table_name == 'events'
    assert settings.days_ahead == 30
    assert settings.tz == ZoneInfo('America/Chicago')
    assert settings.next_day_cutoff == '04:00'
    assert settings.geocode_new_venues is True
    assert settings.import_sources == [{'type': 'ics', 'url': 'https://a/b.ics'}]
    assert settings.taxonomy_dependencies == {'genre': 'venue'}
    assert [(t.name, t.label, t.hierarchical) for t in settings.taxonomies] == [
        ('venue', 'Places', False), ('series', 'Series', True)
    ]


def test_invalid_values_fall_back():
    """Malformed numbers, JSON and timezones use defaults."""
    env = {'DAYS_AHEAD': 'soon', 'IMPORT_SOURCES': '[not json', 'SITE_TIMEZONE': 'Mars/Base'}
    with patch.dict(os.environ, env, clear=True):
        settings = Settings.from_env()

    assert settings.days_ahead == 90
    assert settings.import_sources == []
    assert settings.tz == ZoneInfo('UTC')
