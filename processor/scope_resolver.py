"""Resolves named time scopes (today, tonight, ...) into date boundaries."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from processor.query_builder import sanitize_key


@dataclass
class ScopeBounds:
    """Concrete boundaries for a named scope."""
    date_start: str
    date_end: str
    time_start: str = ''
    time_end: str = ''


class ScopeResolver:
    """
    Maps scope names to concrete date/time boundaries.

    'current', empty and unrecognized scopes resolve to None so callers fall
    through to unscoped behavior.
    """

    VALID_SCOPES = ('today', 'tonight', 'this-weekend', 'this-week')
    TONIGHT_START_HOUR = 17
    TONIGHT_END_TIME = '03:59:59'

    @classmethod
    def is_valid(cls, scope: str) -> bool:
        return scope in ('current', '') or scope in cls.VALID_SCOPES

    @classmethod
    def resolve(cls, scope: str, now: datetime) -> Optional[ScopeBounds]:
        """
        Resolve a scope name against the current site-local time.

        Args:
            scope: Scope identifier
            now: Current datetime in the site timezone

        Returns:
            ScopeBounds, or None for default/unknown scopes
        """
        scope = sanitize_key(scope or '')
        today = now.date().isoformat()

        if scope == 'today':
            return ScopeBounds(date_start=today, date_end=today)
        if scope == 'tonight':
            return cls._resolve_tonight(now, today)
        if scope == 'this-weekend':
            return cls._resolve_this_weekend(now, today)
        if scope == 'this-week':
            return ScopeBounds(
                date_start=today,
                date_end=(now + timedelta(days=6)).date().isoformat(),
            )
        return None

    @classmethod
    def _resolve_tonight(cls, now: datetime, today: str) -> ScopeBounds:
        # Before 5 PM tonight starts at 5 PM; after, it starts now.
        tomorrow = (now + timedelta(days=1)).date().isoformat()
        if now.hour < cls.TONIGHT_START_HOUR:
            time_start = f'{cls.TONIGHT_START_HOUR:02d}:00:00'
        else:
            time_start = now.strftime('%H:%M:%S')

        return ScopeBounds(
            date_start=today,
            date_end=tomorrow,
            time_start=time_start,
            time_end=cls.TONIGHT_END_TIME,
        )

    @staticmethod
    def _resolve_this_weekend(now: datetime, today: str) -> ScopeBounds:
        day_of_week = now.isoweekday()  # 1 = Monday, 7 = Sunday

        if day_of_week >= 5:
            date_start = today
            date_end = (now + timedelta(days=7 - day_of_week)).date().isoformat()
        else:
            friday = now + timedelta(days=5 - day_of_week)
            date_start = friday.date().isoformat()
            date_end = (friday + timedelta(days=2)).date().isoformat()

        return ScopeBounds(date_start=date_start, date_end=date_end)
