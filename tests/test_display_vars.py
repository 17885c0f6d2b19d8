"""Unit tests for event display variables."""
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from calendar_view import display_vars


TZ = ZoneInfo('America/Chicago')


def at(day, clock):
    return datetime.combine(date.fromisoformat(day), datetime.strptime(clock, '%H:%M:%S').time(), tzinfo=TZ)


def test_build_single_day_event(make_event):
    """Test the display variables of an ordinary evening show."""
    event = make_event(
        venue='Caf\\u00e9 Nine', performer='The Band', price='$10.00',
        ticket_url='https://tickets.example.com/1', venue_timezone='America/Chicago',
    )

    result = display_vars.build(event, TZ)

    assert result['formatted_time_display'] == '7:00 - 10:00 PM'
    assert result['venue_name'] == 'Café Nine'
    assert result['performer_name'] == 'The Band'
    assert result['price'] == '$10.00'
    assert result['ticket_url'] == 'https://tickets.example.com/1'
    assert result['iso_start_date'] == '2025-10-18T19:00:00-05:00'
    assert result['show_performer'] is False
    assert result['multi_day_label'] == ''
    assert result['is_multi_day'] is False


def test_build_series_occurrence_keeps_time_range(make_event):
    """A series spans weeks but each night shows its own start and end time."""
    event = make_event(
        start_date='2025-10-24', end_date='2025-11-14',
        occurrence_dates=['2025-10-24', '2025-10-31', '2025-11-07', '2025-11-14'],
    )

    result = display_vars.build(event, TZ)

    assert result['formatted_time_display'] == '7:00 - 10:00 PM'
    assert result['multi_day_label'] == ''


def test_build_multi_day_first_day(make_event):
    event = make_event(start_date='2025-02-27', start_time='10:00:00', end_date='2025-03-01', end_time='18:00:00')

    result = display_vars.build(event, TZ, is_multi_day=True)

    assert result['multi_day_label'] == 'through Mar 1'
    assert result['formatted_time_display'] == '10:00 AM'


def test_build_multi_day_continuation(make_event):
    """Continuation days show the date span instead of a time."""
    event = make_event(start_date='2025-10-18', end_date='2025-10-20')

    result = display_vars.build(event, TZ, is_multi_day=True, is_continuation=True)

    assert result['formatted_time_display'] == 'Oct 18 – Oct 20'
    assert result['multi_day_label'] == ''
    assert result['is_continuation'] is True


def test_build_without_start_date(make_event):
    result = display_vars.build(make_event(start_date=''), TZ)

    assert result['formatted_time_display'] == ''
    assert result['iso_start_date'] == ''


def test_build_flags(make_event):
    result = display_vars.build(make_event(), TZ, show_price=False, show_ticket_link=False)

    assert result['show_price'] is False
    assert result['show_ticket_link'] is False
    assert result['ticket_url'] == ''


@pytest.mark.parametrize('start_time, end_date, end_time, expected', [
    ('19:00:00', '2025-10-18', '21:00:00', '7:00 - 9:00 PM'),
    ('11:00:00', '2025-10-18', '13:30:00', '11:00 AM - 1:30 PM'),
    ('09:15:00', '2025-10-18', '11:45:00', '9:15 - 11:45 AM'),
    ('19:00:00', '2025-10-18', '23:59:59', '7:00 PM'),
    ('19:00:00', '2025-10-18', '', '7:00 PM'),
    ('21:00:00', '2025-10-19', '01:00:00', '9:00 PM'),
    ('12:00:00', '2025-10-18', '12:30:00', '12:00 - 12:30 PM'),
])
def test_format_time_range(start_time, end_date, end_time, expected):
    start = at('2025-10-18', start_time)
    assert display_vars.format_time_range(start, start_time, end_date, end_time, TZ) == expected


def test_format_time_range_without_start_time():
    """Events without a start time show no time at all."""
    start = at('2025-10-18', '00:00:00')
    assert display_vars.format_time_range(start, '', '2025-10-18', '21:00:00', TZ) == ''


def test_is_sentinel_end_time():
    assert display_vars.is_sentinel_end_time('23:59:59')
    assert display_vars.is_sentinel_end_time('23:59')
    assert not display_vars.is_sentinel_end_time('23:30:00')


def test_format_time_midnight_and_noon():
    assert display_vars.format_time(at('2025-10-18', '00:05:00')) == '12:05 AM'
    assert display_vars.format_time(at('2025-10-18', '12:00:00')) == '12:00 PM'


@pytest.mark.parametrize('day, expected', [
    (date(2025, 10, 1), 'Wednesday, October 1st'),
    (date(2025, 10, 2), 'Thursday, October 2nd'),
    (date(2025, 10, 3), 'Friday, October 3rd'),
    (date(2025, 10, 11), 'Saturday, October 11th'),
    (date(2025, 10, 18), 'Saturday, October 18th'),
    (date(2025, 10, 22), 'Wednesday, October 22nd'),
])
def test_format_date_label(day, expected):
    assert display_vars.format_date_label(day) == expected


def test_format_short_date():
    assert display_vars.format_short_date(date(2025, 3, 1)) == 'Mar 1'


def test_decode_unicode():
    assert display_vars.decode_unicode('Beyonc\\u00e9') == 'Beyoncé'
    assert display_vars.decode_unicode('') == ''


def test_escape():
    assert display_vars.escape('<b>"Rock" & Roll</b>') == '&lt;b&gt;&quot;Rock&quot; &amp; Roll&lt;/b&gt;'
    assert display_vars.escape(None) == ''
