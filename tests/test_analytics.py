from datetime import datetime

import pytest

from advisor_platform.utils.analytics import calendar_grid, meeting_analytics, week_start

NOW = datetime(2024, 5, 15, 12, 0)


def meeting(day, status='completed', duration=30, transcript_status='completed'):
    return {
        'scheduled_at': day,
        'status': status,
        'meeting_type': 'scheduled',
        'duration': duration,
        'transcript': {'status': transcript_status},
    }


def test_week_starts_on_sunday():
    assert week_start(datetime(2024, 5, 15).date()).isoformat() == '2024-05-12'
    assert week_start(datetime(2024, 5, 12).date()).isoformat() == '2024-05-12'


def test_month_range_counts_and_buckets():
    meetings = [
        meeting(datetime(2024, 5, 13, 10)),
        meeting(datetime(2024, 5, 14, 10), status='scheduled', duration=0, transcript_status='not_started'),
        meeting(datetime(2024, 4, 30, 10)),
    ]
    result = meeting_analytics(meetings, 'month', now=NOW)

    assert result['total_meetings'] == 2
    assert result['status_counts'] == {'completed': 1, 'scheduled': 1}
    assert result['weekly_trends'] == {'2024-05-12': 2}
    assert result['transcription_stats'] == {'completed': 1, 'active': 0, 'not_started': 1}
    assert result['avg_duration'] == 30


def test_all_range_and_bad_range():
    meetings = [meeting(datetime(2020, 1, 1)), meeting('2024-05-01T09:00:00Z')]
    assert meeting_analytics(meetings, 'all', now=NOW)['total_meetings'] == 2
    with pytest.raises(ValueError):
        meeting_analytics(meetings, 'decade', now=NOW)


def test_calendar_grid_is_six_sunday_weeks():
    grid = calendar_grid([meeting(datetime(2024, 5, 15, 9))], 2024, 5)
    assert len(grid['weeks']) == 6
    assert all(len(week) == 7 for week in grid['weeks'])
    assert grid['weeks'][0][0]['date'] == '2024-04-28'
    assert grid['weeks'][0][0]['is_current_month'] is False
    assert grid['meeting_count'] == 1
    assert grid['month_name'] == 'May'
