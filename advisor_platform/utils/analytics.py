from datetime import datetime, timedelta
import calendar

from advisor_platform.utils.dates import utcnow, parse_datetime

TIME_RANGES = ('week', 'month', 'quarter', 'all')


def _meeting_date(meeting):
    value = meeting.get('scheduled_at') or meeting.get('created_at')
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _in_range(meeting_date, time_range, now):
    if time_range == 'week':
        return meeting_date >= now - timedelta(days=7)
    if time_range == 'month':
        return meeting_date.month == now.month and meeting_date.year == now.year
    if time_range == 'quarter':
        quarter_start = datetime(now.year, ((now.month - 1) // 3) * 3 + 1, 1)
        return meeting_date >= quarter_start
    return True


def week_start(day):
    """Sunday on or before the given date"""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def meeting_analytics(meetings, time_range='month', now=None):
    """
    Bucket and count meeting dicts (as returned by Meeting.to_dict()).

    Meetings are dated by scheduled_at, falling back to created_at.
    Weekly buckets start on Sunday.
    """
    if time_range not in TIME_RANGES:
        raise ValueError(f'time_range must be one of {", ".join(TIME_RANGES)}')

    now = now or utcnow()
    filtered = []
    for meeting in meetings:
        meeting_date = _meeting_date(meeting)
        if meeting_date is None:
            continue
        if _in_range(meeting_date, time_range, now):
            filtered.append((meeting_date, meeting))

    status_counts = {}
    type_counts = {}
    daily_trends = {}
    weekly_trends = {}
    transcription_stats = {'completed': 0, 'active': 0, 'not_started': 0}
    durations = []

    for meeting_date, meeting in filtered:
        status = meeting.get('status')
        status_counts[status] = status_counts.get(status, 0) + 1

        meeting_type = meeting.get('meeting_type')
        type_counts[meeting_type] = type_counts.get(meeting_type, 0) + 1

        day_key = meeting_date.date().isoformat()
        daily_trends[day_key] = daily_trends.get(day_key, 0) + 1

        week_key = week_start(meeting_date.date()).isoformat()
        weekly_trends[week_key] = weekly_trends.get(week_key, 0) + 1

        transcript_status = (meeting.get('transcript') or {}).get('status')
        if transcript_status == 'completed':
            transcription_stats['completed'] += 1
        elif transcript_status == 'active':
            transcription_stats['active'] += 1
        else:
            transcription_stats['not_started'] += 1

        duration = meeting.get('duration') or 0
        if duration > 0:
            durations.append(duration)

    total_duration = sum(durations)
    return {
        'time_range': time_range,
        'total_meetings': len(filtered),
        'status_counts': status_counts,
        'type_counts': type_counts,
        'daily_trends': dict(sorted(daily_trends.items())),
        'weekly_trends': dict(sorted(weekly_trends.items())),
        'transcription_stats': transcription_stats,
        'avg_duration': round(total_duration / len(durations)) if durations else 0,
        'total_duration': total_duration,
    }


def calendar_grid(meetings, year, month):
    """
    Build a 6x7 Sunday-start month grid with the meetings on each day.

    Each cell: {'date', 'is_current_month', 'meetings'}.
    """
    if not 1 <= month <= 12:
        raise ValueError('month must be between 1 and 12')

    first_day = datetime(year, month, 1).date()
    start = week_start(first_day)

    by_day = {}
    for meeting in meetings:
        meeting_date = _meeting_date(meeting)
        if meeting_date is None:
            continue
        by_day.setdefault(meeting_date.date(), []).append(meeting)

    weeks = []
    for week in range(6):
        row = []
        for offset in range(7):
            day = start + timedelta(days=week * 7 + offset)
            row.append({
                'date': day.isoformat(),
                'is_current_month': day.month == month,
                'meetings': by_day.get(day, []),
            })
        weeks.append(row)

    return {
        'year': year,
        'month': month,
        'month_name': calendar.month_name[month],
        'weeks': weeks,
        'meeting_count': sum(len(cell['meetings']) for row in weeks for cell in row if cell['is_current_month']),
    }
