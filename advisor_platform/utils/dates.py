from datetime import datetime, date, timezone


def utcnow():
    """Naive UTC now, matching what pymongo hands back for stored dates"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value):
    """Parse ISO-8601 strings (with or without Z) into naive UTC datetimes"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        # epoch milliseconds, as browsers send them
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    if not isinstance(value, str):
        raise ValueError(f'Unsupported date value: {value!r}')

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def isoformat(value):
    if value is None:
        return None
    return value.isoformat() + 'Z' if value.tzinfo is None else value.isoformat()
