import datetime as dt


def _comparable(timestamp: dt.datetime) -> dt.datetime:
    # Aware timestamps are compared in UTC so that daylight saving transitions are counted correctly
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone(dt.timezone.utc)


def exact_minutes_between(start: dt.datetime, end: dt.datetime) -> float:
    """
    Calculate the (possibly fractional and negative) number of minutes from start to end

    :param start: The first timestamp
    :param end: The second timestamp
    :return: The minutes from start to end
    """
    return (_comparable(end) - _comparable(start)).total_seconds() / 60.0


def minutes_between(start: dt.datetime, end: dt.datetime) -> int:
    """
    Calculate the whole number of minutes from start to end, rounded to the nearest minute

    :param start: The first timestamp
    :param end: The second timestamp
    :return: The rounded minutes from start to end
    """
    return int(round(exact_minutes_between(start, end)))


def format_duration(minutes: float) -> str:
    """
    Format a duration for display, e.g. "45 min" or "2:05 h"

    :param minutes: The duration in minutes
    :return: The formatted duration
    """
    rounded_minutes = int(round(minutes))
    if rounded_minutes < 60:
        return f"{rounded_minutes} min"
    return f"{rounded_minutes // 60}:{rounded_minutes % 60:02d} h"
