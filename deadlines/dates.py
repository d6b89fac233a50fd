from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date


def business_timezone():
    """
    The zone calendar days are counted in.

    settings.BUSINESS_TIMEZONE (e.g. 'Asia/Kolkata') when set, otherwise the
    project's TIME_ZONE.
    """
    tz_name = getattr(settings, 'BUSINESS_TIMEZONE', None)
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return timezone.get_default_timezone()


def business_localdate() -> date:
    """Today's date in the business timezone, independent of the server TZ."""
    return timezone.now().astimezone(business_timezone()).date()


def local_day(value: Union[date, datetime, None]) -> Optional[date]:
    """
    Calendar day of a date/datetime as seen in the business timezone.

    Aware datetimes are converted first, so a deadline stored as
    ``2024-05-01T20:00:00Z`` belongs to 2 May in Asia/Kolkata. Naive
    datetimes are taken as already local; plain dates are used as-is.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = value.astimezone(business_timezone())
        return value.date()
    return value


def local_day_key(value: Union[date, datetime, None]) -> str:
    """``YYYY-MM-DD`` key for comparing days; '' when there is no date."""
    day = local_day(value)
    return day.isoformat() if day else ''


def parse_day(value) -> Optional[date]:
    """Parse ``YYYY-MM-DD``; None for blank or invalid input."""
    if not value:
        return None
    try:
        return parse_date(str(value).strip())
    except ValueError:
        return None
