from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def service_tz():
    if settings.SERVICE_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(settings.SERVICE_TIMEZONE)


def today() -> date:
    """Today's calendar date in the service timezone."""
    return datetime.now(tz=service_tz()).date()


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)
