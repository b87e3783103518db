"""Date helpers bound to the site's single fixed timezone."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from core.config import config


def site_timezone() -> ZoneInfo:
    return ZoneInfo(config.SITE_TIMEZONE)


def now_local() -> datetime:
    """Current wall-clock time at the studio."""
    return datetime.now(site_timezone())


def today_local() -> date:
    """Current calendar date at the studio.

    Past-date checks (partial bookings, cancellation requests) and the
    attendance "not in the future" rule compare against this date.
    """
    return now_local().date()
