"""Human-readable dates and durations (English locale)."""

from datetime import date, timedelta

from babel.dates import format_date, format_timedelta

LOCALE = "en"


def humanize_duration(seconds: float) -> str:
    """
    Describe a duration in its largest fitting unit.

        30 -> "30 seconds", 7200 -> "2 hours", 90 days -> "3 months"
    """
    return format_timedelta(timedelta(seconds=abs(seconds)), format="long", locale=LOCALE)


def format_long_date(moment: date) -> str:
    """Format as e.g. "October 17, 2026"."""
    return format_date(moment, format="long", locale=LOCALE)
