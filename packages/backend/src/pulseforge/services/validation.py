"""Input checks shared by several services.

Raise ValidationFailed (400) with the message the client sees.
"""

from datetime import date, datetime, timezone
from typing import Optional

from pulseforge.errors import ValidationFailed

MAX_LOGO_LENGTH = 2_800_000
_LOGO_PREFIXES = ("data:image/", "http://", "https://")


def parse_day(value: str, field: str) -> date:
    """Parse a YYYY-MM-DD string."""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")


def require_future_day(day: date, field: str, today: Optional[date] = None) -> date:
    """Reject dates on or before today (UTC)."""
    today = today or datetime.now(timezone.utc).date()
    if day <= today:
        raise ValidationFailed(f"{field} must be after today")
    return day


def validate_logo(logo: str) -> str:
    """An empty logo is fine; otherwise a data:image/ upload or an http(s) URL."""
    if not logo:
        return logo
    if not logo.startswith(_LOGO_PREFIXES):
        raise ValidationFailed("invalid logo upload format")
    if len(logo) > MAX_LOGO_LENGTH:
        raise ValidationFailed("logo image too large")
    return logo
