import re
import logging
from datetime import date, datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)


def format_phone_number(phone_number: str) -> str:
    """
    Normalize a phone number for sending to the server.

    Args:
        phone_number: Raw phone number string

    Returns:
        str: Number without spaces, dashes or parentheses (leading '+' kept)
    """
    return re.sub(r'[\s\-\(\)]', '', phone_number or '')


def compose_full_phone(dial_code: str, national_number: str) -> str:
    """
    Join a country dial code and a national number.

    Args:
        dial_code: e.g. '+57' (may be empty when the number is already international)
        national_number: Number as typed by the user

    Returns:
        str: Full number such as '+573001234567'
    """
    national = format_phone_number(national_number)
    code = format_phone_number(dial_code)
    if code and not code.startswith('+'):
        code = f"+{code}"
    return f"{code}{national}"


def mask_phone(phone_number: str) -> str:
    """Hide all but the last three digits of a phone number for log output."""
    if not phone_number:
        return phone_number
    digits = re.sub(r'\D', '', phone_number)
    if len(digits) <= 3:
        return phone_number
    prefix = '+' if phone_number.startswith('+') else ''
    return f"{prefix}{'*' * (len(digits) - 3)}{digits[-3:]}"


def next_midnight(today: Optional[date] = None) -> datetime:
    """Start of the next local calendar day."""
    day = today or date.today()
    return datetime.combine(day + timedelta(days=1), datetime.min.time())


def format_duration(seconds: int) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Formatted duration string
    """
    seconds = max(int(seconds), 0)
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        remaining_seconds = seconds % 60
        return f"{minutes}m {remaining_seconds}s"
    else:
        hours = seconds // 3600
        remaining_minutes = (seconds % 3600) // 60
        return f"{hours}h {remaining_minutes}m"
