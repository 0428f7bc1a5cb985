import re
from datetime import datetime, timezone
from typing import Optional


EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
DATETIME_INPUT_FORMAT = "%Y-%m-%d %H:%M"


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email))


def parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_event_datetime(value: str) -> Optional[datetime]:
    """Parse ``YYYY-MM-DD HH:MM`` typed by an admin; the result is UTC-aware."""
    raw = (value or "").strip()
    # Tolerate a common typo: YYYY-MM.DD HH:MM
    if len(raw) >= 16 and raw[7:8] == "." and raw[:7].count("-") == 1:
        raw = raw[:7] + "-" + raw[8:]
    try:
        return datetime.strptime(raw, DATETIME_INPUT_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
