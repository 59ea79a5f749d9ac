from __future__ import annotations
from datetime import date, datetime, time, timezone
from typing import Any, Optional
import math
import re

_WS = re.compile(r'\s+')
_NON_DIGITS = re.compile(r'\D+')

TRUTHY_QUERY_VALUES = frozenset({'1', 'true', 'yes', 'y', 'on', 'enabled', 'mine', 'me', 'assigned', 'own'})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_whitespace(value: Any) -> str:
    if value is None:
        return ''
    return _WS.sub(' ', str(value).strip())


def name_key(value: Any) -> str:
    return normalize_whitespace(value).lower()


def phone_digits(value: Any) -> str:
    if value is None:
        return ''
    return _NON_DIGITS.sub('', str(value))


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_amount(value: Any, default: float = 0.0) -> float:
    """Lenient numeric parse: strips thousands separators, falls back to default for garbage or non-finite values."""
    if value is None or isinstance(value, bool):
        return default
    raw = value if isinstance(value, (int, float)) else str(value).replace(',', '').strip()
    try:
        result = float(raw)
    except (ValueError, OverflowError):
        return default
    # nan, inf and overflowing exponents are not amounts
    return result if math.isfinite(result) else default


def truthy_query(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_QUERY_VALUES


def parse_date(value: Any) -> Optional[date]:
    """Accept date/datetime objects or ISO strings; raise ValueError on garbage."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) > 10 and text[10] in 'T ':
        return parse_datetime(text).date()
    return date.fromisoformat(text[:10])


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time())
    else:
        dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """UTC ISO-8601 with a trailing Z; naive values are treated as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    if isinstance(d, datetime):
        d = d.date()
    return d.isoformat()
