"""Parsing helpers for dates, times and numbers taken from query strings and bodies."""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.utils import timezone

from clinic.exceptions import InvalidInput

_TIME_24 = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$')
_TIME_12 = re.compile(r'^(\d{1,2}):(\d{2})(?::\d{2})?\s*([AaPp][Mm])$')


def today() -> date:
    return timezone.localdate()


def parse_date(value, *, field: str = 'date') -> Optional[date]:
    """Accept ``YYYY-MM-DD`` (or a full ISO timestamp) and return a date."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidInput(f'invalid {field}: {value!r}')


def parse_time(value) -> Optional[time]:
    """Accept ``HH:MM``, ``HH:MM:SS`` or ``hh:mm AM/PM``."""
    if value in (None, ''):
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if 'T' in text:
        text = text.split('T', 1)[1].rstrip('Z')
    m = _TIME_12.match(text)
    if m:
        hour, minute, meridiem = int(m.group(1)), int(m.group(2)), m.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            raise InvalidInput(f'invalid time: {value!r}')
        hour = hour % 12 + (12 if meridiem == 'PM' else 0)
        return time(hour, minute)
    m = _TIME_24.match(text)
    if m:
        hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
        if hour > 23 or minute > 59 or second > 59:
            raise InvalidInput(f'invalid time: {value!r}')
        return time(hour, minute, second)
    raise InvalidInput(f'invalid time: {value!r}')


def parse_int(value, *, default: Optional[int] = None, field: str = 'value') -> Optional[int]:
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f'invalid {field}: {value!r}')


def parse_decimal(value, *, default: Optional[Decimal] = None, field: str = 'amount') -> Optional[Decimal]:
    if value in (None, ''):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f'invalid {field}: {value!r}')


def day_range(name: str, *, start=None, end=None) -> Optional[tuple[date, date]]:
    """Resolve ``today`` / ``yesterday`` / ``tomorrow`` / ``custom`` to an inclusive range."""
    name = (name or '').strip().lower()
    d = today()
    if name == 'today':
        return d, d
    if name == 'yesterday':
        return d - timedelta(days=1), d - timedelta(days=1)
    if name == 'tomorrow':
        return d + timedelta(days=1), d + timedelta(days=1)
    if name == 'custom':
        start_d = parse_date(start, field='from')
        end_d = parse_date(end, field='to') or start_d
        if start_d is None:
            return None
        return start_d, end_d
    return None


def format_slot(value) -> Optional[str]:
    """Render a stored appointment time as a zero padded ``hh:mm AM``/``PM`` slot.

    Strings that already carry AM/PM only get their hour padded; anything
    else is read as a 24 hour clock value.
    """
    if value in (None, ''):
        return None
    if isinstance(value, time):
        hour, minute = value.hour, value.minute
    else:
        text = str(value).strip()
        m = _TIME_12.match(text)
        if m:
            return f"{int(m.group(1)):02d}:{m.group(2)} {m.group(3).upper()}"
        parsed = parse_time(text)
        hour, minute = parsed.hour, parsed.minute
    meridiem = 'PM' if hour >= 12 else 'AM'
    hour12 = hour % 12 or 12
    return f"{hour12:02d}:{minute:02d} {meridiem}"
