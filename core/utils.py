"""
Core utilities: identifiers, dates.
"""
import secrets
import time

from django.utils import timezone


def generate_id() -> str:
    """Millisecond timestamp plus a random suffix, e.g. "1718000000000_3f9a1c0b2e"."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def normalize_id(value):
    """
    Canonical string form of an identifier read from storage.
    7, 7.0 and "7" all become "7"; None and "" stay None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def today_iso() -> str:
    """Local calendar date as YYYY-MM-DD."""
    return timezone.localdate().isoformat()
