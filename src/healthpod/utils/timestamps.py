"""
Timestamp normalisation utilities.

Every stored record carries its timestamp in one canonical form: ISO-8601 in
UTC at whole-second precision with a ``Z`` suffix (``2025-01-01T09:00:00Z``).
Source values may arrive in several shapes (full ISO-8601 with or without
fractional seconds or offsets, ``YYYY-MM-DD``, ``YYYY-MM-DD HH:MM:SS``,
``MM/DD/YYYY``). Naive values are interpreted in the configured source
timezone before conversion to UTC.
"""

import re
from datetime import datetime

import pytz
from dateutil.parser import isoparse

from healthpod.utils.exceptions import TimestampFormatError

US_DATE_FORMAT = "%m/%d/%Y"
CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

_SPACE_BEFORE_TIME = re.compile(r" (?=\d{2}:\d{2}(:\d{2})?)")
_FILENAME_ILLEGAL = re.compile(r"[:.]+")


def make_timezone_aware(dt: datetime, timezone_str: str = "UTC") -> datetime:
    """
    Make a datetime object timezone-aware.

    Args:
        dt: Datetime object (may be naive or aware).
        timezone_str: Timezone assumed for naive values (e.g., "Australia/Sydney").

    Returns:
        Timezone-aware datetime object. Aware inputs are returned unchanged.
    """
    if dt.tzinfo is None:
        return pytz.timezone(timezone_str).localize(dt)
    return dt


def _parse_raw(raw: str) -> datetime:
    text = raw.strip()
    if not text:
        raise TimestampFormatError("Empty timestamp")

    try:
        if "/" in text:
            return datetime.strptime(text, US_DATE_FORMAT)
        return isoparse(text)
    except (ValueError, OverflowError) as e:
        raise TimestampFormatError(f"Invalid timestamp format: {raw}") from e


def parse_timestamp(raw: str | datetime, timezone_str: str = "UTC") -> datetime:
    """
    Parse a timestamp into a timezone-aware UTC datetime.

    Args:
        raw: Timestamp text in any supported format, or a datetime.
        timezone_str: Timezone assumed for naive values.

    Returns:
        Aware datetime in UTC.

    Raises:
        TimestampFormatError: If the value cannot be parsed.
    """
    dt = raw if isinstance(raw, datetime) else _parse_raw(str(raw))
    return make_timezone_aware(dt, timezone_str).astimezone(pytz.utc)


def format_iso(dt: datetime) -> str:
    """Format a datetime in canonical form. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc).strftime(CANONICAL_FORMAT)


def round_to_second(raw: str) -> str:
    """
    Drop sub-second precision from a timestamp.

    Two values that differ only in milliseconds round to the same string.
    Any offset in the source is preserved; no timezone conversion happens here.

    Raises:
        TimestampFormatError: If the value cannot be parsed.
    """
    return _parse_raw(raw).replace(microsecond=0).isoformat()


def normalise(raw: str, to_iso: bool = False, timezone_str: str = "UTC") -> str:
    """
    Normalise a timestamp string.

    Args:
        raw: Timestamp text.
        to_iso: If False, only insert the ``T`` date/time separator where a space
            is used. If True, return the canonical UTC form.
        timezone_str: Timezone assumed for naive values when ``to_iso`` is True.

    Returns:
        Normalised timestamp string. Applying the function twice gives the same
        result as applying it once.

    Raises:
        TimestampFormatError: If ``to_iso`` is True and the value cannot be parsed.
    """
    result = raw.strip()

    if "T" not in result:
        result = _SPACE_BEFORE_TIME.sub("T", result, count=1)

    if to_iso:
        return format_iso(parse_timestamp(result, timezone_str))

    return result


def is_valid(text: str) -> bool:
    """Return True if the text parses as ISO-8601."""
    candidate = text.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        return False
    return True


def to_filename_safe(timestamp: str | datetime) -> str:
    """
    Build the filename fragment for a timestamp.

    ``2025-01-01T09:00:00Z`` becomes ``2025-01-01T09-00-00``.
    """
    text = format_iso(timestamp) if isinstance(timestamp, datetime) else timestamp.strip()
    if text.endswith("Z"):
        text = text[:-1]
    return _FILENAME_ILLEGAL.sub("-", text)


def to_display(timestamp: str | datetime, timezone_str: str = "UTC") -> str:
    """Render a timestamp for messages, e.g. ``2025-01-01 09:00:00``."""
    dt = parse_timestamp(timestamp, "UTC")
    return dt.astimezone(pytz.timezone(timezone_str)).strftime(DISPLAY_FORMAT)


def date_part(timestamp: str | datetime) -> str:
    """Return the ``YYYY-MM-DD`` part of a timestamp in UTC."""
    return parse_timestamp(timestamp).strftime("%Y-%m-%d")
