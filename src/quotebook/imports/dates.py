"""Timestamp normalization.

Readers store timestamps in several encodings: ISO-8601 strings with or
without fractional seconds, SQL-style "date time" strings, the long
English forms Kindle writes into clippings, and Core Data floats (seconds
since 2001-01-01T00:00:00Z) in Apple Books. Everything is converted to a
naive UTC datetime.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..logger import get_logger
from .base import InvalidTimestamp, RawTimestamp

logger = get_logger(__name__)

# Tried in order; first successful parse wins
DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",  # 2020-11-22T10:11:42.000
    "%Y-%m-%dT%H:%M:%SZ",  # 2020-11-22T10:11:42Z
    "%Y-%m-%d %H:%M:%S",  # 2020-11-22 10:11:42
    "%A, %d %B %Y %H:%M:%S",  # Saturday, 26 March 2016 14:59:39
    "%A, %B %d, %Y, %I:%M %p",  # Saturday, March 26, 2016, 02:59 PM
)

# Seconds between the Unix epoch (1970) and the Core Data epoch (2001)
CORE_DATA_EPOCH_OFFSET = 978_307_200

UNIX_EPOCH = datetime(1970, 1, 1)


def utcnow() -> datetime:
    """Current UTC instant as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: str) -> datetime:
    """Parse a timestamp string in any of the recognized formats.

    Args:
        value: Timestamp string

    Returns:
        Naive datetime

    Raises:
        InvalidTimestamp: If no format matches
    """
    text = value.strip()
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise InvalidTimestamp(f"Unrecognized timestamp: {value!r}")


def core_data_to_datetime(core_data_ts: float) -> datetime:
    """Convert a Core Data timestamp to a naive UTC datetime.

    The value is rebased onto the Unix epoch, then split into whole
    seconds and a sub-second remainder.

    Raises:
        InvalidTimestamp: If the value is not finite or out of range
    """
    if not math.isfinite(core_data_ts):
        raise InvalidTimestamp(f"Invalid Core Data timestamp: {core_data_ts!r}")

    unix_ts = core_data_ts + CORE_DATA_EPOCH_OFFSET
    seconds = math.trunc(unix_ts)
    nanos = int((unix_ts - seconds) * 1_000_000_000)

    try:
        return UNIX_EPOCH + timedelta(seconds=seconds, microseconds=nanos // 1000)
    except OverflowError as e:
        raise InvalidTimestamp(f"Core Data timestamp out of range: {core_data_ts!r}") from e


def normalize_timestamp(value: RawTimestamp) -> datetime:
    """Normalize any supported timestamp encoding.

    Strings go through parse_datetime(), numbers are treated as Core Data
    offsets, datetimes pass through (aware ones are converted to naive UTC).

    Raises:
        InvalidTimestamp: If the value cannot be converted
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, bool):
        raise InvalidTimestamp(f"Unsupported timestamp value: {value!r}")
    if isinstance(value, (int, float)):
        return core_data_to_datetime(float(value))
    if isinstance(value, str):
        return parse_datetime(value)
    raise InvalidTimestamp(f"Unsupported timestamp value: {value!r}")


def normalize_or_now(value: Optional[RawTimestamp], fallback: Optional[datetime] = None) -> datetime:
    """Normalize a timestamp, falling back to now when it cannot be read.

    Only for timestamps where a substitute is acceptable; quote and note
    creation dates should use normalize_timestamp() instead.
    """
    if value is None:
        return fallback or utcnow()
    try:
        return normalize_timestamp(value)
    except InvalidTimestamp as e:
        logger.warning("%s; using current time instead", e)
        return fallback or utcnow()
