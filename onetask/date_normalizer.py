"""
Date normalization for backend payloads.

The backend has emitted several timestamp layouts over time. Incoming
strings are matched against a fixed, ordered list of formats; the first
match wins. Outgoing dates are always ISO-8601 UTC.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional, Pattern

from onetask.exceptions import DateParseError

_DATE = r"\d{4}-\d{2}-\d{2}"
_TIME = r"\d{2}:\d{2}:\d{2}"
_OFFSET = r"[+-]\d{2}:\d{2}"


@dataclass(frozen=True)
class DateFormat:
    """One accepted backend layout."""
    name: str
    pattern: Pattern
    strptime_format: str
    has_offset: bool


BACKEND_DATE_FORMATS = (
    DateFormat(
        "space_micro_offset",  # 2025-08-11 18:32:03.312000+00:00
        re.compile(rf"{_DATE} {_TIME}\.\d{{6}}{_OFFSET}"),
        "%Y-%m-%d %H:%M:%S.%f%z",
        True,
    ),
    DateFormat(
        "space_micro_local",  # 2025-08-07 13:08:23.609608
        re.compile(rf"{_DATE} {_TIME}\.\d{{6}}"),
        "%Y-%m-%d %H:%M:%S.%f",
        False,
    ),
    DateFormat(
        "space_offset",  # 2025-08-11 18:32:03+00:00
        re.compile(rf"{_DATE} {_TIME}{_OFFSET}"),
        "%Y-%m-%d %H:%M:%S%z",
        True,
    ),
    DateFormat(
        "space_local",  # 2025-08-07 13:08:23
        re.compile(rf"{_DATE} {_TIME}"),
        "%Y-%m-%d %H:%M:%S",
        False,
    ),
    DateFormat(
        "iso_micro_local",  # 2025-08-13T13:58:11.628404
        re.compile(rf"{_DATE}T{_TIME}\.\d{{6}}"),
        "%Y-%m-%dT%H:%M:%S.%f",
        False,
    ),
    DateFormat(
        "iso_milli_local",  # 2025-08-13T13:58:11.628
        re.compile(rf"{_DATE}T{_TIME}\.\d{{3}}"),
        "%Y-%m-%dT%H:%M:%S.%f",
        False,
    ),
    DateFormat(
        "iso_local",  # 2025-08-13T13:58:11
        re.compile(rf"{_DATE}T{_TIME}"),
        "%Y-%m-%dT%H:%M:%S",
        False,
    ),
    DateFormat(
        "date_only",  # 2025-08-07
        re.compile(_DATE),
        "%Y-%m-%d",
        False,
    ),
    DateFormat(
        "internet_fractional",  # 2025-08-13T13:58:11.628Z
        re.compile(rf"{_DATE}T{_TIME}\.\d+(?:Z|{_OFFSET})"),
        "%Y-%m-%dT%H:%M:%S.%f%z",
        True,
    ),
    DateFormat(
        "internet",  # 2025-08-13T13:58:11Z
        re.compile(rf"{_DATE}T{_TIME}(?:Z|{_OFFSET})"),
        "%Y-%m-%dT%H:%M:%S%z",
        True,
    ),
)

_LONG_FRACTION = re.compile(r"\.(\d{6})\d+")


def _attach_local(naive: datetime, local_tz: Optional[tzinfo]) -> datetime:
    if local_tz is not None:
        return naive.replace(tzinfo=local_tz)
    # system local zone, DST aware for the given wall time
    return naive.astimezone()


def match_format(value: str) -> Optional[DateFormat]:
    """Return the first format whose layout matches ``value`` exactly."""
    for fmt in BACKEND_DATE_FORMATS:
        if fmt.pattern.fullmatch(value):
            return fmt
    return None


def parse_backend_date(value: str, local_tz: Optional[tzinfo] = None) -> datetime:
    """
    Parse a backend date string into an aware datetime.

    Args:
        value: Date string of unknown layout
        local_tz: Zone assumed for layouts without an offset; defaults to
            the system local zone

    Returns:
        Timezone-aware datetime

    Raises:
        DateParseError: If no supported layout matches
    """
    if not isinstance(value, str):
        raise DateParseError(repr(value))

    fmt = match_format(value)
    if fmt is None:
        raise DateParseError(value)

    text = value
    if fmt.name == "internet_fractional":
        # strptime %f takes at most six digits
        text = _LONG_FRACTION.sub(r".\1", text)

    try:
        parsed = datetime.strptime(text, fmt.strptime_format)
    except ValueError:
        # right shape, impossible value (e.g. month 13)
        raise DateParseError(value)

    if fmt.has_offset:
        return parsed
    return _attach_local(parsed, local_tz)


def parse_optional_date(value: Optional[str], local_tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Like parse_backend_date, but None/empty input yields None."""
    if value is None or value == "":
        return None
    return parse_backend_date(value, local_tz)


def format_wire_date(value: datetime) -> str:
    """
    Encode a datetime for outgoing API bodies.

    Always ISO-8601 in UTC with whole seconds, e.g. 2025-08-13T13:58:11Z.
    Naive datetimes are taken as system local time.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    utc = value.astimezone(timezone.utc).replace(microsecond=0)
    return utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_optional_wire_date(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return format_wire_date(value)
