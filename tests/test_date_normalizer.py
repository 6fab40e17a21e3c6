from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from onetask.date_normalizer import (
    format_optional_wire_date,
    format_wire_date,
    match_format,
    parse_backend_date,
    parse_optional_date,
)
from onetask.exceptions import DateParseError

CHICAGO = ZoneInfo("America/Chicago")


@pytest.mark.parametrize(
    "value, expected_format, expected",
    [
        ("2025-08-11 18:32:03.312000+00:00", "space_micro_offset", (2025, 8, 11, 18, 32, 3, 312000)),
        ("2025-08-07 13:08:23.609608", "space_micro_local", (2025, 8, 7, 13, 8, 23, 609608)),
        ("2025-08-11 18:32:03+02:00", "space_offset", (2025, 8, 11, 18, 32, 3, 0)),
        ("2025-08-07 13:08:23", "space_local", (2025, 8, 7, 13, 8, 23, 0)),
        ("2025-08-13T13:58:11.628404", "iso_micro_local", (2025, 8, 13, 13, 58, 11, 628404)),
        ("2025-08-13T13:58:11.628", "iso_milli_local", (2025, 8, 13, 13, 58, 11, 628000)),
        ("2025-08-13T13:58:11", "iso_local", (2025, 8, 13, 13, 58, 11, 0)),
        ("2025-08-07", "date_only", (2025, 8, 7, 0, 0, 0, 0)),
        ("2025-08-13T13:58:11.628Z", "internet_fractional", (2025, 8, 13, 13, 58, 11, 628000)),
        ("2025-08-13T13:58:11Z", "internet", (2025, 8, 13, 13, 58, 11, 0)),
    ],
)
def test_each_backend_format_keeps_calendar_date_and_wall_time(value, expected_format, expected):
    assert match_format(value).name == expected_format

    parsed = parse_backend_date(value, local_tz=CHICAGO)

    assert parsed.tzinfo is not None
    assert (
        parsed.year, parsed.month, parsed.day,
        parsed.hour, parsed.minute, parsed.second, parsed.microsecond,
    ) == expected


def test_explicit_offset_is_kept():
    parsed = parse_backend_date("2025-08-11 18:32:03+02:00", local_tz=CHICAGO)
    assert parsed.utcoffset() == timedelta(hours=2)


def test_layout_without_offset_uses_given_zone():
    parsed = parse_backend_date("2025-08-07 13:08:23", local_tz=CHICAGO)
    assert parsed.tzinfo is CHICAGO
    # CDT in August
    assert parsed.utcoffset() == timedelta(hours=-5)


def test_layout_without_offset_defaults_to_system_zone():
    parsed = parse_backend_date("2025-08-07 13:08:23")
    assert parsed.tzinfo is not None
    assert parsed.hour == 13


def test_date_only_is_local_midnight():
    parsed = parse_backend_date("2025-08-07", local_tz=ZoneInfo("Europe/Berlin"))
    assert parsed == datetime(2025, 8, 7, tzinfo=ZoneInfo("Europe/Berlin"))


def test_long_fraction_is_truncated_to_microseconds():
    parsed = parse_backend_date("2025-08-13T13:58:11.123456789Z")
    assert parsed.microsecond == 123456
    assert parsed.utcoffset() == timedelta(0)


def test_internet_format_with_offset():
    parsed = parse_backend_date("2025-08-13T13:58:11-05:00")
    assert parsed.utcoffset() == timedelta(hours=-5)


@pytest.mark.parametrize(
    "value",
    ["not-a-date", "", "2025/08/13", "13-08-2025", "2025-08-13 13:58", "2025-08-13T13:58:11.62"],
)
def test_unrecognized_format_raises_with_offending_string(value):
    with pytest.raises(DateParseError) as exc_info:
        parse_backend_date(value)
    assert exc_info.value.value == value


def test_impossible_date_in_valid_layout_raises():
    with pytest.raises(DateParseError):
        parse_backend_date("2025-13-45")


def test_non_string_raises():
    with pytest.raises(DateParseError):
        parse_backend_date(1723557491)


def test_date_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_backend_date("not-a-date")


def test_optional_date_accepts_missing_values():
    assert parse_optional_date(None) is None
    assert parse_optional_date("") is None
    assert parse_optional_date("2025-08-13T13:58:11Z") == datetime(
        2025, 8, 13, 13, 58, 11, tzinfo=timezone.utc
    )


def test_wire_format_is_utc_with_z_designator():
    local = datetime(2025, 8, 13, 8, 58, 11, 999, tzinfo=CHICAGO)
    assert format_wire_date(local) == "2025-08-13T13:58:11Z"


def test_wire_format_round_trips_through_parser():
    original = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    assert parse_backend_date(format_wire_date(original)) == original.replace(microsecond=0)


def test_optional_wire_format():
    assert format_optional_wire_date(None) is None
    assert format_optional_wire_date(datetime(2025, 8, 13, tzinfo=timezone.utc)) == "2025-08-13T00:00:00Z"
