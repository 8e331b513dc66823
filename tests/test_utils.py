from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from eventboard.utils import isoformat_utc, page_count, parse_iso_datetime, to_naive_utc


def test_parse_iso_datetime_accepts_zulu_suffix():
    assert parse_iso_datetime("2030-05-01T10:30:00.000Z") == datetime(2030, 5, 1, 10, 30)


def test_parse_iso_datetime_converts_offsets_to_utc():
    assert parse_iso_datetime("2030-05-01T12:30:00+02:00") == datetime(2030, 5, 1, 10, 30)


def test_parse_iso_datetime_keeps_naive_values():
    assert parse_iso_datetime(" 2030-05-01T10:30 ") == datetime(2030, 5, 1, 10, 30)


@pytest.mark.parametrize("raw", ["", "   ", "tomorrow", "2030-13-01"])
def test_parse_iso_datetime_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_iso_datetime(raw)


def test_to_naive_utc():
    aware = datetime(2030, 1, 1, 5, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert to_naive_utc(aware) == datetime(2030, 1, 1, 10, 0)
    assert to_naive_utc(datetime(2030, 1, 1, tzinfo=UTC)).tzinfo is None
    assert to_naive_utc(None) is None


def test_isoformat_utc_matches_javascript_format():
    assert isoformat_utc(datetime(2030, 1, 2, 3, 4, 5, 678900)) == "2030-01-02T03:04:05.678Z"
    assert isoformat_utc(None) is None


@pytest.mark.parametrize(
    ("total", "limit", "expected"),
    [(0, 12, 0), (1, 12, 1), (12, 12, 1), (13, 12, 2), (250, 100, 3)],
)
def test_page_count(total, limit, expected):
    assert page_count(total, limit) == expected
