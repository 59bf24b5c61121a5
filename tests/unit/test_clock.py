"""Unit tests for clock utility."""

from datetime import UTC, datetime, timedelta

from invoice_notifier.utils.clock import parse_iso, utc_now


def test_utc_now():
    result = utc_now()
    assert isinstance(result, datetime)
    assert result.tzinfo is not None


def test_utc_now_returns_utc():
    result = utc_now()
    # Check it's close to now
    now = datetime.now(UTC)
    diff = abs((result - now).total_seconds())
    assert diff < 5  # Within 5 seconds


def test_parse_iso_with_trailing_z():
    assert parse_iso("2026-10-17T12:00:00Z") == datetime(2026, 10, 17, 12, tzinfo=UTC)


def test_parse_iso_keeps_offset():
    parsed = parse_iso("2026-10-17T14:00:00+02:00")
    assert parsed.utcoffset() == timedelta(hours=2)
    assert parsed == datetime(2026, 10, 17, 12, tzinfo=UTC)


def test_parse_iso_naive_is_utc():
    assert parse_iso("2026-10-17T12:00:00").tzinfo == UTC


def test_parse_iso_invalid():
    assert parse_iso(None) is None
    assert parse_iso("") is None
    assert parse_iso("yesterday") is None
