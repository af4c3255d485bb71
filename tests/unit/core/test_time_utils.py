from datetime import datetime, timedelta, timezone

from coldstore.core.time_utils import elapsed_seconds, ensure_utc, utc_now


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_assumes_naive_is_utc():
    naive = datetime(2024, 1, 1, 12, 0, 0)
    assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_offsets():
    berlin = datetime(2024, 1, 1, 13, 0, 0, tzinfo=timezone(timedelta(hours=1)))
    assert ensure_utc(berlin) == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_ensure_utc_passes_none():
    assert ensure_utc(None) is None


def test_elapsed_seconds():
    started = utc_now() - timedelta(seconds=90)
    assert 89.9 <= elapsed_seconds(started) <= 91
