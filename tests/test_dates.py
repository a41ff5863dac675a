from datetime import date, datetime, timedelta, timezone

import pytest

from run_streak.dates import day_start_epoch, format_day, parse_day, to_day


class TestToDay:
    def test_aware_datetime_uses_utc_day(self):
        evening_in_new_york = datetime(2024, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_day(evening_in_new_york) == date(2024, 1, 2)

    def test_naive_datetime_keeps_its_day(self):
        assert to_day(datetime(2024, 1, 1, 23, 59)) == date(2024, 1, 1)

    def test_date_passes_through(self):
        assert to_day(date(2024, 5, 6)) == date(2024, 5, 6)


class TestParseDay:
    def test_iso_date(self):
        assert parse_day("2019-12-21") == date(2019, 12, 21)

    def test_utc_timestamp(self):
        assert parse_day("2019-12-21T23:30:00Z") == date(2019, 12, 21)

    def test_offset_timestamp_uses_utc_day(self):
        assert parse_day("2024-01-01T22:00:00-05:00") == date(2024, 1, 2)

    def test_string_and_datetime_agree(self):
        evening = datetime(2024, 1, 1, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_day(evening.isoformat()) == parse_day(evening) == date(2024, 1, 2)

    def test_naive_timestamp_keeps_its_day(self):
        assert parse_day("2024-01-01T23:59:00") == date(2024, 1, 1)

    def test_natural_language(self):
        assert parse_day("December 21, 2019") == date(2019, 12, 21)

    def test_unparseable_raises(self):
        with pytest.raises(ValueError):
            parse_day("xyzzy")


def test_day_start_epoch_is_utc_midnight():
    assert day_start_epoch(date(2019, 12, 21)) == 1576886400
    assert day_start_epoch(date(2024, 1, 1)) == 1704067200


def test_format_day():
    assert format_day(date(2024, 1, 3)) == "2024-01-03"
    assert format_day(None) is None
