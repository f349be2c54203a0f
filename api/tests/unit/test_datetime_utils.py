from datetime import date, timezone

from feedsync.shared.utils.datetime_utils import DateTimeUtils


def test_format_report_date_is_day_month_year():
    assert DateTimeUtils.format_report_date(date(2024, 3, 5)) == "05/03/2024"


def test_lookback_range_ends_on_reference_date():
    start, end = DateTimeUtils.lookback_range(14, today=date(2024, 3, 15))
    assert start == date(2024, 3, 1)
    assert end == date(2024, 3, 15)


def test_lookback_range_crosses_year_boundary():
    start, _ = DateTimeUtils.lookback_range(10, today=date(2024, 1, 5))
    assert start == date(2023, 12, 26)


def test_lookback_range_negative_days_is_zero_window():
    # Dias negativos no abren la ventana hacia el futuro
    start, end = DateTimeUtils.lookback_range(-3, today=date(2024, 3, 15))
    assert start == end == date(2024, 3, 15)


def test_now_utc_is_timezone_aware():
    assert DateTimeUtils.now_utc().tzinfo == timezone.utc
