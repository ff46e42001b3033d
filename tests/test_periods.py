from datetime import date, datetime

import pytest

from errors import InvalidQuery
from periods import DateRange, Granularity, parse_date_range, parse_granularity


def test_granularity_labels() -> None:
    moment = datetime(2024, 1, 5, 13, 45)
    assert Granularity.day.label_for(moment) == "2024-01-05"
    assert Granularity.month.label_for(moment) == "2024-01"


def test_parse_granularity_defaults_to_month() -> None:
    assert parse_granularity(None) is Granularity.month
    assert parse_granularity("") is Granularity.month
    assert parse_granularity("day") is Granularity.day


def test_parse_granularity_rejects_unknown_period() -> None:
    with pytest.raises(InvalidQuery):
        parse_granularity("week")


def test_parse_date_range() -> None:
    assert parse_date_range("2024-01-01", "2024-01-31") == DateRange(
        date(2024, 1, 1), date(2024, 1, 31)
    )
    assert parse_date_range(None, " ") == DateRange(None, None)
    assert parse_date_range("2024-01-01", "2024-01-01").start == date(2024, 1, 1)


@pytest.mark.parametrize(
    ("start", "end"),
    [
        ("2024-02-30", None),
        (None, "01/02/2024"),
        ("2024-03-01", "2024-02-01"),
    ],
)
def test_parse_date_range_rejects_bad_input(start, end) -> None:
    with pytest.raises(InvalidQuery):
        parse_date_range(start, end)
