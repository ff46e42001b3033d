from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from errors import InvalidQuery


class Granularity(str, Enum):
    day = "day"
    month = "month"

    @property
    def label_format(self) -> str:
        if self is Granularity.day:
            return "%Y-%m-%d"
        return "%Y-%m"

    def label_for(self, moment: datetime) -> str:
        return moment.strftime(self.label_format)


@dataclass(frozen=True)
class DateRange:
    start: Optional[date]
    end: Optional[date]


def parse_calendar_date(value: Optional[str], name: str) -> Optional[date]:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidQuery(f"Invalid {name}: expected YYYY-MM-DD") from exc


def parse_date_range(startdate: Optional[str], enddate: Optional[str]) -> DateRange:
    start = parse_calendar_date(startdate, "startdate")
    end = parse_calendar_date(enddate, "enddate")
    if start and end and start > end:
        raise InvalidQuery("Start date must be before end date")
    return DateRange(start, end)


def parse_granularity(value: Optional[str]) -> Granularity:
    if not value:
        return Granularity.month
    try:
        return Granularity(value)
    except ValueError as exc:
        raise InvalidQuery("Period must be either 'day' or 'month'") from exc
