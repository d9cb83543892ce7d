from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from exceptions import ValidationError


@dataclass(frozen=True)
class DateWindow:
    """
    Optional inclusive range of calendar days.

    Either bound may be open. Timestamps are matched by the day they fall on,
    so ``end_date`` covers the whole of that day.
    """
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def is_open(self) -> bool:
        return self.start_date is None and self.end_date is None

    def predicates(self, column) -> List:
        conditions = []
        if self.start_date is not None:
            conditions.append(column >= datetime.combine(self.start_date, time.min))
        if self.end_date is not None:
            next_day = self.end_date + timedelta(days=1)
            conditions.append(column < datetime.combine(next_day, time.min))
        return conditions

    def apply(self, query, column):
        conditions = self.predicates(column)
        if conditions:
            query = query.filter(*conditions)
        return query


def date_window(start_date: Optional[date] = None, end_date: Optional[date] = None) -> DateWindow:
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")
    return DateWindow(start_date=start_date, end_date=end_date)
