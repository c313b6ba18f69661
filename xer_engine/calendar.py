"""
Working-day calendars and day-granularity date arithmetic.

Dates passed to advance/retreat/shift are *boundaries*: the morning of the
given day. An activity that starts on boundary ``b`` and lasts ``n`` working
days finishes on boundary ``advance(b, n)``, the morning after its last
worked day.
"""
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import FrozenSet, Optional

from xer_engine.errors import CalendarRangeError

# Spreadsheet epoch used by P6 for exception dates
SERIAL_EPOCH = date(1899, 12, 30)

# P6 numbers weekdays 1=Sunday .. 7=Saturday; Python uses 0=Monday .. 6=Sunday
P6_TO_PYTHON_WEEKDAY = {1: 6, 2: 0, 3: 1, 4: 2, 5: 3, 6: 4, 7: 5}

DEFAULT_CALENDAR_ID = "__default__"
DEFAULT_WORKING_DAYS = frozenset({0, 1, 2, 3, 4})

_DAY_ENTRY = re.compile(r"\(0\|\|([1-7])\(\)")
_EXCEPTION_ENTRY = re.compile(r"\(0\|\|\d+\(d\|(\d+)\)")
_WORK_PERIOD = re.compile(r"s\|\d{1,2}:\d{2}")

# Longest run of idle days tolerated while scanning for a working day
_MAX_SCAN_DAYS = 366 * 10

# Longest span, in working days, any single calculation may cover
_MAX_SPAN_DAYS = 366 * 100


def serial_to_date(serial: int) -> date:
    return SERIAL_EPOCH + timedelta(days=serial)


def _balanced_body(data: str, open_index: int) -> str:
    """Return the text inside the parenthesis opened at open_index."""
    depth = 0
    for i in range(open_index, len(data)):
        if data[i] == "(":
            depth += 1
        elif data[i] == ")":
            depth -= 1
            if depth == 0:
                return data[open_index + 1:i]
    return data[open_index + 1:]


def _section(data: str, marker: str) -> Optional[str]:
    start = data.find(marker)
    if start < 0:
        return None
    return _balanced_body(data, start + len(marker) - 1)


@dataclass
class WorkCalendar:
    """
    A working-day calendar.

    Attributes:
        id: Calendar identifier (clndr_id)
        working_weekdays: Python weekday numbers that are normally worked
        holidays: Dates that are never worked
        extra_working_days: Normally idle dates that are worked
        hours_per_day: Used to convert XER hour counts into working days
    """
    id: str
    name: str = ""
    working_weekdays: FrozenSet[int] = DEFAULT_WORKING_DAYS
    holidays: FrozenSet[date] = field(default_factory=frozenset)
    extra_working_days: FrozenSet[date] = field(default_factory=frozenset)
    hours_per_day: float = 8.0
    is_default: bool = False

    @classmethod
    def from_clndr_data(
        cls,
        calendar_id: str,
        clndr_data: str,
        name: str = "",
        hours_per_day: float = 8.0,
        is_default: bool = False,
    ) -> "WorkCalendar":
        """
        Build a calendar from the CALENDAR.clndr_data blob.

        The blob nests ``DaysOfWeek()(...)`` and ``Exceptions()(...)``
        sections. A weekday or exception entry with at least one ``s|HH:MM``
        work period is worked; an entry with an empty body is not.
        """
        working = set(DEFAULT_WORKING_DAYS)
        holidays = set()
        extra = set()

        days = _section(clndr_data or "", "DaysOfWeek()(")
        if days is not None:
            working = set()
            for match in _DAY_ENTRY.finditer(days):
                body = _balanced_body(days, match.start())
                if _WORK_PERIOD.search(body):
                    working.add(P6_TO_PYTHON_WEEKDAY[int(match.group(1))])

        exceptions = _section(clndr_data or "", "Exceptions()(")
        if exceptions is not None:
            for match in _EXCEPTION_ENTRY.finditer(exceptions):
                body = _balanced_body(exceptions, match.start())
                day = serial_to_date(int(match.group(1)))
                if _WORK_PERIOD.search(body):
                    extra.add(day)
                else:
                    holidays.add(day)

        hours = hours_per_day if hours_per_day and hours_per_day > 0 else 8.0
        return cls(
            id=calendar_id,
            name=name,
            working_weekdays=frozenset(working),
            holidays=frozenset(holidays),
            extra_working_days=frozenset(d for d in extra if d.weekday() not in working),
            hours_per_day=hours,
            is_default=is_default,
        )

    @classmethod
    def standard(cls, hours_per_day: float = 8.0, working_weekdays=DEFAULT_WORKING_DAYS) -> "WorkCalendar":
        """Built-in Monday-Friday calendar used when an activity's calendar is unknown."""
        return cls(
            id=DEFAULT_CALENDAR_ID,
            name="Standard 5 Day",
            working_weekdays=frozenset(working_weekdays),
            hours_per_day=hours_per_day,
            is_default=True,
        )

    # =========================================================================
    # Day Tests
    # =========================================================================

    @property
    def has_working_time(self) -> bool:
        return bool(self.working_weekdays or self.extra_working_days)

    @property
    def has_regular_week(self) -> bool:
        """True when at least one weekday is normally worked."""
        return bool(self.working_weekdays)

    def is_working_day(self, day: date) -> bool:
        if day in self.holidays:
            return False
        if day in self.extra_working_days:
            return True
        return day.weekday() in self.working_weekdays

    def _check_usable(self) -> None:
        if not self.has_working_time:
            raise CalendarRangeError(self.id, "has no working days")

    def _step(self, day: date, delta: int) -> date:
        try:
            return day + timedelta(days=delta)
        except OverflowError:
            raise CalendarRangeError(self.id, f"cannot step past {day}") from None

    def next_working_day(self, day: date) -> date:
        """The given day if it is worked, else the first worked day after it."""
        self._check_usable()
        start = day
        for _ in range(_MAX_SCAN_DAYS):
            if self.is_working_day(day):
                return day
            day = self._step(day, 1)
        raise CalendarRangeError(self.id, f"has no working day after {start}")

    def previous_working_day(self, day: date) -> date:
        """The given day if it is worked, else the last worked day before it."""
        self._check_usable()
        start = day
        for _ in range(_MAX_SCAN_DAYS):
            if self.is_working_day(day):
                return day
            day = self._step(day, -1)
        raise CalendarRangeError(self.id, f"has no working day before {start}")

    # =========================================================================
    # Boundary Arithmetic
    # =========================================================================

    def _check_span(self, days: int) -> None:
        self._check_usable()
        if days > _MAX_SPAN_DAYS:
            raise CalendarRangeError(self.id, f"cannot span {days} working days")

    def advance(self, boundary: date, days: int) -> date:
        """
        Boundary reached after working ``days`` working days from ``boundary``.

        Raises:
            CalendarRangeError: If the span is too long or the calendar runs
                out of working days before it is covered
        """
        if days <= 0:
            return boundary
        self._check_span(days)
        day = boundary
        counted = 0
        idle = 0
        while counted < days:
            if self.is_working_day(day):
                counted += 1
                idle = 0
            else:
                idle += 1
                if idle > _MAX_SCAN_DAYS:
                    raise CalendarRangeError(self.id, f"has no working day after {boundary}")
            day = self._step(day, 1)
        return day

    def retreat(self, boundary: date, days: int) -> date:
        """Boundary ``days`` working days before ``boundary``."""
        if days <= 0:
            return boundary
        self._check_span(days)
        day = boundary
        counted = 0
        idle = 0
        while counted < days:
            day = self._step(day, -1)
            if self.is_working_day(day):
                counted += 1
                idle = 0
            else:
                idle += 1
                if idle > _MAX_SCAN_DAYS:
                    raise CalendarRangeError(self.id, f"has no working day before {boundary}")
        return day

    def shift(self, boundary: date, lag: int) -> date:
        """
        Apply a lag (negative = lead) and snap to the next working day.

        A lag of ``n`` leaves ``n`` idle working days after the boundary.
        """
        if lag >= 0:
            return self.next_working_day(self.advance(boundary, lag))
        return self.next_working_day(self.retreat(boundary, -lag))

    def working_days_between(self, start: date, end: date) -> int:
        """Signed number of working days in [start, end)."""
        if start == end:
            return 0
        sign = 1
        if end < start:
            start, end = end, start
            sign = -1
        if (end - start).days > _MAX_SPAN_DAYS * 2:
            raise CalendarRangeError(self.id, f"cannot count days between {start} and {end}")
        count = 0
        day = start
        while day < end:
            if self.is_working_day(day):
                count += 1
            day += timedelta(days=1)
        return sign * count

    def last_worked_day(self, start: date, finish_boundary: date) -> date:
        """Display finish date for an activity occupying [start, finish_boundary)."""
        if finish_boundary <= start:
            return start
        return self.previous_working_day(finish_boundary - timedelta(days=1))
