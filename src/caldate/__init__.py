# The MIT License (MIT)
#
# Copyright (c) The caldate authors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - Everything lives in one file, for the same reasons as before:
#   it's flat, has no circular imports, and is easy to vendor.
# - All timezone resolution goes through `_resolve_later`. If the
#   resolver is swapped or its gap behavior changes, `zoned_time_to_utc`
#   is the only place that needs to follow.
from __future__ import annotations

__version__ = "0.1.0"

import logging
import math
import re
from collections.abc import Mapping
from datetime import (
    date as _date,
    datetime as _datetime,
    timedelta as _timedelta,
    timezone as _timezone,
)
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal, Union, overload
from zoneinfo import ZoneInfo

__all__ = [
    "CalDate",
    "DEFAULTS",
    "DEFAULT_DURATION",
    "InvalidArgument",
    "MissingYear",
    "zoned_time_to_utc",
    "utc_to_zoned_time",
    "pad0",
    "to_int",
    "to_number",
    "SUNDAY",
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
]

logger = logging.getLogger(__name__)

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)

DEFAULT_DURATION = 24

DEFAULTS: Mapping[str, int] = MappingProxyType(
    {
        "year": 1900,
        "month": 1,
        "day": 1,
        "hour": 0,
        "minute": 0,
        "second": 0,
        "duration": DEFAULT_DURATION,
    }
)

OffsetUnit = Literal["d", "h", "m"]
Instant = Union[_datetime, _date]
DateInput = Union[_datetime, str, float]


class CalDate:
    """A calendar date and time, not bound to any timezone,
    plus a duration in hours.

    Fields may be set out of their usual range. They are brought back
    into range (carrying into larger fields) by :meth:`update`,
    which most operations call for you.

    Example
    -------

    >>> d = CalDate({"year": 2000, "month": 2, "day": 30, "hour": 25})
    >>> str(d)
    '2000-03-02 01:00:00'
    >>> d.duration
    24

    Note
    ----
    Passing ``month`` without ``year`` leaves ``year`` unset. Such a
    partial date can be filled in later with :meth:`set`, but can't be
    converted or formatted until then.
    """

    __slots__ = ("year", "month", "day", "hour", "minute", "second", "duration")

    year: int | None
    month: int
    day: int
    hour: int
    minute: int
    second: int
    duration: float

    def __init__(
        self, opts: Mapping[str, object] | Instant | CalDate | None = None
    ) -> None:
        for name, value in DEFAULTS.items():
            setattr(self, name, value)
        if isinstance(opts, Mapping):
            merged = {**DEFAULTS, **opts}
            if opts.get("month") and not opts.get("year"):
                merged["year"] = None
            opts = merged
        if opts is not None:
            self.set(opts)

    def set(self, opts: Mapping[str, object] | Instant | CalDate) -> CalDate:
        """Set fields from a datetime, another ``CalDate``, or a mapping.

        A datetime resets ``duration`` to the default. From a mapping,
        only known fields are taken. Values that can't be read as an
        integer leave the field as it was. ``duration`` keeps its
        fractions and is only applied if truthy.
        """
        if isinstance(opts, CalDate):
            for name in self.__slots__:
                setattr(self, name, getattr(opts, name))
        elif isinstance(opts, _date):
            self._assign(_as_naive(opts))
            self.duration = DEFAULT_DURATION
        else:
            for name in _FIELDS:
                if name not in opts:
                    continue
                value = opts[name]
                if value is None and name == "year":
                    self.year = None
                elif (i := to_int(value)) is not None:
                    setattr(self, name, i)
            if duration := opts.get("duration"):
                if isinstance(duration, (int, float)):
                    self.duration = duration
                else:
                    try:
                        self.duration = float(duration)  # type: ignore[arg-type]
                    except (TypeError, ValueError):
                        pass
        return self

    def is_equal_date(self, other: CalDate) -> bool:
        """Whether the calendar day (ignoring time) equals that of ``other``

        Example
        -------

        >>> CalDate({"year": 2000, "month": 2, "day": 30}).is_equal_date(
        ...     CalDate({"year": 2000, "month": 3, "day": 1}))
        True
        """
        self.update()
        return (
            self.year == other.year
            and self.month == other.month
            and self.day == other.day
        )

    def get_day(self) -> int:
        """The day of the week, where 0 is Sunday and 6 is Saturday

        Warning
        -------
        Unlike :meth:`~datetime.date.isoweekday`, the week starts on Sunday.
        """
        return self.to_date().isoweekday() % 7

    @overload
    def set_offset(self, number: Mapping[str, object], /) -> CalDate: ...

    @overload
    def set_offset(
        self, number: float | str | None = None, unit: OffsetUnit = "d"
    ) -> CalDate: ...

    def set_offset(self, number=None, unit="d"):
        """Move the date by a (possibly fractional) number of days,
        hours or minutes.

        The largest unit is truncated first and the remainder carried
        down into the smaller units, so the result is truncated to the
        second rather than rounded.

        Example
        -------

        >>> d = CalDate({"year": 2000})
        >>> d.set_offset(12.555, "h").to_iso_string()
        '2000-01-01T12:33:17Z'
        >>> d.set_offset({"number": -1, "unit": "d"}).to_iso_string()
        '1999-12-31T12:33:17Z'

        Raises
        ------
        InvalidArgument
            If the number isn't numeric, or the unit isn't one of
            ``"d"``, ``"h"``, ``"m"``.
        """
        if number:
            if isinstance(number, Mapping):
                unit = number.get("unit")
                number = number.get("number")
            days, hours, mins, secs = _decompose_offset(number, unit or "d")
            self.day += days
            self.hour += hours
            self.minute += mins
            self.second += secs
        return self.update()

    def set_time(
        self, hour: int = 0, minute: int = 0, second: int = 0
    ) -> CalDate:
        """Set the time of day, keeping the end of the date at midnight.

        ``duration`` becomes the number of hours left until the next
        midnight. Call :meth:`set_duration` afterwards for another end.
        """
        self.hour = hour
        self.minute = minute
        self.second = second
        self.duration = 24 - (hour + minute / 60 + second / 3600)
        return self.update()

    def set_duration(self, duration: float) -> CalDate:
        """Set the duration in hours"""
        self.duration = duration
        return self

    def update(self) -> CalDate:
        """Bring all fields back into their valid range.

        Does nothing while ``year`` is unset.
        """
        if self.year is not None:
            self._assign(self.to_date())
        return self

    def to_end_date(self) -> CalDate:
        """A new ``CalDate`` at the end of this one, i.e. moved forward
        by ``duration`` hours (to the minute).

        The new date has the default duration.
        """
        end = CalDate(self.to_date())
        end.minute += math.trunc(self.duration * 60)
        return end.update()

    def to_timezone(self, time_zone: str | None = None) -> _datetime:
        """The moment this date occurs in ``time_zone``, as an aware UTC
        datetime. Without a timezone, the naive datetime from
        :meth:`to_date` is returned.

        Example
        -------

        >>> CalDate({"year": 2000, "month": 7, "day": 1}).to_timezone(
        ...     "America/New_York")
        datetime.datetime(2000, 7, 1, 4, 0, tzinfo=datetime.timezone.utc)
        """
        if time_zone:
            return zoned_time_to_utc(self.to_string(), time_zone)
        return self.to_date()

    def from_timezone(
        self, instant: _datetime, time_zone: str | None = None
    ) -> CalDate:
        """Set the fields to the wall clock time of ``instant``
        in ``time_zone``, or in the system timezone if none is given."""
        return self.set(
            utc_to_zoned_time(instant, time_zone) if time_zone else instant
        )

    def to_date(self) -> _datetime:
        """The fields as a naive :class:`~datetime.datetime`

        Raises
        ------
        MissingYear
            If ``year`` is unset.
        """
        if self.year is None:
            raise MissingYear.for_caldate(self)
        year_overflow, month = divmod(self.month - 1, 12)
        return _datetime(self.year + year_overflow, month + 1, 1) + _timedelta(
            days=self.day - 1,
            hours=self.hour,
            minutes=self.minute,
            seconds=self.second,
        )

    def to_iso_string(self) -> str:
        """Same as ``to_string(iso=True)``"""
        return self.to_string(True)

    def to_string(self, iso: bool = False) -> str:
        """Format as ``YYYY-MM-DD HH:MM:SS``, or ``YYYY-MM-DDTHH:MM:SSZ``
        if ``iso`` is set.

        Warning
        -------
        The ``Z`` suffix is part of the format only. The fields are still
        local calendar time, not UTC.
        """
        d = CalDate(self.to_date())
        return (
            f"{pad0(d.year, 4)}-{pad0(d.month)}-{pad0(d.day)}"  # type: ignore[arg-type]
            f"{'T' if iso else ' '}"
            f"{pad0(d.hour)}:{pad0(d.minute)}:{pad0(d.second)}"
            f"{'Z' if iso else ''}"
        )

    __str__ = to_string

    def __repr__(self) -> str:
        if self.year is None:
            return (
                f"CalDate(year=None, month={self.month}, day={self.day}, "
                f"hour={self.hour}, minute={self.minute}, "
                f"second={self.second}, duration={self.duration})"
            )
        return f"CalDate({self}, duration={self.duration})"

    if not TYPE_CHECKING:  # pragma: no branch

        def __eq__(self, other: object) -> bool:
            """Compare all fields, including ``duration``, as they are.

            Example
            -------

            >>> CalDate({"year": 2000}) == CalDate({"year": 2000})
            True
            >>> CalDate({"year": 2000}) == CalDate({"year": 2000, "duration": 2})
            False
            """
            if not isinstance(other, CalDate):
                return NotImplemented
            return all(
                getattr(self, name) == getattr(other, name)
                for name in self.__slots__
            )

        __hash__ = None

    def copy(self) -> CalDate:
        """A new ``CalDate`` with the same fields"""
        return CalDate(self)

    __copy__ = copy

    def __deepcopy__(self, _: object) -> CalDate:
        return CalDate(self)

    def _assign(self, dt: _datetime) -> None:
        self.year = dt.year
        self.month = dt.month
        self.day = dt.day
        self.hour = dt.hour
        self.minute = dt.minute
        self.second = dt.second

    @staticmethod
    def to_year(year: int | str | Instant | None = None) -> int | None:
        """The year of a date, the integer in a string, or the
        current year if nothing is given.

        Example
        -------

        >>> CalDate.to_year("2000")
        2000
        >>> from datetime import date
        >>> CalDate.to_year(date(1999, 5, 1))
        1999
        """
        if not year:
            return _datetime.now().year
        elif isinstance(year, _date):
            return year.year
        elif isinstance(year, str):
            return to_int(year)
        return year


class InvalidArgument(ValueError):
    """An argument can't be interpreted, e.g. a non-numeric offset"""


class MissingYear(ValueError):
    """A calendar date without a year was used where a year is required"""

    @staticmethod
    def for_caldate(d: CalDate) -> MissingYear:
        return MissingYear(f"{d!r} has no year")


def zoned_time_to_utc(date: DateInput, time_zone: str) -> _datetime:
    """The UTC moment at which ``date`` is the wall clock time
    in ``time_zone``.

    Times that occur twice (when clocks are set back) resolve to the
    later occurrence. Times that are skipped (when clocks are set
    forward) resolve to the moment of the transition.

    Example
    -------

    >>> zoned_time_to_utc("2014-06-25 10:00:00", "America/Los_Angeles")
    datetime.datetime(2014, 6, 25, 17, 0, tzinfo=datetime.timezone.utc)
    >>> # 02:00 doesn't exist on this day, 03:00 does
    >>> zoned_time_to_utc("2023-03-12 02:00:00", "America/New_York")
    datetime.datetime(2023, 3, 12, 7, 0, tzinfo=datetime.timezone.utc)
    """
    wall = _to_wall_clock(date)
    zone = ZoneInfo(time_zone)
    result = _resolve_later(wall, zone)
    # Inside a gap, the resolver lands on the wall clock hour before
    # the transition
    if result.astimezone(zone).hour != wall.hour:
        logger.debug(
            "%s falls in a DST gap in %s, moving to the transition",
            wall,
            time_zone,
        )
        result += _timedelta(hours=1)
    return result


def utc_to_zoned_time(date: DateInput, time_zone: str) -> _datetime:
    """The wall clock time in ``time_zone`` at the given moment,
    as a naive datetime.

    Naive datetimes (and strings without offset) are taken to be
    in the system timezone.

    Example
    -------

    >>> utc_to_zoned_time("2014-06-25T10:00:00Z", "America/New_York")
    datetime.datetime(2014, 6, 25, 6, 0)
    """
    return _to_datetime(date).astimezone(ZoneInfo(time_zone)).replace(tzinfo=None)


def pad0(number: int | str, length: int = 2) -> str:
    """Pad a number with zeros on the left up to ``length`` characters

    >>> pad0(7)
    '07'
    """
    return str(number).rjust(length, "0")


def to_int(value: object) -> int | None:
    """Read an integer from the start of a string or number.

    Returns ``None`` if no integer can be read.

    Example
    -------

    >>> to_int(" 12abc")
    12
    >>> to_int(12.9)
    12
    >>> to_int("abc") is None
    True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.trunc(value) if math.isfinite(value) else None
    if isinstance(value, str) and (match := _match_int_prefix(value)):
        return int(match[1])
    return None


to_number = to_int


def _decompose_offset(number: object, unit: str) -> tuple[int, int, int, int]:
    if unit not in _OFFSET_UNITS:
        raise InvalidArgument(f"Unit must be one of 'd', 'h', 'm', got {unit!r}")
    try:
        number = float(number)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidArgument(f"Number required, got {number!r}") from None
    if not math.isfinite(number):
        raise InvalidArgument(f"Finite number required, got {number!r}")

    days = hours = 0
    if unit == "d":
        days = math.trunc(number)
        number = (number - days) * 24
    if unit in ("d", "h"):
        hours = math.trunc(math.fmod(number, 24))
        number = (number - hours) * 60
    mins = math.trunc(math.fmod(number, 60))
    number = (number - mins) * 60
    secs = math.trunc(math.fmod(number, 60))
    return days, hours, mins, secs


def _resolve_later(wall: _datetime, zone: ZoneInfo) -> _datetime:
    # fold=1 takes the offset after a transition: the later of two
    # repeated times, but the earlier wall clock inside a gap.
    return wall.replace(tzinfo=zone, fold=1).astimezone(_UTC)


def _to_datetime(value: DateInput) -> _datetime:
    if isinstance(value, _datetime):
        return value
    elif isinstance(value, str):
        if not _match_datetime_str(value):
            raise InvalidArgument(f"Can't read a datetime from {value!r}")
        if value.endswith(("Z", "z")):
            return _fromisoformat(value[:-1]).replace(tzinfo=_UTC)
        return _fromisoformat(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return _datetime.fromtimestamp(value)
    raise InvalidArgument(f"Can't read a datetime from {value!r}")


def _to_wall_clock(value: DateInput) -> _datetime:
    return _as_naive(_to_datetime(value))


def _as_naive(d: Instant) -> _datetime:
    # aware values are read in the system timezone
    if not isinstance(d, _datetime):
        return _datetime(d.year, d.month, d.day)
    if d.tzinfo is not None:
        d = d.astimezone()
    return d.replace(tzinfo=None, microsecond=0, fold=0)


# Helpers that pre-compute/lookup as much as possible
_UTC = _timezone.utc
_FIELDS = ("year", "month", "day", "hour", "minute", "second")
_OFFSET_UNITS = frozenset(("d", "h", "m"))
_fromisoformat = _datetime.fromisoformat
_match_int_prefix = re.compile(r"\s*([+-]?\d+)").match
# YYYY-MM-DD HH:MM:SS[.ffffff][Z|+HH:MM]
_match_datetime_str = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d{3}(?:\d{3})?)?"
    r"(?:[Zz]|[+-]\d{2}:\d{2})?"
).fullmatch
