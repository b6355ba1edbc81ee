"""
Conversions between absolute instants and wall-clock time in IANA zones.

All instants leaving this module are pendulum ``DateTime`` values in UTC.
Wall-clock to instant conversion uses the zone's own offset rules with an
explicit disambiguation policy:

- a wall time inside a spring-forward gap is read with the offset in force
  before the transition, which moves it forward past the gap
  (02:30 becomes 03:30 on the US change day);
- a wall time repeated by a fall-back transition resolves to the earlier
  of the two instants.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .models import DayOfWeek

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]

_OFFSET_SUFFIX = re.compile(r"(Z|[+-]\d{2}:?\d{2})$")

COMMON_TIMEZONES: List[Tuple[str, str]] = [
    ("America/New_York", "Eastern Time (US & Canada)"),
    ("America/Chicago", "Central Time (US & Canada)"),
    ("America/Denver", "Mountain Time (US & Canada)"),
    ("America/Los_Angeles", "Pacific Time (US & Canada)"),
    ("America/Phoenix", "Arizona"),
    ("America/Anchorage", "Alaska"),
    ("Pacific/Honolulu", "Hawaii"),
    ("America/Toronto", "Toronto"),
    ("America/Mexico_City", "Mexico City"),
    ("America/Sao_Paulo", "São Paulo"),
    ("Europe/London", "London"),
    ("Europe/Paris", "Paris"),
    ("Europe/Berlin", "Berlin"),
    ("Europe/Madrid", "Madrid"),
    ("Asia/Dubai", "Dubai"),
    ("Asia/Kolkata", "Mumbai, Kolkata, New Delhi"),
    ("Asia/Singapore", "Singapore"),
    ("Asia/Tokyo", "Tokyo"),
    ("Australia/Sydney", "Sydney"),
    ("Pacific/Auckland", "Auckland"),
]


@dataclass(frozen=True)
class WallClock:
    hour: int
    minute: int
    weekday: DayOfWeek


@dataclass(frozen=True)
class DateParts:
    """Calendar date of an instant in some zone. ``month`` is 1-based."""
    year: int
    month: int
    day: int

    def to_date(self) -> Date:
        return pendulum.date(self.year, self.month, self.day)

    def to_date_string(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


def utc_now() -> DateTime:
    return pendulum.now("UTC")


def is_valid_timezone(name: Optional[str]) -> bool:
    """Check whether ``name`` is a zone known to the IANA database."""
    if not name:
        return False
    try:
        pendulum.timezone(name)
    except (ValueError, LookupError):
        return False
    return True


def first_available(
    resolvers: Iterable[Union[Callable[[], Optional[str]], Optional[str]]],
    default: str,
) -> str:
    """
    Walk an ordered list of timezone sources and return the first non-empty one.

    Each entry is either a value or a zero-argument callable; callables are
    only invoked when every earlier source came up empty.
    """
    for resolver in resolvers:
        value = resolver() if callable(resolver) else resolver
        if value:
            return value
    return default


class TimezoneResolver:
    """
    Converts between UTC instants and wall-clock fields in named zones.

    Failures never propagate: an unusable instant is replaced with "now" and an
    unknown zone degrades to UTC fields, both logged as warnings.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def now(self) -> DateTime:
        return self._clock().in_timezone("UTC")

    def coerce_instant(self, value: Any) -> DateTime:
        """Normalise a datetime or ISO string to a UTC ``DateTime``."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return pendulum.instance(value, tz="UTC")
            return pendulum.instance(value).in_timezone("UTC")

        if isinstance(value, str):
            try:
                parsed = pendulum.parse(value, tz="UTC")
            except ValueError:
                parsed = None
            if isinstance(parsed, DateTime):
                return parsed.in_timezone("UTC")

        logger.warning("Invalid instant %r; substituting current time", value)
        return self.now()

    def localize(self, instant: Any, zone: Optional[str]) -> DateTime:
        """Express ``instant`` in ``zone``, falling back to UTC."""
        moment = self.coerce_instant(instant)
        if not zone:
            logger.warning("No timezone given for %s; using UTC fields", moment)
            return moment
        try:
            return moment.in_timezone(zone)
        except (ValueError, LookupError) as e:
            logger.warning("Could not resolve timezone %r (%s); using UTC fields", zone, e)
            return moment

    def wall_clock(self, instant: Any, zone: Optional[str]) -> WallClock:
        local = self.localize(instant, zone)
        return WallClock(
            hour=local.hour,
            minute=local.minute,
            weekday=DayOfWeek.from_isoweekday(local.isoweekday()),
        )

    def date_parts(self, instant: Any, zone: Optional[str]) -> DateParts:
        local = self.localize(instant, zone)
        return DateParts(year=local.year, month=local.month, day=local.day)

    def local_date(self, instant: Any, zone: Optional[str]) -> Date:
        return self.date_parts(instant, zone).to_date()

    def to_utc(
        self,
        year: int,
        month: int,
        day: int,
        hour: int,
        minute: int,
        zone: Optional[str],
        *,
        second: int = 0,
    ) -> DateTime:
        """
        Return the UTC instant whose wall-clock time in ``zone`` is the given one.

        Raises:
            ValueError: If the calendar fields themselves are invalid
        """
        wall = datetime(year, month, day, hour, minute, second)

        try:
            if not zone:
                raise ValueError("empty timezone name")
            tz = pendulum.timezone(zone)
        except (ValueError, LookupError) as e:
            logger.warning(
                "Unknown timezone %r (%s); interpreting %s as UTC", zone, e, wall.isoformat()
            )
            return pendulum.instance(wall, tz="UTC")

        earlier = wall.replace(tzinfo=tz, fold=0).utcoffset()
        later = wall.replace(tzinfo=tz, fold=1).utcoffset()

        if earlier < later:
            logger.warning(
                "%s does not exist in %s; shifting forward by %s",
                wall.isoformat(), zone, later - earlier,
            )
        elif earlier > later:
            logger.debug("%s occurs twice in %s; using the earlier instant", wall.isoformat(), zone)

        return pendulum.instance(wall - earlier, tz="UTC")

    def date_to_utc(self, day: Date, hour: int, minute: int, zone: Optional[str]) -> DateTime:
        return self.to_utc(day.year, day.month, day.day, hour, minute, zone)

    def parse_in_timezone(self, text: str, zone: Optional[str]) -> DateTime:
        """
        Parse ``YYYY-MM-DDTHH:mm[:ss]`` as wall-clock time in ``zone``.

        Strings carrying an explicit offset or ``Z`` are taken as-is.

        Raises:
            ValueError: If the text cannot be parsed
        """
        text = text.strip()
        if _OFFSET_SUFFIX.search(text):
            return pendulum.parse(text).in_timezone("UTC")

        fields = pendulum.parse(text, tz="UTC")
        return self.to_utc(
            fields.year, fields.month, fields.day, fields.hour, fields.minute, zone,
            second=fields.second,
        )
