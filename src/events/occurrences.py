# groupkeeper - Group Event Scheduling and Automation
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Occurrence Generator Module

Expands a recurrence rule into concrete future start times within a horizon.
Every pattern keeps the base event's time of day, so occurrences are built
as "calendar date + base time".

Pure functions only: no I/O and no hidden state, so the same inputs always
produce the same sequence.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, Optional

from .models import (
    IntervalPattern,
    MonthlyPattern,
    RecurrenceRule,
    SpecificDatesPattern,
    WeeklyPattern,
)


class OccurrenceSequence:
    """
    Lazily evaluated, finite and restartable sequence of start times.

    Each call to iter() runs the expansion from the beginning.
    """

    def __init__(
        self,
        start_time: datetime,
        rule: RecurrenceRule,
        start_floor: datetime,
        horizon: datetime,
    ):
        self.start_time = start_time
        self.rule = rule
        self.start_floor = max(start_floor, start_time)
        self.horizon = horizon

    def __iter__(self) -> Iterator[datetime]:
        rule = self.rule
        if not rule.enabled or rule.pattern is None:
            return

        generate = _GENERATORS.get(type(rule.pattern))
        if generate is None:
            raise TypeError(f"Unsupported recurrence pattern: {type(rule.pattern).__name__}")

        for candidate in generate(self):
            # Never re-emit the original event
            if candidate <= self.start_time:
                continue
            if candidate > self.horizon:
                return
            yield candidate

    def __repr__(self) -> str:
        return (
            f"OccurrenceSequence(kind={self.rule.kind.value}, "
            f"floor={self.start_floor.isoformat()}, horizon={self.horizon.isoformat()})"
        )


def generate_occurrences(
    start_time: datetime,
    rule: RecurrenceRule,
    start_floor: datetime,
    horizon: datetime,
) -> OccurrenceSequence:
    """
    Expand a recurrence rule into future start times.

    Args:
        start_time: The base event's start (wall-clock)
        rule: Recurrence rule attached to the base event
        start_floor: Lower bound, usually "now"; raised to start_time if earlier
        horizon: Latest instant an occurrence may start at

    Returns:
        Restartable sequence of occurrence start times, ascending
    """
    return OccurrenceSequence(start_time, rule, start_floor, horizon)


def occurrence_duration(start_time: datetime, end_time: datetime) -> timedelta:
    """
    Duration copied onto every occurrence.

    Callers must reject end_time <= start_time before the event is stored;
    a non-positive duration is passed through as-is.
    """
    return end_time - start_time


def _at_base_time(day: date, base_time: time) -> datetime:
    return datetime.combine(day, base_time)


def _past_until(day: date, until: Optional[date]) -> bool:
    return until is not None and day > until


def _weekly(seq: OccurrenceSequence) -> Iterator[datetime]:
    pattern: WeeklyPattern = seq.rule.pattern
    if not pattern.days_of_week:
        return

    base_time = seq.start_time.time()
    cursor = seq.start_floor.date()
    last_day = seq.horizon.date()
    while cursor <= last_day:
        if _past_until(cursor, seq.rule.until):
            return
        if cursor.weekday() in pattern.days_of_week:
            yield _at_base_time(cursor, base_time)
        cursor += timedelta(days=1)


def _monthly(seq: OccurrenceSequence) -> Iterator[datetime]:
    pattern: MonthlyPattern = seq.rule.pattern
    month_days = sorted(d for d in pattern.month_days if 1 <= d <= 31)
    if not month_days:
        return

    base_time = seq.start_time.time()
    year, month = seq.start_floor.year, seq.start_floor.month
    last = (seq.horizon.year, seq.horizon.month)

    while (year, month) <= last:
        for day in month_days:
            try:
                candidate = _at_base_time(date(year, month, day), base_time)
            except ValueError:
                # Day does not exist in this month (e.g. April 31st)
                continue

            if candidate < seq.start_floor:
                continue
            if _past_until(candidate.date(), seq.rule.until) or candidate > seq.horizon:
                return
            yield candidate

        month += 1
        if month > 12:
            year, month = year + 1, 1


def _specific_dates(seq: OccurrenceSequence) -> Iterator[datetime]:
    pattern: SpecificDatesPattern = seq.rule.pattern
    base_time = seq.start_time.time()
    floor_day = seq.start_floor.date()

    for day in sorted(pattern.dates):
        if day < floor_day:
            continue
        candidate = _at_base_time(day, base_time)
        if _past_until(day, seq.rule.until) or candidate > seq.horizon:
            return
        yield candidate


def _legacy_interval(seq: OccurrenceSequence) -> Iterator[datetime]:
    pattern: IntervalPattern = seq.rule.pattern
    step = timedelta(days=max(1, pattern.interval_days))

    candidate = seq.start_time + step
    while not _past_until(candidate.date(), seq.rule.until) and candidate <= seq.horizon:
        yield candidate
        candidate += step


_GENERATORS: dict[type, Callable[[OccurrenceSequence], Iterator[datetime]]] = {
    WeeklyPattern: _weekly,
    MonthlyPattern: _monthly,
    SpecificDatesPattern: _specific_dates,
    IntervalPattern: _legacy_interval,
}
