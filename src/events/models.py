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
Event Models

Calendar events, event templates and the recurrence rules attached to them.
Start and end times are naive local wall-clock datetimes.

Documents produced by to_dict() are JSON-compatible and are what the store
persists. from_dict() is tolerant of older documents: missing or null
collections load as empty.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def new_id() -> str:
    """Generate an opaque unique id."""
    return uuid.uuid4().hex


class RecurrenceKind(str, Enum):
    """Serialized recurrence kinds."""

    NONE = "None"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    SPECIFIC_DATES = "SpecificDates"
    LEGACY_INTERVAL = "LegacyInterval"


@dataclass(frozen=True)
class WeeklyPattern:
    """Repeat on the given weekdays (Monday=0 ... Sunday=6)."""

    days_of_week: frozenset = frozenset()


@dataclass(frozen=True)
class MonthlyPattern:
    """Repeat on the given days of each month (1-31)."""

    month_days: frozenset = frozenset()


@dataclass(frozen=True)
class SpecificDatesPattern:
    """Repeat on an explicit list of calendar dates."""

    dates: tuple = ()


@dataclass(frozen=True)
class IntervalPattern:
    """Repeat every N days from the original start."""

    interval_days: int = 7


Pattern = Union[WeeklyPattern, MonthlyPattern, SpecificDatesPattern, IntervalPattern]

_PATTERN_KINDS = {
    WeeklyPattern: RecurrenceKind.WEEKLY,
    MonthlyPattern: RecurrenceKind.MONTHLY,
    SpecificDatesPattern: RecurrenceKind.SPECIFIC_DATES,
    IntervalPattern: RecurrenceKind.LEGACY_INTERVAL,
}


@dataclass(frozen=True)
class RecurrenceRule:
    """How an event repeats. A rule without a pattern never repeats."""

    enabled: bool = False
    pattern: Optional[Pattern] = None
    until: Optional[date] = None

    @property
    def kind(self) -> RecurrenceKind:
        if self.pattern is None:
            return RecurrenceKind.NONE
        return _PATTERN_KINDS[type(self.pattern)]

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "enabled": self.enabled,
            "type": self.kind.value,
            "until": self.until.isoformat() if self.until else None,
        }
        pattern = self.pattern
        if isinstance(pattern, WeeklyPattern):
            doc["days_of_week"] = [WEEKDAY_NAMES[d] for d in sorted(pattern.days_of_week)]
        elif isinstance(pattern, MonthlyPattern):
            doc["month_days"] = sorted(pattern.month_days)
        elif isinstance(pattern, SpecificDatesPattern):
            doc["specific_dates"] = [d.isoformat() for d in sorted(pattern.dates)]
        elif isinstance(pattern, IntervalPattern):
            doc["interval_days"] = pattern.interval_days
        return doc

    @classmethod
    def from_dict(cls, doc: Optional[dict[str, Any]]) -> "RecurrenceRule":
        """
        Build a rule from a stored document.

        Documents written before typed patterns existed carry only
        ``enabled`` and ``interval_days``; those keep repeating on the
        fixed interval.
        """
        if not doc:
            return cls()

        enabled = bool(doc.get("enabled", False))
        until = _parse_date(doc.get("until"))
        kind = doc.get("type") or RecurrenceKind.NONE.value

        pattern: Optional[Pattern]
        if kind == RecurrenceKind.WEEKLY.value:
            days = doc.get("days_of_week") or []
            pattern = WeeklyPattern(frozenset(_parse_weekday(d) for d in days))
        elif kind == RecurrenceKind.MONTHLY.value:
            pattern = MonthlyPattern(frozenset(int(d) for d in doc.get("month_days") or []))
        elif kind == RecurrenceKind.SPECIFIC_DATES.value:
            dates = doc.get("specific_dates") or []
            pattern = SpecificDatesPattern(tuple(sorted({_parse_date(d) for d in dates})))
        elif kind == RecurrenceKind.LEGACY_INTERVAL.value or enabled:
            pattern = IntervalPattern(int(doc.get("interval_days") or 7))
        else:
            pattern = None

        return cls(enabled=enabled, pattern=pattern, until=until)


@dataclass
class Event:
    """A calendar event owned by a group."""

    name: str
    start_time: datetime
    end_time: datetime
    id: str = field(default_factory=new_id)
    category: str = "Other"
    description: str = ""
    visibility: str = "Public"
    group_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    external_id: Optional[str] = None
    external_image_id: Optional[str] = None
    thumbnail_path: Optional[str] = None
    send_notification: bool = False
    followed: bool = False
    recurrence: RecurrenceRule = field(default_factory=RecurrenceRule)
    executed_rule_ids: set[str] = field(default_factory=set)

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "visibility": self.visibility,
            "group_id": self.group_id,
            "tags": list(self.tags),
            "languages": list(self.languages),
            "platforms": list(self.platforms),
            "external_id": self.external_id,
            "external_image_id": self.external_image_id,
            "thumbnail_path": self.thumbnail_path,
            "send_notification": self.send_notification,
            "followed": self.followed,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "recurrence": self.recurrence.to_dict(),
            "executed_rule_ids": sorted(self.executed_rule_ids),
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> "Event":
        return cls(
            id=doc.get("id") or new_id(),
            name=doc.get("name") or "",
            category=doc.get("category") or "Other",
            description=doc.get("description") or "",
            visibility=doc.get("visibility") or "Public",
            group_id=doc.get("group_id"),
            tags=list(doc.get("tags") or []),
            languages=list(doc.get("languages") or []),
            platforms=list(doc.get("platforms") or []),
            external_id=doc.get("external_id"),
            external_image_id=doc.get("external_image_id"),
            thumbnail_path=doc.get("thumbnail_path"),
            send_notification=bool(doc.get("send_notification", False)),
            followed=bool(doc.get("followed", False)),
            start_time=datetime.fromisoformat(doc["start_time"]),
            end_time=datetime.fromisoformat(doc["end_time"]),
            recurrence=RecurrenceRule.from_dict(doc.get("recurrence")),
            executed_rule_ids=set(doc.get("executed_rule_ids") or []),
        )


@dataclass
class EventTemplate:
    """Reusable event defaults for quickly creating events."""

    name: str
    id: str = field(default_factory=new_id)
    category: str = "Other"
    description: str = ""
    visibility: str = "Public"
    group_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    duration: timedelta = timedelta(hours=1)
    send_notification: bool = False
    thumbnail_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "visibility": self.visibility,
            "group_id": self.group_id,
            "tags": list(self.tags),
            "languages": list(self.languages),
            "platforms": list(self.platforms),
            "duration_minutes": int(self.duration.total_seconds() // 60),
            "send_notification": self.send_notification,
            "thumbnail_path": self.thumbnail_path,
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> "EventTemplate":
        return cls(
            id=doc.get("id") or new_id(),
            name=doc.get("name") or "",
            category=doc.get("category") or "Other",
            description=doc.get("description") or "",
            visibility=doc.get("visibility") or "Public",
            group_id=doc.get("group_id"),
            tags=list(doc.get("tags") or []),
            languages=list(doc.get("languages") or []),
            platforms=list(doc.get("platforms") or []),
            duration=timedelta(minutes=int(doc.get("duration_minutes") or 60)),
            send_notification=bool(doc.get("send_notification", False)),
            thumbnail_path=doc.get("thumbnail_path"),
        )


def _parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime string, keeping only the date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def _parse_weekday(value: Any) -> int:
    """Accept weekday names ("monday") or Python weekday numbers."""
    if isinstance(value, int):
        return value % 7
    return WEEKDAY_NAMES.index(str(value).strip().lower())
