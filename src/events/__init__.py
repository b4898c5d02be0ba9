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
Group Events Package

Calendar events with recurrence expansion and materialization.
"""

from .models import (
    Event,
    EventTemplate,
    IntervalPattern,
    MonthlyPattern,
    RecurrenceKind,
    RecurrenceRule,
    SpecificDatesPattern,
    WeeklyPattern,
    WEEKDAY_NAMES,
)
from .occurrences import OccurrenceSequence, generate_occurrences, occurrence_duration
from .materializer import EventMaterializer, clone_occurrence
from .store import EventStore, StoreError

__all__ = [
    "Event",
    "EventTemplate",
    "IntervalPattern",
    "MonthlyPattern",
    "RecurrenceKind",
    "RecurrenceRule",
    "SpecificDatesPattern",
    "WeeklyPattern",
    "WEEKDAY_NAMES",
    "OccurrenceSequence",
    "generate_occurrences",
    "occurrence_duration",
    "EventMaterializer",
    "clone_occurrence",
    "EventStore",
    "StoreError",
]
