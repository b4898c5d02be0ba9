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

"""Tests for recurring event materialization."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from events.materializer import EventMaterializer, clone_occurrence
from events.models import Event, RecurrenceRule, WeeklyPattern

NOW = datetime(2024, 1, 1, 12, 0)


def weekly_event(**overrides) -> Event:
    fields = dict(
        name="Movie Night",
        start_time=datetime(2024, 1, 1, 18, 0),
        end_time=datetime(2024, 1, 1, 19, 0),
        group_id="grp_1",
        tags=["movies", "chill"],
        languages=["eng"],
        platforms=["standalonewindows"],
        external_id="ext_base",
        recurrence=RecurrenceRule(enabled=True, pattern=WeeklyPattern(frozenset({0}))),
        executed_rule_ids={"rule_a"},
    )
    fields.update(overrides)
    return Event(**fields)


class TestMaterialize:
    """Appending occurrences to the event list."""

    def test_adds_occurrences_within_horizon(self):
        base = weekly_event()
        events = [base]

        added = EventMaterializer(days_ahead=30).materialize(events, NOW)

        assert added is True
        starts = sorted(e.start_time for e in events if e is not base)
        assert starts == [
            datetime(2024, 1, 8, 18, 0),
            datetime(2024, 1, 15, 18, 0),
            datetime(2024, 1, 22, 18, 0),
            datetime(2024, 1, 29, 18, 0),
        ]

    def test_second_run_adds_nothing(self):
        events = [weekly_event()]
        materializer = EventMaterializer(days_ahead=30)

        assert materializer.materialize(events, NOW) is True
        count = len(events)

        assert materializer.materialize(events, NOW) is False
        assert len(events) == count

    def test_extending_horizon_adds_only_new_dates(self):
        events = [weekly_event()]
        materializer = EventMaterializer()

        materializer.materialize(events, NOW, days_ahead=14)
        materializer.materialize(events, NOW, days_ahead=45)

        keys = [(e.name, e.start_time) for e in events]
        assert len(keys) == len(set(keys))
        assert max(e.start_time for e in events) == datetime(2024, 2, 12, 18, 0)

    def test_existing_name_and_start_is_not_duplicated(self):
        base = weekly_event()
        manual = Event(
            name="Movie Night",
            start_time=datetime(2024, 1, 8, 18, 0),
            end_time=datetime(2024, 1, 8, 20, 0),
        )
        events = [base, manual]

        EventMaterializer(days_ahead=30).materialize(events, NOW)

        jan_8 = [e for e in events if e.start_time == datetime(2024, 1, 8, 18, 0)]
        assert jan_8 == [manual]
        assert len(events) == 5

    def test_same_start_different_name_is_kept(self):
        base = weekly_event()
        other = Event(
            name="Karaoke",
            start_time=datetime(2024, 1, 8, 18, 0),
            end_time=datetime(2024, 1, 8, 19, 0),
        )
        events = [base, other]

        EventMaterializer(days_ahead=30).materialize(events, NOW)

        assert len(events) == 6

    def test_non_recurring_events_ignored(self):
        events = [weekly_event(recurrence=RecurrenceRule())]
        assert EventMaterializer().materialize(events, NOW) is False
        assert len(events) == 1

    def test_uses_configured_horizon_by_default(self):
        events = [weekly_event()]
        EventMaterializer(days_ahead=8).materialize(events, NOW)
        assert [e.start_time for e in events[1:]] == [datetime(2024, 1, 8, 18, 0)]


class TestCloneOccurrence:
    """Clone independence and field handling."""

    def test_end_is_start_plus_base_duration(self):
        base = weekly_event(end_time=datetime(2024, 1, 1, 20, 30))
        start = datetime(2024, 1, 8, 18, 0)

        clone = clone_occurrence(base, start, base.duration)

        assert clone.start_time == start
        assert clone.end_time == datetime(2024, 1, 8, 20, 30)

    def test_clone_is_independent(self):
        base = weekly_event()
        clone = clone_occurrence(base, datetime(2024, 1, 8, 18, 0), timedelta(hours=1))

        clone.tags.append("extra")
        clone.languages.clear()

        assert base.tags == ["movies", "chill"]
        assert base.languages == ["eng"]
        assert clone.id != base.id

    def test_clone_resets_publication_and_firing_state(self):
        base = weekly_event(followed=True)
        clone = clone_occurrence(base, datetime(2024, 1, 8, 18, 0), timedelta(hours=1))

        assert clone.external_id is None
        assert clone.executed_rule_ids == set()
        assert clone.followed is True
        assert clone.recurrence == base.recurrence
        assert clone.group_id == "grp_1"

    def test_materialized_clones_have_fresh_ids(self):
        events = [weekly_event()]
        EventMaterializer(days_ahead=30).materialize(events, NOW)
        ids = [e.id for e in events]
        assert len(ids) == len(set(ids))
