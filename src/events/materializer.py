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
Event Materializer Module

Turns generated occurrences into stored events. Occurrences already present
in the store (same name and start time) are skipped, so repeated runs with
the same horizon converge instead of growing the store.
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import Optional

from .models import Event, new_id
from .occurrences import generate_occurrences, occurrence_duration

logger = logging.getLogger("groupkeeper.events.materializer")

DEFAULT_DAYS_AHEAD = 30


def clone_occurrence(base: Event, start_time: datetime, duration: timedelta) -> Event:
    """
    Copy a base event onto a new start time.

    Collections are deep-copied so the clone can be edited independently.
    The clone has not been published anywhere yet and has fired no rules.
    """
    return Event(
        id=new_id(),
        name=base.name,
        category=base.category,
        description=base.description,
        visibility=base.visibility,
        group_id=base.group_id,
        tags=copy.deepcopy(base.tags),
        languages=copy.deepcopy(base.languages),
        platforms=copy.deepcopy(base.platforms),
        external_id=None,
        external_image_id=base.external_image_id,
        thumbnail_path=base.thumbnail_path,
        send_notification=base.send_notification,
        followed=base.followed,
        start_time=start_time,
        end_time=start_time + duration,
        recurrence=copy.deepcopy(base.recurrence),
        executed_rule_ids=set(),
    )


class EventMaterializer:
    """Appends upcoming occurrences of recurring events to an event list."""

    def __init__(self, days_ahead: int = DEFAULT_DAYS_AHEAD):
        self.days_ahead = days_ahead

    def materialize(
        self,
        events: list[Event],
        now: datetime,
        days_ahead: Optional[int] = None,
    ) -> bool:
        """
        Generate occurrences for every recurring event in the list.

        Args:
            events: The event store; new occurrences are appended in place
            now: Current local wall-clock time
            days_ahead: Override for the configured horizon

        Returns:
            True if at least one event was added
        """
        horizon = now + timedelta(days=self.days_ahead if days_ahead is None else days_ahead)
        existing = {(e.name, e.start_time) for e in events}
        added = 0

        # Iterate a snapshot; clones appended below are not expanded again this pass
        for base in list(events):
            if not base.recurrence.enabled:
                continue

            duration = occurrence_duration(base.start_time, base.end_time)
            for start_time in generate_occurrences(base.start_time, base.recurrence, now, horizon):
                key = (base.name, start_time)
                if key in existing:
                    continue

                events.append(clone_occurrence(base, start_time, duration))
                existing.add(key)
                added += 1

        if added:
            logger.info(f"Materialized {added} occurrence(s) up to {horizon:%Y-%m-%d %H:%M}")
        return added > 0
