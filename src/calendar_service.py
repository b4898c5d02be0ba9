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
Calendar Service

Single writer for the shared event, rule and template lists. Every mutation,
whether user-initiated or tick-driven, runs under one asyncio.Lock, and
readers only ever receive deep-copied snapshots.
"""

import asyncio
import copy
import logging
from datetime import datetime
from typing import Optional

from analytics import track
from automation.config import AutomationConfig
from automation.engine import AutomationEngine
from automation.models import AutomationRule
from events.materializer import EventMaterializer
from events.models import Event, EventTemplate, new_id
from events.store import EventStore, StoreError

logger = logging.getLogger("groupkeeper.calendar_service")


class CalendarService:
    """
    Owns the in-memory calendar and funnels all writes through one lock.

    The automation engine and the materializer mutate the same lists the
    user edits, so both run inside the lock as well.
    """

    def __init__(
        self,
        store: EventStore,
        engine: AutomationEngine,
        materializer: Optional[EventMaterializer] = None,
        config: Optional[AutomationConfig] = None,
    ):
        """
        Initialize the calendar service.

        Args:
            store: Persistence for events, rules and templates
            engine: Automation engine run on each tick
            materializer: Recurring event expander
            config: Horizons and timezone
        """
        self.store = store
        self.engine = engine
        self.config = config or engine.config
        self.materializer = materializer or EventMaterializer(self.config.days_ahead)
        self._events: list[Event] = []
        self._rules: list[AutomationRule] = []
        self._templates: list[EventTemplate] = []
        self._lock = asyncio.Lock()

    def local_now(self) -> datetime:
        """Current wall-clock time in the calendar's timezone (naive)."""
        return self.engine.now().astimezone(self.config.tz).replace(tzinfo=None)

    async def load(self) -> None:
        """Replace the in-memory calendar with the stored one."""
        async with self._lock:
            self._events = await self.store.load_events()
            self._rules = await self.store.load_rules()
            self._templates = await self.store.load_templates()
        logger.info(
            f"Loaded {len(self._events)} event(s), {len(self._rules)} rule(s), "
            f"{len(self._templates)} template(s)"
        )

    # =========================================================================
    # Snapshots
    # =========================================================================

    def events_snapshot(self) -> list[Event]:
        return copy.deepcopy(sorted(self._events, key=lambda e: e.start_time))

    def rules_snapshot(self) -> list[AutomationRule]:
        return copy.deepcopy(self._rules)

    def templates_snapshot(self) -> list[EventTemplate]:
        return copy.deepcopy(sorted(self._templates, key=lambda t: t.name))

    # =========================================================================
    # Events
    # =========================================================================

    async def add_or_update_event(self, event: Event) -> None:
        """
        Insert a new event or replace the stored one with the same id.

        The caller usually edits an older snapshot, so rule ids fired since
        then are kept: executed_rule_ids only ever grows.
        """
        async with self._lock:
            incoming = copy.deepcopy(event)
            existing = _find(self._events, incoming.id)
            if existing is not None:
                incoming.executed_rule_ids |= existing.executed_rule_ids
            _upsert(self._events, incoming)
            await self._save_events()

    async def delete_event(self, event_id: str) -> bool:
        async with self._lock:
            removed = _remove(self._events, event_id)
            if removed:
                await self._save_events()
        return removed

    async def duplicate_event(
        self,
        event_id: str,
        new_start: datetime,
        new_end: datetime,
    ) -> Optional[Event]:
        """
        Copy an event to a new time slot.

        Returns:
            The new event, or None if the source does not exist
        """
        async with self._lock:
            source = _find(self._events, event_id)
            if source is None:
                return None

            clone = copy.deepcopy(source)
            clone.id = new_id()
            clone.start_time = new_start
            clone.end_time = new_end
            clone.external_id = None
            clone.followed = False
            clone.executed_rule_ids = set()

            self._events.append(clone)
            await self._save_events()

        logger.info(f"Duplicated event {event_id} as {clone.id} at {new_start:%Y-%m-%d %H:%M}")
        return copy.deepcopy(clone)

    async def refresh_recurring_events(self, days_ahead: Optional[int] = None) -> bool:
        """
        Materialize upcoming occurrences of recurring events.

        Args:
            days_ahead: Horizon override; defaults to the configured horizon

        Returns:
            True if events were added (and saved)
        """
        async with self._lock:
            added = self.materializer.materialize(self._events, self.local_now(), days_ahead)
            if added:
                await self._save_events()

        if added:
            track("events_materialized", "events", properties={"days_ahead": days_ahead})
        return added

    # =========================================================================
    # Automation rules
    # =========================================================================

    async def add_or_update_rule(self, rule: AutomationRule) -> None:
        async with self._lock:
            _upsert(self._rules, copy.deepcopy(rule))
            await self.store.save_rules(self._rules)

    async def delete_rule(self, rule_id: str) -> bool:
        async with self._lock:
            removed = _remove(self._rules, rule_id)
            if removed:
                await self.store.save_rules(self._rules)
        return removed

    async def run_automation_tick(self) -> bool:
        """Run one automation scan. Returns True if any rule fired."""
        async with self._lock:
            return await self.engine.run_once(self._events, self._rules)

    # =========================================================================
    # Templates
    # =========================================================================

    async def add_or_update_template(self, template: EventTemplate) -> None:
        async with self._lock:
            _upsert(self._templates, copy.deepcopy(template))
            await self.store.save_templates(self._templates)

    async def delete_template(self, template_id: str) -> bool:
        async with self._lock:
            removed = _remove(self._templates, template_id)
            if removed:
                await self.store.save_templates(self._templates)
        return removed

    async def create_from_template(
        self,
        template_id: str,
        start: datetime,
        end: datetime,
    ) -> Optional[Event]:
        """
        Create an event from a template's defaults.

        Returns:
            The new event, or None if the template does not exist
        """
        async with self._lock:
            template = _find(self._templates, template_id)
            if template is None:
                return None

            event = Event(
                name=template.name,
                category=template.category,
                description=template.description,
                visibility=template.visibility,
                group_id=template.group_id,
                tags=list(template.tags),
                languages=list(template.languages),
                platforms=list(template.platforms),
                thumbnail_path=template.thumbnail_path,
                send_notification=template.send_notification,
                start_time=start,
                end_time=end,
            )
            self._events.append(event)
            await self._save_events()

        return copy.deepcopy(event)

    async def _save_events(self) -> None:
        """Persist the event list. Caller holds the lock."""
        try:
            await self.store.save_events(self._events)
        except StoreError:
            # The in-memory list is ahead of the store; the next tick saves it
            self.engine.mark_dirty()
            raise


def _find(items: list, item_id: str):
    return next((item for item in items if item.id == item_id), None)


def _upsert(items: list, item) -> None:
    for idx, existing in enumerate(items):
        if existing.id == item.id:
            items[idx] = item
            return
    items.append(item)


def _remove(items: list, item_id: str) -> bool:
    before = len(items)
    items[:] = [item for item in items if item.id != item_id]
    return len(items) < before
