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
Automation Engine Module

Evaluates automation rules against events once per tick and fires each
rule's action at most once per event. The only idempotency guard is the
event's executed_rule_ids set: a rule id is added only after the whole
firing completed without raising, and the event list is saved once per tick.
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

import pytz

from analytics import track
from events.models import Event

from .config import AutomationConfig
from .models import AutomationRule, FiringOutcome, FiringStatus, TriggerType

if TYPE_CHECKING:
    from events.store import EventStore

    from .actions import ActionExecutor

logger = logging.getLogger("groupkeeper.automation.engine")

TIME_FORMAT = "%Y-%m-%d %H:%M"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current aware UTC instant."""
    return datetime.now(pytz.UTC)


def to_utc(moment: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Interpret a naive wall-clock time in tz and convert it to UTC."""
    if moment.tzinfo is not None:
        return moment.astimezone(pytz.UTC)
    return tz.localize(moment).astimezone(pytz.UTC)


def trigger_instant(rule: AutomationRule, event: Event, tz: pytz.BaseTzInfo) -> datetime:
    """The UTC instant at which a rule's window opens for an event."""
    if rule.trigger_type is TriggerType.BEFORE_EVENT_START:
        return to_utc(event.start_time, tz) - rule.time_offset
    return to_utc(event.end_time, tz) + rule.time_offset


def evaluate_trigger(
    rule: AutomationRule,
    event: Event,
    now: datetime,
    tz: pytz.BaseTzInfo,
) -> bool:
    """
    Check whether a rule's trigger window is open for an event.

    BeforeEventStart windows close when the event starts, so events already
    in progress or over never fire. AfterEventEnd windows never close.
    """
    if now < trigger_instant(rule, event, tz):
        return False
    if rule.trigger_type is TriggerType.BEFORE_EVENT_START:
        return to_utc(event.start_time, tz) > now
    return True


def render_template(template: str, event: Event) -> str:
    """Substitute event placeholders into a title or body template."""
    if not template:
        return ""
    replacements = {
        "{EventName}": event.name,
        "{StartTime}": event.start_time.strftime(TIME_FORMAT),
        "{EndTime}": event.end_time.strftime(TIME_FORMAT),
        "{Description}": event.description,
        "{Category}": event.category,
    }
    rendered = template
    for placeholder, value in replacements.items():
        rendered = rendered.replace(placeholder, value or "")
    return rendered


class AutomationEngine:
    """
    Scans enabled rules against events and fires due actions.

    Not safe for concurrent use: callers serialize run_once() calls
    (see CalendarService).
    """

    def __init__(
        self,
        executor: "ActionExecutor",
        store: "EventStore",
        config: Optional[AutomationConfig] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the automation engine.

        Args:
            executor: Performs group posts and notifications
            store: Persists the event list after a tick modifies it
            config: Timeouts, timezone and result policy
            clock: Returns the current instant (aware UTC)
        """
        self.executor = executor
        self.store = store
        self.config = config or AutomationConfig()
        self.clock = clock
        self.last_outcomes: list[tuple[str, str, FiringOutcome]] = []
        self._dirty = False

    def now(self) -> datetime:
        """The current instant from the injected clock, as aware UTC."""
        now = self.clock()
        if now.tzinfo is None:
            now = pytz.UTC.localize(now)
        return now

    def mark_dirty(self) -> None:
        """Have the next tick save the event list even if nothing fires."""
        self._dirty = True

    async def run_once(self, events: list[Event], rules: list[AutomationRule]) -> bool:
        """
        Run one tick over all enabled rules and all events.

        Args:
            events: Shared event list; fired rule ids are added in place
            rules: Automation rules, evaluated in list order

        Returns:
            True if any event was marked during this tick
        """
        now = self.now()
        modified = False
        outcomes: list[tuple[str, str, FiringOutcome]] = []

        for rule in rules:
            if not rule.enabled:
                continue

            for event in events:
                if rule.id in event.executed_rule_ids:
                    continue

                outcome = await self.attempt(rule, event, now)
                outcomes.append((rule.id, event.id, outcome))

                if outcome.fired:
                    event.executed_rule_ids.add(rule.id)
                    modified = True

                self._report(rule, event, outcome)

        self.last_outcomes = outcomes

        if modified or self._dirty:
            await self._persist(events)

        return modified

    async def attempt(self, rule: AutomationRule, event: Event, now: datetime) -> FiringOutcome:
        """
        Evaluate one (rule, event) pair and run its actions if due.

        Never raises for action faults; those come back as DEFERRED so the
        pair is retried on the next tick.
        """
        if rule.filter_group_id and rule.filter_group_id != event.group_id:
            return FiringOutcome.skipped("group filter does not match")

        if not evaluate_trigger(rule, event, now, self.config.tz):
            return FiringOutcome.skipped("trigger window not open")

        title = render_template(rule.title_template, event)
        body = render_template(rule.body_template, event)

        try:
            return await self._execute(rule, event, title, body)
        except asyncio.TimeoutError:
            return FiringOutcome.deferred(
                f"action timed out after {self.config.action_timeout_seconds}s"
            )
        except Exception as e:
            logger.warning(
                f"Action for rule {rule.id} on event {event.id} raised: {e}", exc_info=True
            )
            return FiringOutcome.deferred(f"{type(e).__name__}: {str(e)[:200]}")

    async def _execute(
        self,
        rule: AutomationRule,
        event: Event,
        title: str,
        body: str,
    ) -> FiringOutcome:
        timeout = self.config.action_timeout_seconds
        failed_steps = []

        group_id = rule.filter_group_id or event.group_id
        if rule.create_post and group_id:
            posted = await asyncio.wait_for(
                self.executor.create_group_post(
                    group_id, title, body, image_id=rule.post_image_id
                ),
                timeout,
            )
            if not posted:
                failed_steps.append("group post")

        if rule.send_notification and title.strip() and body.strip():
            sent = await asyncio.wait_for(self.executor.send_notification(title, body), timeout)
            if not sent:
                failed_steps.append("notification")

        if failed_steps:
            reason = f"{', '.join(failed_steps)} reported failure"
            if self.config.defer_on_failed_result:
                return FiringOutcome.deferred(reason)
            return FiringOutcome.fired_ok(reason)

        return FiringOutcome.fired_ok()

    def _report(self, rule: AutomationRule, event: Event, outcome: FiringOutcome) -> None:
        if outcome.status is FiringStatus.SKIPPED:
            return

        if outcome.status is FiringStatus.FIRED:
            if outcome.reason:
                logger.warning(
                    f"Rule {rule.id} ({rule.name}) fired for event {event.id} "
                    f"but {outcome.reason}"
                )
            else:
                logger.info(f"Rule {rule.id} ({rule.name}) fired for event {event.id}")
        else:
            logger.warning(
                f"Rule {rule.id} ({rule.name}) deferred for event {event.id}: {outcome.reason}"
            )

        track(
            f"automation_{outcome.status.value}",
            "automation",
            group_id=event.group_id,
            properties={
                "rule_id": rule.id,
                "event_id": event.id,
                "trigger_type": rule.trigger_type.value,
                "reason": outcome.reason,
            },
        )

    async def _persist(self, events: list[Event]) -> None:
        try:
            await self.store.save_events(events)
            self._dirty = False
        except Exception as e:
            # Marks stay in memory; the save is retried on the next tick
            self.mark_dirty()
            logger.error(f"Failed to persist events after automation tick: {e}", exc_info=True)
