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
Automation Scheduler Module

Background task loop that drives automation ticks.
Uses discord.ext.tasks for reliable scheduling: an iteration always finishes
before the next interval starts, so ticks never overlap.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from discord.ext import tasks

from analytics import track

from .config import AutomationConfig

if TYPE_CHECKING:
    from calendar_service import CalendarService

logger = logging.getLogger("groupkeeper.automation.scheduler")


class AutomationScheduler:
    """
    Background scheduler for automation rules.

    Materializes recurring events once before the first tick, then runs an
    automation tick every 60 seconds (configurable).
    """

    def __init__(self, service: "CalendarService", config: Optional[AutomationConfig] = None):
        """
        Initialize the automation scheduler.

        Args:
            service: Single-writer calendar service owning events and rules
            config: Tick interval and startup horizon
        """
        self.service = service
        self.config = config or AutomationConfig()
        self._started = False
        self._stopping = False
        self._busy = False
        self._tick.change_interval(seconds=self.config.tick_seconds)

    def start(self) -> None:
        """Start the scheduler loop. Must be called from a running event loop."""
        if not self._started:
            self._stopping = False
            self._tick.start()
            self._started = True
            logger.info(f"Automation scheduler started (interval: {self.config.tick_seconds}s)")

    def stop(self) -> None:
        """
        Stop the loop without starting another tick.

        An in-flight tick (or startup materialization) runs to completion.
        While idle the loop is only sleeping, so it is cancelled outright.
        """
        if not self._started:
            return

        self._stopping = True
        self._started = False
        if self._busy:
            self._tick.stop()
            logger.info("Automation scheduler stopping after the in-flight tick")
        else:
            self._tick.cancel()
            logger.info("Automation scheduler stopping")

    def is_running(self) -> bool:
        return self._tick.is_running()

    def next_tick_at(self) -> Optional[datetime]:
        """When the next tick is scheduled (UTC), or None if not running."""
        return self._tick.next_iteration

    @tasks.loop(seconds=60)
    async def _tick(self) -> None:
        """Run one automation tick."""
        if self._stopping:
            return

        self._busy = True
        try:
            fired = await self.service.run_automation_tick()
            if fired:
                logger.info("Automation tick fired at least one rule")
        except Exception as e:
            logger.error(f"Error in automation scheduler loop: {e}", exc_info=True)
            track(
                "scheduler_error",
                "error",
                properties={
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )
        finally:
            self._busy = False

    @_tick.before_loop
    async def _before_tick(self) -> None:
        """Expand recurring events before the first tick."""
        self._busy = True
        try:
            added = await self.service.refresh_recurring_events(
                days_ahead=self.config.startup_days_ahead
            )
            logger.info(f"Startup materialization complete (added events: {added})")
        except Exception as e:
            logger.error(f"Startup materialization failed: {e}", exc_info=True)
        finally:
            self._busy = False

    @_tick.after_loop
    async def _after_tick(self) -> None:
        logger.info("Automation scheduler stopped")
