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
Automation Configuration

Tick interval, horizons, action timeouts and remote endpoints.
Values can be overridden via environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import pytz

logger = logging.getLogger("groupkeeper.automation.config")


@dataclass
class AutomationConfig:
    """Configuration for recurrence materialization and automation ticks."""

    # Scheduler settings
    tick_seconds: int = 60
    action_timeout_seconds: float = 30.0

    # Recurrence horizon (days ahead of now)
    days_ahead: int = 30
    startup_days_ahead: int = 60

    # Wall-clock timezone of stored event times
    timezone: str = "UTC"

    # Treat a returned failure flag from an action as "not fired"
    defer_on_failed_result: bool = False

    # Remote endpoints
    group_api_url: str = "https://api.vrchat.cloud/api/1"
    group_api_token: Optional[str] = None
    discord_webhook_url: Optional[str] = None

    @property
    def tz(self) -> pytz.BaseTzInfo:
        try:
            return pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Invalid timezone '{self.timezone}', falling back to UTC")
            return pytz.UTC

    @classmethod
    def from_env(cls) -> "AutomationConfig":
        """Create config from environment variables with defaults."""
        return cls(
            tick_seconds=int(os.getenv("AUTOMATION_TICK_SECONDS", "60")),
            action_timeout_seconds=float(os.getenv("AUTOMATION_ACTION_TIMEOUT", "30")),
            days_ahead=int(os.getenv("EVENTS_DAYS_AHEAD", "30")),
            startup_days_ahead=int(os.getenv("EVENTS_STARTUP_DAYS_AHEAD", "60")),
            timezone=os.getenv("EVENTS_TIMEZONE", "UTC"),
            defer_on_failed_result=os.getenv(
                "AUTOMATION_DEFER_ON_FAILED_RESULT", "false"
            ).lower()
            == "true",
            group_api_url=os.getenv("GROUP_API_URL", "https://api.vrchat.cloud/api/1"),
            group_api_token=os.getenv("GROUP_API_TOKEN") or None,
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or None,
        )
