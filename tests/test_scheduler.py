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

"""Tests for scheduler configuration and the tick loop body."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from automation.config import AutomationConfig
from automation.scheduler import AutomationScheduler


class TestAutomationConfig:
    """Environment-driven configuration."""

    def test_default_config(self):
        config = AutomationConfig()
        assert config.tick_seconds == 60
        assert config.days_ahead == 30
        assert config.defer_on_failed_result is False
        assert config.tz is pytz.UTC

    def test_config_from_env_default(self):
        with patch.dict("os.environ", {}, clear=True):
            config = AutomationConfig.from_env()
            assert config.tick_seconds == 60
            assert config.action_timeout_seconds == 30.0
            assert config.startup_days_ahead == 60
            assert config.group_api_token is None
            assert config.discord_webhook_url is None

    def test_config_from_env_custom_values(self):
        with patch.dict("os.environ", {
            "AUTOMATION_TICK_SECONDS": "15",
            "AUTOMATION_ACTION_TIMEOUT": "5.5",
            "EVENTS_DAYS_AHEAD": "14",
            "EVENTS_TIMEZONE": "America/New_York",
            "AUTOMATION_DEFER_ON_FAILED_RESULT": "true",
            "GROUP_API_TOKEN": "authcookie",
        }):
            config = AutomationConfig.from_env()
            assert config.tick_seconds == 15
            assert config.action_timeout_seconds == 5.5
            assert config.days_ahead == 14
            assert config.defer_on_failed_result is True
            assert config.group_api_token == "authcookie"
            assert config.tz.zone == "America/New_York"

    def test_invalid_timezone_falls_back_to_utc(self):
        assert AutomationConfig(timezone="Mars/Olympus_Mons").tz is pytz.UTC


@pytest.fixture
def service():
    service = MagicMock()
    service.run_automation_tick = AsyncMock(return_value=True)
    service.refresh_recurring_events = AsyncMock(return_value=True)
    return service


class TestAutomationScheduler:
    """Loop body behaviour, without starting the loop."""

    def test_interval_from_config(self, service):
        scheduler = AutomationScheduler(service, AutomationConfig(tick_seconds=15))
        assert scheduler._tick.seconds == 15
        assert scheduler.is_running() is False
        assert scheduler.next_tick_at() is None

    @pytest.mark.asyncio
    async def test_tick_runs_automation(self, service):
        scheduler = AutomationScheduler(service, AutomationConfig())
        await scheduler._tick()
        service.run_automation_tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tick_error_is_logged_and_tracked(self, service):
        service.run_automation_tick = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = AutomationScheduler(service, AutomationConfig())

        with patch("automation.scheduler.track") as track:
            await scheduler._tick()

        track.assert_called_once()
        assert track.call_args.args[0] == "scheduler_error"
        assert track.call_args.kwargs["properties"]["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_startup_materializes_with_startup_horizon(self, service):
        scheduler = AutomationScheduler(service, AutomationConfig(startup_days_ahead=90))
        await scheduler._before_tick()
        service.refresh_recurring_events.assert_awaited_once_with(days_ahead=90)

    @pytest.mark.asyncio
    async def test_startup_failure_does_not_raise(self, service):
        service.refresh_recurring_events = AsyncMock(side_effect=OSError("db down"))
        scheduler = AutomationScheduler(service, AutomationConfig())
        await scheduler._before_tick()


async def wait_until_stopped(scheduler: AutomationScheduler, timeout: float = 1.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while scheduler.is_running() and loop.time() < deadline:
        await asyncio.sleep(0.01)
    return not scheduler.is_running()


class TestShutdown:
    """Stopping never starts another tick."""

    @pytest.mark.asyncio
    async def test_idle_stop_exits_without_another_tick(self, service):
        scheduler = AutomationScheduler(service, AutomationConfig(tick_seconds=5))
        scheduler.start()

        for _ in range(100):
            if service.run_automation_tick.await_count:
                break
            await asyncio.sleep(0.01)
        assert service.run_automation_tick.await_count == 1

        # Let the first tick return so the loop is sleeping
        await asyncio.sleep(0.05)
        scheduler.stop()

        assert await wait_until_stopped(scheduler)
        assert service.run_automation_tick.await_count == 1

    @pytest.mark.asyncio
    async def test_in_flight_tick_completes(self, service):
        entered = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def slow_tick():
            entered.set()
            await release.wait()
            finished.append(True)
            return False

        service.run_automation_tick = AsyncMock(side_effect=slow_tick)
        scheduler = AutomationScheduler(service, AutomationConfig(tick_seconds=5))
        scheduler.start()

        await asyncio.wait_for(entered.wait(), 1.0)
        scheduler.stop()
        assert scheduler.is_running() is True

        release.set()
        assert await wait_until_stopped(scheduler)
        assert finished == [True]
        assert service.run_automation_tick.await_count == 1

    @pytest.mark.asyncio
    async def test_tick_body_skipped_once_stopping(self, service):
        scheduler = AutomationScheduler(service, AutomationConfig())
        scheduler._stopping = True
        await scheduler._tick()
        service.run_automation_tick.assert_not_awaited()
