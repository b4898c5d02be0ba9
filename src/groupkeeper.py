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
groupkeeper daemon

Loads the calendar, expands recurring events and runs automation ticks
until interrupted.
"""

import asyncio
import os
import signal

import asyncpg
from dotenv import load_dotenv

import analytics
from automation import ActionExecutor, AutomationConfig, AutomationEngine, AutomationScheduler
from calendar_service import CalendarService
from events import EventMaterializer, EventStore

load_dotenv()

import logging

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("groupkeeper")


async def build_service(pool: asyncpg.Pool, config: AutomationConfig) -> tuple[CalendarService, ActionExecutor]:
    """Wire the store, engine and service together and load the calendar."""
    store = EventStore(pool)
    executor = ActionExecutor.from_config(config)
    engine = AutomationEngine(executor, store, config)
    service = CalendarService(store, engine, EventMaterializer(config.days_ahead), config)
    await service.load()
    return service, executor


async def main():
    """Run the scheduler until SIGINT/SIGTERM."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL environment variable not set")
        print("Please set it in your .env file")
        return

    config = AutomationConfig.from_env()
    logger.info(f"Setup: EVENTS_TIMEZONE={config.timezone}")
    logger.info(f"Setup: GROUP_API_TOKEN={'set' if config.group_api_token else 'missing'}")
    logger.info(f"Setup: DISCORD_WEBHOOK_URL={'set' if config.discord_webhook_url else 'missing'}")

    pool = await asyncpg.create_pool(database_url)
    analytics.configure(pool=pool)
    service, executor = await build_service(pool, config)

    scheduler = AutomationScheduler(service, config)
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    scheduler.start()
    try:
        await stop_requested.wait()
    finally:
        logger.info("Shutting down")
        scheduler.stop()
        # Let an in-flight tick finish before closing its collaborators
        while scheduler.is_running():
            await asyncio.sleep(0.1)
        await executor.close()
        await analytics.shutdown()
        await pool.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
