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
Events CLI

Command-line tool for inspecting and driving the event scheduler.

Usage:
    # Preview the occurrences a recurring event would generate
    python scripts/events_cli.py preview <event_id> --days 30

    # Materialize recurring events now (the "refresh" button)
    python scripts/events_cli.py refresh --days 30

    # Run a single automation tick
    python scripts/events_cli.py tick

    # List upcoming events
    python scripts/events_cli.py upcoming --limit 20

    # List automation rules
    python scripts/events_cli.py rules

    # Send a test message to a Discord webhook
    python scripts/events_cli.py test-webhook <url>
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta

import asyncpg
from dotenv import load_dotenv

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from automation import ActionExecutor, AutomationConfig, AutomationEngine, DiscordNotifier
from calendar_service import CalendarService
from events import EventMaterializer, EventStore, generate_occurrences

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def truncate(text: str, max_len: int = 40) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


async def open_service(pool: asyncpg.Pool, config: AutomationConfig) -> CalendarService:
    store = EventStore(pool)
    engine = AutomationEngine(ActionExecutor.from_config(config), store, config)
    service = CalendarService(store, engine, EventMaterializer(config.days_ahead), config)
    await service.load()
    return service


async def preview(service: CalendarService, event_id: str, days: int) -> None:
    """Show the occurrences an event would generate, without saving."""
    event = next((e for e in service.events_snapshot() if e.id == event_id), None)
    if event is None:
        print(f"Event {event_id} not found")
        return

    rule = event.recurrence
    print(f"{event.name} ({rule.kind.value}, enabled={rule.enabled}, until={rule.until})")
    if not rule.enabled:
        print("Recurrence is disabled.")
        return

    now = service.local_now()
    duration = event.end_time - event.start_time
    count = 0
    for start in generate_occurrences(event.start_time, rule, now, now + timedelta(days=days)):
        print(f"  {start:%a %Y-%m-%d %H:%M} - {start + duration:%H:%M}")
        count += 1
    print(f"{count} occurrence(s) within {days} day(s)")


async def refresh(service: CalendarService, days: int) -> None:
    before = len(service.events_snapshot())
    added = await service.refresh_recurring_events(days_ahead=days)
    after = len(service.events_snapshot())
    if added:
        print(f"Added {after - before} event(s)")
    else:
        print("No new occurrences.")


async def tick(service: CalendarService) -> None:
    print("Running automation tick...")
    fired = await service.run_automation_tick()
    for rule_id, event_id, outcome in service.engine.last_outcomes:
        if outcome.reason != "trigger window not open":
            print(f"  {outcome.status.value:<9} rule={rule_id} event={event_id} {outcome.reason}")
    print("Rules fired." if fired else "Nothing fired.")


def upcoming(service: CalendarService, limit: int) -> None:
    now = service.local_now()
    events = [e for e in service.events_snapshot() if e.end_time >= now][:limit]
    if not events:
        print("No upcoming events.")
        return

    print(f"{'Start':<17} {'End':<6} {'Name':<40} {'Fired':<5}")
    print("-" * 72)
    for e in events:
        print(
            f"{e.start_time:%Y-%m-%d %H:%M} "
            f"{e.end_time:%H:%M}  "
            f"{truncate(e.name):<40} "
            f"{len(e.executed_rule_ids):<5}"
        )


def list_rules(service: CalendarService) -> None:
    rules = service.rules_snapshot()
    if not rules:
        print("No automation rules.")
        return

    for r in rules:
        offset_minutes = int(r.time_offset.total_seconds() // 60)
        status = "on " if r.enabled else "off"
        group = r.filter_group_id or "any group"
        print(f"[{status}] {r.id}  {r.name}: {r.trigger_type.value} {offset_minutes}m ({group})")


async def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Group event scheduler tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview_parser = subparsers.add_parser("preview", help="Preview occurrences of an event")
    preview_parser.add_argument("event_id")
    preview_parser.add_argument("--days", type=int, default=30)

    refresh_parser = subparsers.add_parser("refresh", help="Materialize recurring events")
    refresh_parser.add_argument("--days", type=int, default=None)

    subparsers.add_parser("tick", help="Run one automation tick")

    upcoming_parser = subparsers.add_parser("upcoming", help="List upcoming events")
    upcoming_parser.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("rules", help="List automation rules")

    webhook_parser = subparsers.add_parser("test-webhook", help="Send a webhook test message")
    webhook_parser.add_argument("url")

    args = parser.parse_args()

    if args.command == "test-webhook":
        notifier = DiscordNotifier()
        ok = await notifier.test_webhook(args.url)
        await notifier.close()
        print("Webhook OK" if ok else "Webhook test failed")
        return

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL not set")
        sys.exit(1)

    config = AutomationConfig.from_env()
    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
    service = await open_service(pool, config)
    try:
        if args.command == "preview":
            await preview(service, args.event_id, args.days)
        elif args.command == "refresh":
            await refresh(service, args.days or config.days_ahead)
        elif args.command == "tick":
            await tick(service)
        elif args.command == "upcoming":
            upcoming(service, args.limit)
        elif args.command == "rules":
            list_rules(service)
    finally:
        await service.engine.executor.close()
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
