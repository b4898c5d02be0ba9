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
Event Store Module

Persists events, automation rules and event templates as JSONB documents.
Each save writes the full list: rows are upserted and rows whose id is no
longer in the list are deleted, inside one transaction.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

import asyncpg

from .models import Event, EventTemplate

if TYPE_CHECKING:
    from automation.models import AutomationRule

logger = logging.getLogger("groupkeeper.events.store")

EVENTS_TABLE = "calendar_events"
RULES_TABLE = "automation_rules"
TEMPLATES_TABLE = "event_templates"


class StoreError(Exception):
    """Raised when documents cannot be loaded or saved."""

    pass


class EventStore:
    """
    asyncpg-backed persistence for the calendar.

    Tables (see migrations/001_calendar_automation.sql) share one shape:
    ``id TEXT PRIMARY KEY, document JSONB NOT NULL, updated_at TIMESTAMPTZ``.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        """
        Initialize the event store.

        Args:
            db_pool: asyncpg connection pool
        """
        self.db = db_pool

    async def load_events(self) -> list[Event]:
        return await self._load(EVENTS_TABLE, Event.from_dict)

    async def save_events(self, events: Iterable[Event]) -> None:
        await self._save(EVENTS_TABLE, events)

    async def load_rules(self) -> list["AutomationRule"]:
        from automation.models import AutomationRule

        return await self._load(RULES_TABLE, AutomationRule.from_dict)

    async def save_rules(self, rules: Iterable["AutomationRule"]) -> None:
        await self._save(RULES_TABLE, rules)

    async def load_templates(self) -> list[EventTemplate]:
        return await self._load(TEMPLATES_TABLE, EventTemplate.from_dict)

    async def save_templates(self, templates: Iterable[EventTemplate]) -> None:
        await self._save(TEMPLATES_TABLE, templates)

    async def _load(self, table: str, factory: Callable[[dict[str, Any]], Any]) -> list:
        try:
            rows = await self.db.fetch(f"SELECT id, document FROM {table} ORDER BY id")
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to load {table}: {e}") from e

        items = []
        for row in rows:
            document = row["document"]
            if isinstance(document, str):
                document = json.loads(document)
            try:
                items.append(factory(document))
            except (KeyError, TypeError, ValueError) as e:
                # One unreadable row should not hide the rest of the calendar
                logger.warning(f"Skipping unreadable row {row['id']} in {table}: {e}")

        logger.debug(f"Loaded {len(items)} row(s) from {table}")
        return items

    async def _save(self, table: str, items: Iterable[Any]) -> None:
        documents = [(item.id, json.dumps(item.to_dict())) for item in items]
        ids = [doc_id for doc_id, _ in documents]

        try:
            async with self.db.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f"DELETE FROM {table} WHERE NOT (id = ANY($1::text[]))",
                        ids,
                    )
                    if documents:
                        await conn.executemany(
                            f"""
                            INSERT INTO {table} (id, document, updated_at)
                            VALUES ($1, $2::jsonb, NOW())
                            ON CONFLICT (id)
                            DO UPDATE SET document = EXCLUDED.document, updated_at = NOW()
                            """,
                            documents,
                        )
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to save {table}: {e}") from e

        logger.debug(f"Saved {len(documents)} row(s) to {table}")
