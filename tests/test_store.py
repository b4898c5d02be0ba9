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

"""Tests for JSONB document persistence."""

import json
import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from automation.models import AutomationRule
from events.models import Event
from events.store import EventStore, StoreError


def event_document(event_id: str, name: str) -> dict:
    return Event(
        id=event_id,
        name=name,
        start_time=datetime(2024, 1, 1, 18, 0),
        end_time=datetime(2024, 1, 1, 19, 0),
    ).to_dict()


def mock_pool_with_connection():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.executemany = AsyncMock()
    conn.transaction = MagicMock(return_value=MagicMock())

    acquire_ctx = MagicMock()
    acquire_ctx.__aenter__ = AsyncMock(return_value=conn)
    acquire_ctx.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire = MagicMock(return_value=acquire_ctx)
    return pool, conn


class TestLoad:
    """Reading documents."""

    @pytest.mark.asyncio
    async def test_load_events_parses_documents(self):
        pool = MagicMock()
        pool.fetch = AsyncMock(return_value=[
            {"id": "evt_1", "document": json.dumps(event_document("evt_1", "Movie Night"))},
            {"id": "evt_2", "document": event_document("evt_2", "Karaoke")},
        ])

        events = await EventStore(pool).load_events()

        assert [e.name for e in events] == ["Movie Night", "Karaoke"]
        assert "calendar_events" in pool.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_unreadable_row_is_skipped(self):
        pool = MagicMock()
        pool.fetch = AsyncMock(return_value=[
            {"id": "evt_bad", "document": {"name": "No times"}},
            {"id": "evt_1", "document": event_document("evt_1", "Movie Night")},
        ])

        events = await EventStore(pool).load_events()

        assert [e.id for e in events] == ["evt_1"]

    @pytest.mark.asyncio
    async def test_load_rules(self):
        pool = MagicMock()
        pool.fetch = AsyncMock(return_value=[
            {"id": "rule_1", "document": AutomationRule(id="rule_1", name="Heads up").to_dict()},
        ])

        [rule] = await EventStore(pool).load_rules()

        assert rule.id == "rule_1"
        assert "automation_rules" in pool.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self):
        pool = MagicMock()
        pool.fetch = AsyncMock(side_effect=asyncpg.PostgresError("relation does not exist"))

        with pytest.raises(StoreError):
            await EventStore(pool).load_events()


class TestSave:
    """Writing the full list."""

    @pytest.mark.asyncio
    async def test_save_deletes_missing_and_upserts(self):
        pool, conn = mock_pool_with_connection()
        events = [Event.from_dict(event_document("evt_1", "Movie Night"))]

        await EventStore(pool).save_events(events)

        delete_sql, ids = conn.execute.await_args.args
        assert "DELETE FROM calendar_events" in delete_sql
        assert ids == ["evt_1"]

        upsert_sql, rows = conn.executemany.await_args.args
        assert "ON CONFLICT (id)" in upsert_sql
        assert rows[0][0] == "evt_1"
        assert json.loads(rows[0][1])["name"] == "Movie Night"

    @pytest.mark.asyncio
    async def test_save_empty_list_only_deletes(self):
        pool, conn = mock_pool_with_connection()

        await EventStore(pool).save_templates([])

        conn.execute.assert_awaited_once()
        conn.executemany.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_save_error_wrapped(self):
        pool, conn = mock_pool_with_connection()
        conn.execute = AsyncMock(side_effect=OSError("connection reset"))

        with pytest.raises(StoreError):
            await EventStore(pool).save_events([])
