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
Machine-readable outcome log for groupkeeper.

Every automation outcome and scheduler error is recorded as a row in
analytics_events so operators can query what fired, what was deferred and why.

Usage:
    from analytics import track, track_async

    # Fire-and-forget from inside the event loop
    track("automation_fired", "automation", group_id="grp_123", properties={"rule_id": "..."})

    # Await completion (e.g. from a CLI)
    await track_async("events_materialized", "events", properties={"added": 4})
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger("groupkeeper.analytics")

CATEGORIES = ("automation", "events", "scheduler", "error")

_pool: Optional[asyncpg.Pool] = None
_enabled: bool = os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"
_owns_pool: bool = False
_pending: set = set()


def configure(pool: Optional[asyncpg.Pool] = None, enabled: Optional[bool] = None) -> None:
    """Share the application's pool and/or toggle tracking at runtime."""
    global _pool, _enabled
    if pool is not None:
        _pool = pool
    if enabled is not None:
        _enabled = enabled


async def _get_pool() -> Optional[asyncpg.Pool]:
    """Get the shared pool, or create a small one from DATABASE_URL."""
    global _pool, _owns_pool
    if _pool is None and _enabled:
        database_url = os.getenv("DATABASE_URL")
        if database_url:
            try:
                _pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
                _owns_pool = True
            except Exception as e:
                logger.warning(f"Analytics pool creation failed: {e}")
                return None
    return _pool


async def track_async(
    event_name: str,
    event_category: str,
    group_id: Optional[str] = None,
    properties: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Record an outcome row.

    Args:
        event_name: Specific outcome identifier (e.g., "automation_fired")
        event_category: One of CATEGORIES
        group_id: Group the outcome relates to (optional)
        properties: Additional data as key-value pairs

    Returns:
        True if the row was written, False otherwise
    """
    if not _enabled:
        return False

    if event_category not in CATEGORIES:
        logger.debug(f"Unknown analytics category '{event_category}' for {event_name}")

    pool = await _get_pool()
    if pool is None:
        return False

    try:
        await pool.execute(
            """
            INSERT INTO analytics_events (event_name, event_category, group_id, properties)
            VALUES ($1, $2, $3, $4)
            """,
            event_name,
            event_category,
            group_id,
            json.dumps(properties or {}, default=str),
        )
        return True
    except Exception as e:
        logger.debug(f"Analytics tracking failed: {e}")
        return False


def track(
    event_name: str,
    event_category: str,
    group_id: Optional[str] = None,
    properties: Optional[dict[str, Any]] = None,
) -> None:
    """
    Record an outcome without blocking.

    Schedules track_async on the running loop; outside a loop this is a no-op.
    """
    if not _enabled:
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return

    task = loop.create_task(track_async(event_name, event_category, group_id, properties))
    # Hold a reference until done so the task is not garbage collected
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def shutdown() -> None:
    """Flush pending rows and close the pool. Call on process shutdown."""
    global _pool, _owns_pool
    if _pending:
        await asyncio.gather(*_pending, return_exceptions=True)
    if _pool is not None and _owns_pool:
        await _pool.close()
    _pool = None
    _owns_pool = False
