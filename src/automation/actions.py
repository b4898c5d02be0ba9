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
Automation Actions

Outbound side effects of a fired automation rule:
- Group posts via the group API (httpx)
- Notifications via a Discord webhook (discord.py over aiohttp)

Group posts raise GroupPostError on transport faults so the engine retries
on the next tick. Notifications never raise; they report a bool.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import aiohttp
import discord
import httpx
import pytz

from .config import AutomationConfig

logger = logging.getLogger("groupkeeper.automation.actions")

USER_AGENT = "groupkeeper/0.1.0"
EMBED_FOOTER = "Group Tools"
EMBED_COLOR = 0x2196F3


class GroupPostError(Exception):
    """Raised when the group API could not be reached."""

    pass


class GroupPostClient:
    """Client for creating posts in a group via the group API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url or "https://api.vrchat.cloud/api/1"

        if not auth_token:
            logger.warning("GROUP_API_TOKEN not set - group posts will fail authentication")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            cookies={"auth": auth_token} if auth_token else None,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client"""
        await self._client.aclose()

    async def create_group_post(
        self,
        group_id: str,
        title: str,
        text: str,
        image_id: Optional[str] = None,
        visibility: str = "group",
        send_notification: bool = True,
        role_ids: Optional[list[str]] = None,
    ) -> bool:
        """
        Create a post in a group.

        Args:
            group_id: Target group
            title: Post title
            text: Post body
            image_id: Previously uploaded image to attach (optional)
            visibility: 'group' or 'public'
            send_notification: Whether group members get a notification
            role_ids: Restrict the post to these roles (optional)

        Returns:
            True if the API accepted the post, False on an HTTP error status

        Raises:
            GroupPostError: If the request could not be sent
        """
        payload = {
            "title": title,
            "text": text,
            "visibility": visibility,
            "sendNotification": send_notification,
            "roleIds": role_ids or [],
        }
        if image_id:
            payload["imageId"] = image_id

        try:
            response = await self._client.post(f"groups/{group_id}/posts", json=payload)
        except httpx.TransportError as e:
            raise GroupPostError(f"Group API unreachable: {e}") from e

        if response.is_error:
            logger.error(
                f"Failed to create group post in {group_id} "
                f"(HTTP {response.status_code}): {response.text[:200]}"
            )
            return False

        logger.info(f"Created group post in {group_id}: {title!r}")
        return True


class DiscordNotifier:
    """Sends embed notifications through a Discord webhook."""

    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = webhook_url
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url and self.webhook_url.strip())

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def build_embed(
        self,
        title: str,
        description: str,
        color: int = EMBED_COLOR,
        thumbnail_url: Optional[str] = None,
    ) -> discord.Embed:
        embed = discord.Embed(
            title=title,
            description=description,
            color=color,
            timestamp=datetime.now(pytz.UTC),
        )
        if thumbnail_url:
            embed.set_thumbnail(url=thumbnail_url)
        embed.set_footer(text=EMBED_FOOTER)
        return embed

    async def _post(self, url: str, embed: discord.Embed) -> bool:
        try:
            webhook = discord.Webhook.from_url(url, session=self._get_session())
            await webhook.send(embed=embed)
            return True
        except (discord.HTTPException, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Failed to send webhook message: {e}")
            return False

    async def send_message(
        self,
        title: str,
        description: str,
        color: int = EMBED_COLOR,
        thumbnail_url: Optional[str] = None,
    ) -> bool:
        """
        Send an embed to the configured webhook.

        Returns:
            True if Discord accepted the message; False if unconfigured or failed
        """
        if not self.is_configured:
            return False

        embed = self.build_embed(title, description, color, thumbnail_url)
        return await self._post(self.webhook_url, embed)

    async def test_webhook(self, webhook_url: str) -> bool:
        """Send a connection check message to a candidate webhook URL."""
        if not webhook_url or not webhook_url.strip():
            return False

        embed = self.build_embed(
            "Webhook Connected!",
            "Group Tools is now connected to this channel.\n\n"
            "You will receive notifications from your automation rules.",
            color=0x4CAF50,
        )
        return await self._post(webhook_url, embed)


class ActionExecutor:
    """
    The engine-facing action surface.

    Either collaborator may be missing; a missing collaborator reports
    failure rather than raising.
    """

    def __init__(
        self,
        group_client: Optional[GroupPostClient] = None,
        notifier: Optional[DiscordNotifier] = None,
    ):
        self.group_client = group_client
        self.notifier = notifier

    @classmethod
    def from_config(cls, config: AutomationConfig) -> "ActionExecutor":
        return cls(
            group_client=GroupPostClient(
                base_url=config.group_api_url,
                auth_token=config.group_api_token,
                timeout=config.action_timeout_seconds,
            ),
            notifier=DiscordNotifier(config.discord_webhook_url),
        )

    async def close(self) -> None:
        if self.group_client is not None:
            await self.group_client.close()
        if self.notifier is not None:
            await self.notifier.close()

    async def create_group_post(
        self,
        group_id: str,
        title: str,
        body: str,
        image_id: Optional[str] = None,
    ) -> bool:
        if self.group_client is None:
            logger.warning(f"No group client configured, cannot post to {group_id}")
            return False
        return await self.group_client.create_group_post(group_id, title, body, image_id=image_id)

    async def send_notification(self, title: str, body: str) -> bool:
        if self.notifier is None:
            return False
        return await self.notifier.send_message(title, body)
