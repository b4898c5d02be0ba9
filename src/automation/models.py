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
Automation Models

Automation rules pair a time-offset trigger with an action payload.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

from events.models import new_id


class TriggerType(str, Enum):
    """When a rule's trigger window opens relative to an event."""

    BEFORE_EVENT_START = "BeforeEventStart"
    AFTER_EVENT_END = "AfterEventEnd"


class FiringStatus(str, Enum):
    FIRED = "fired"
    DEFERRED = "deferred"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FiringOutcome:
    """Result of evaluating one (rule, event) pair."""

    status: FiringStatus
    reason: str = ""

    @property
    def fired(self) -> bool:
        return self.status is FiringStatus.FIRED

    @classmethod
    def fired_ok(cls, reason: str = "") -> "FiringOutcome":
        return cls(FiringStatus.FIRED, reason)

    @classmethod
    def deferred(cls, reason: str) -> "FiringOutcome":
        return cls(FiringStatus.DEFERRED, reason)

    @classmethod
    def skipped(cls, reason: str) -> "FiringOutcome":
        return cls(FiringStatus.SKIPPED, reason)


@dataclass
class AutomationRule:
    """
    A time-offset trigger plus the action to run when it fires.

    Templates may contain {EventName}, {StartTime}, {EndTime},
    {Description} and {Category} placeholders.
    """

    name: str
    trigger_type: TriggerType = TriggerType.BEFORE_EVENT_START
    time_offset: timedelta = timedelta(minutes=30)
    id: str = field(default_factory=new_id)
    enabled: bool = True
    filter_group_id: Optional[str] = None
    title_template: str = ""
    body_template: str = ""
    create_post: bool = True
    send_notification: bool = False
    post_image_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "trigger_type": self.trigger_type.value,
            "time_offset_minutes": self.time_offset.total_seconds() / 60,
            "filter_group_id": self.filter_group_id,
            "title_template": self.title_template,
            "body_template": self.body_template,
            "create_post": self.create_post,
            "send_notification": self.send_notification,
            "post_image_id": self.post_image_id,
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> "AutomationRule":
        return cls(
            id=doc.get("id") or new_id(),
            name=doc.get("name") or "",
            enabled=bool(doc.get("enabled", True)),
            trigger_type=TriggerType(doc.get("trigger_type") or TriggerType.BEFORE_EVENT_START.value),
            time_offset=timedelta(minutes=float(doc.get("time_offset_minutes") or 0)),
            filter_group_id=doc.get("filter_group_id") or None,
            title_template=doc.get("title_template") or "",
            body_template=doc.get("body_template") or "",
            create_post=bool(doc.get("create_post", True)),
            send_notification=bool(doc.get("send_notification", False)),
            post_image_id=doc.get("post_image_id"),
        )
