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
Event Automation Package

Time-offset automation rules fired exactly once per (rule, event) pair.
"""

from .models import AutomationRule, FiringOutcome, FiringStatus, TriggerType
from .config import AutomationConfig
from .engine import AutomationEngine, evaluate_trigger, render_template, trigger_instant, utc_now
from .actions import ActionExecutor, DiscordNotifier, GroupPostClient, GroupPostError
from .scheduler import AutomationScheduler

__all__ = [
    "AutomationRule",
    "FiringOutcome",
    "FiringStatus",
    "TriggerType",
    "AutomationConfig",
    "AutomationEngine",
    "evaluate_trigger",
    "render_template",
    "trigger_instant",
    "utc_now",
    "ActionExecutor",
    "DiscordNotifier",
    "GroupPostClient",
    "GroupPostError",
    "AutomationScheduler",
]
