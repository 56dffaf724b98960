"""
Per-run state shared by keys and key sets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from dkimroll.common.config import Config
from dkimroll.core.changes import ChangeLog

if TYPE_CHECKING:
    from dkimroll.common.interfaces import IKeyGenerator
    from dkimroll.common.models import RolloverSettings
    from dkimroll.core.key_types import KeyTypeRegistry

MONTH_TOKEN_RE = re.compile(r"^(\d{4})(\d{2})$")


class KeyState(str, Enum):
    FUTURE = "future"
    ACTIVE = "active"
    EXPIRED = "expired"
    DEAD = "dead"
    INVALID = "invalid"


def month_index(year: int, month: int) -> int:
    """Months since January of year zero."""
    return year * 12 + month - 1


def current_month(today: date | None = None) -> int:
    today = today or date.today()
    return month_index(today.year, today.month)


def parse_month(token: str) -> int | None:
    """Parse a ``YYYYMM`` token, returning None when it is not one."""
    match = MONTH_TOKEN_RE.match(token)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:  # noqa: PLR2004
        return None
    return month_index(year, month)


def format_month(index: int) -> str:
    year, month = divmod(index, 12)
    return f"{year:04d}{month + 1:02d}"


@dataclass
class RolloverContext:
    """Everything a key needs to know about the run it belongs to."""

    settings: RolloverSettings
    registry: KeyTypeRegistry
    month: int
    generator: IKeyGenerator
    changes: ChangeLog = field(default_factory=ChangeLog)
    dry_run: bool = False
    config: Config = field(default_factory=Config)

    def state_for_age(self, age: int) -> KeyState:
        active_period = self.settings.active_period
        if age < 0:
            return KeyState.FUTURE
        if age < active_period:
            return KeyState.ACTIVE
        if age < active_period + self.settings.expired_period:
            return KeyState.EXPIRED
        return KeyState.DEAD
