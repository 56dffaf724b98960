"""
Accumulator of key additions and deletions reported to the update command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ChangeAction(str, Enum):
    ADD = "add"
    DELETE = "del"


@dataclass(frozen=True)
class Change:
    action: ChangeAction
    domain: str
    selector: str
    record_path: str


@dataclass
class ChangeLog:
    """Ordered list of changes made during one run."""

    entries: list[Change] = field(default_factory=list)

    def record(
        self, action: ChangeAction, domain: str, selector: str, record_path: str
    ) -> None:
        self.entries.append(Change(action, domain, selector, record_path))

    def as_args(self) -> list[str]:
        """Flatten entries into repeated (action, domain, selector, record) tuples."""
        args: list[str] = []
        for change in self.entries:
            args.extend(
                [
                    change.action.value,
                    change.domain,
                    change.selector,
                    change.record_path,
                ]
            )
        return args

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
