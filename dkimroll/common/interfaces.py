"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class IKeyGenerator(Protocol):
    """Protocol for the external key generation command."""

    def generate(
        self,
        key_type: str,
        domain: str,
        selector: str,
        key_path: Path,
        extra_args: list[str],
    ) -> str:
        """Write the private key to key_path and return the DNS record text."""
        ...


class IUpdateNotifier(Protocol):
    """Protocol for the command told about added and deleted keys."""

    def notify(self, args: list[str]) -> bool: ...
