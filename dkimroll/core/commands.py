"""
External commands run by the rollover engine.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path  # noqa: TC003

from dkimroll.common.exceptions import KeyGenerationError

logger = logging.getLogger(__name__)


class KeyGeneratorCommand:
    """Runs the configured key generation command for one key."""

    def __init__(self, command: list[str]):
        self.command = list(command)

    def generate(
        self,
        key_type: str,
        domain: str,
        selector: str,
        key_path: Path,
        extra_args: list[str],
    ) -> str:
        """Run the generator and return what it printed (the DNS record)."""
        argv = [*self.command, key_type, domain, selector, str(key_path), *extra_args]
        logger.debug("Running key generator: %s", argv)
        try:
            result = subprocess.run(argv, check=False, capture_output=True, text=True)
        except OSError as err:
            msg = f"Cannot run key generator {self.command[0]}: {err}"
            raise KeyGenerationError(msg) from err

        if result.returncode != 0:
            msg = (
                f"Key generator exited with status {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            raise KeyGenerationError(msg, result.returncode)
        return result.stdout


class UpdateNotifier:
    """Tells downstream automation which DNS records were added or removed."""

    def __init__(self, command: list[str] | None = None):
        self.command = list(command) if command else None

    def notify(self, args: list[str]) -> bool:
        """Run the update command once; failures are logged and reported as False."""
        if not self.command:
            logger.debug("No update command configured, skipping notification")
            return False

        argv = [*self.command, *args]
        logger.info("Running update command: %s", argv)
        try:
            result = subprocess.run(argv, check=False, capture_output=True, text=True)
        except OSError:
            logger.exception("Cannot run update command %s", self.command[0])
            return False

        if result.returncode != 0:
            logger.error(
                "Update command exited with status %s: %s",
                result.returncode,
                result.stderr.strip(),
            )
            return False
        return True
