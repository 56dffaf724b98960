"""
Configuration settings for the key rollover system.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from dkimroll.common.exceptions import ConfigurationError
from dkimroll.common.models import RolloverSettings

logger = logging.getLogger(__name__)


class Config:
    """Central configuration class for environment-backed defaults."""

    def __init__(self) -> None:
        # File paths
        self.CONFIG_PATH: Path = Path(
            os.getenv("DKIMROLL_CONFIG", "/etc/dkimroll/config.json")
        )

        # Permissions of written state files (owner rw, group r)
        self.STATE_FILE_MODE: int = 0o640
        # Permissions of generated private keys
        self.PRIVATE_KEY_MODE: int = 0o600

        # Key file naming
        self.KEY_SUFFIX: str = ".key"
        self.RECORD_SUFFIX: str = ".txt"

        # Logging
        self.LOG_LEVEL: str = os.getenv("DKIMROLL_LOG_LEVEL", "INFO")

    def load_settings(self, path: Path | None = None) -> RolloverSettings:
        """Load and validate the top-level settings file."""
        config_path = path or self.CONFIG_PATH
        try:
            with config_path.open() as f:
                content = f.read()
        except OSError as err:
            msg = f"Cannot read configuration {config_path}: {err}"
            raise ConfigurationError(msg) from err

        try:
            settings = RolloverSettings.model_validate_json(content)
        except ValidationError as err:
            msg = f"Invalid configuration in {config_path}: {err}"
            raise ConfigurationError(msg) from err

        logger.debug(
            "Loaded configuration from %s: %d domain(s), %d key type(s)",
            config_path,
            len(settings.domains),
            len(settings.key_types),
        )
        return settings
