"""
Custom exceptions for the key rollover system.
"""

from __future__ import annotations


class DkimRollError(Exception):
    """Base class for errors that abort a rollover run."""


class ConfigurationError(DkimRollError):
    """Exception for unreadable or invalid top-level settings."""


class KeyTypeError(DkimRollError):
    """Exception for invalid key type definitions."""


class MissingKeyTypeError(KeyTypeError):
    """A key type definition without a type name."""


class DuplicateKeyTypeError(KeyTypeError):
    """A key type name registered twice."""

    def __init__(self, key_type: str) -> None:
        super().__init__(f"Duplicate key type: {key_type}")
        self.key_type = key_type


class KeyGenerationError(DkimRollError):
    """Exception for a failed key generation command."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class KeyConsistencyError(DkimRollError):
    """A freshly generated key does not load as a valid key."""


class PersistenceError(DkimRollError):
    """Exception for state files that cannot be read or written."""


class LockError(DkimRollError):
    """Another run holds the lock."""
