"""
A single DKIM key: private key file plus DNS record file.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Union

from dkimroll.common.exceptions import (
    KeyConsistencyError,
    KeyGenerationError,
    PersistenceError,
)
from dkimroll.core.changes import ChangeAction
from dkimroll.core.context import KeyState, format_month, parse_month

if TYPE_CHECKING:
    from dkimroll.core.context import RolloverContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Valid:
    key_path: Path
    record_path: Path
    domain: str
    key_type: str
    valid_from: int
    selector: str


@dataclass(frozen=True)
class InvalidFilename:
    path: Path
    reason: str


@dataclass(frozen=True)
class MissingFile:
    path: Path


ValidationOutcome = Union[Valid, InvalidFilename, MissingFile]


class Key:
    """One signing key, its identity and its lifecycle state in this run."""

    def __init__(self, context: RolloverContext):
        self.context = context
        self.key_path: Path | None = None
        self.record_path: Path | None = None
        self.domain: str | None = None
        self.selector: str = ""
        self.key_type: str | None = None
        self.valid_from: int | None = None
        self.age: int | None = None
        self.state: KeyState = KeyState.INVALID
        self.error: str | None = None

    def __repr__(self) -> str:
        return (
            f"Key({self.key_path}, selector={self.selector!r}, "
            f"state={self.state.value})"
        )

    @classmethod
    def from_file(
        cls,
        context: RolloverContext,
        path: Path,
        selector: str | None = None,
        check_files: bool = True,  # noqa: FBT001, FBT002
    ) -> Key:
        key = cls(context)
        key.load(path, selector, check_files)
        return key

    @classmethod
    def create(
        cls, context: RolloverContext, domain: str, key_type: str, month_offset: int
    ) -> Key:
        key = cls(context)
        key.generate(domain, key_type, month_offset)
        return key

    @staticmethod
    def parse(
        context: RolloverContext, path: Path, selector: str | None = None
    ) -> ValidationOutcome:
        """Derive key identity from a ``<YYYYMM>_<type>_<domain>.key`` path."""
        config = context.config
        if path.suffix != config.KEY_SUFFIX:
            return InvalidFilename(path, f"expected a {config.KEY_SUFFIX} file")

        parts = path.stem.split("_")
        if len(parts) != 3:  # noqa: PLR2004
            return InvalidFilename(
                path, "expected <YYYYMM>_<type>_<domain> in the file name"
            )
        date_token, key_type, domain = parts

        valid_from = parse_month(date_token)
        if valid_from is None:
            return InvalidFilename(
                path, f"invalid date {date_token!r}, expected YYYYMM"
            )
        if key_type not in context.registry:
            return InvalidFilename(path, f"unknown key type {key_type!r}")
        if not domain:
            return InvalidFilename(path, "empty domain")

        return Valid(
            key_path=path,
            record_path=path.with_suffix(config.RECORD_SUFFIX),
            domain=domain,
            key_type=key_type,
            valid_from=valid_from,
            selector=selector or f"{date_token}-{key_type}",
        )

    def load(
        self,
        path: Path,
        selector: str | None = None,
        check_files: bool = True,  # noqa: FBT001, FBT002
    ) -> KeyState:
        """Parse the path, check the files and derive the lifecycle state."""
        config = self.context.config
        self.key_path = path
        self.record_path = (
            path.with_suffix(config.RECORD_SUFFIX)
            if path.suffix == config.KEY_SUFFIX
            else None
        )
        self.selector = selector or ""
        self.error = None

        outcome = self.parse(self.context, path, selector)
        if isinstance(outcome, Valid):
            self.record_path = outcome.record_path
            self.domain = outcome.domain
            self.key_type = outcome.key_type
            self.selector = outcome.selector
            self.valid_from = outcome.valid_from
            if check_files:
                outcome = self._check_files(outcome)

        match outcome:
            case Valid(valid_from=valid_from):
                self.age = self.context.month - valid_from
                self.state = self.context.state_for_age(self.age)
            case InvalidFilename(reason=reason):
                self.invalidate(f"Invalid key file name {path}: {reason}")
            case MissingFile(path=missing):
                self.invalidate(f"Key file {missing} is missing or unreadable")
        return self.state

    @staticmethod
    def _check_files(outcome: Valid) -> ValidationOutcome:
        for file_path in (outcome.key_path, outcome.record_path):
            if not file_path.is_file() or not os.access(file_path, os.R_OK):
                return MissingFile(file_path)
        return outcome

    def invalidate(self, error: str) -> None:
        self.error = error
        self.age = None
        self.state = KeyState.INVALID
        logger.warning(error)

    def extend(self) -> None:
        """Keep signing with this key past its active period."""
        self.state = KeyState.ACTIVE

    def generate(self, domain: str, key_type: str, month_offset: int) -> None:
        """Produce a new key valid from the current month plus month_offset."""
        context = self.context
        settings = context.settings
        valid_from = context.month + month_offset
        token = format_month(valid_from)
        file_name = f"{token}_{key_type}_{domain}{context.config.KEY_SUFFIX}"
        key_path = settings.key_dir / file_name
        record_path = key_path.with_suffix(context.config.RECORD_SUFFIX)
        selector = f"{token}-{key_type}"
        expected = context.state_for_age(context.month - valid_from)

        if context.dry_run:
            logger.info("Would create %s key %s for %s", key_type, selector, domain)
            self.key_path, self.record_path = key_path, record_path
            self.domain, self.key_type, self.selector = domain, key_type, selector
            self.valid_from = valid_from
            self.age = context.month - valid_from
            self.state = expected
        else:
            logger.info("Creating %s key %s for %s", key_type, selector, domain)
            settings.key_dir.mkdir(parents=True, exist_ok=True)
            for stale in (key_path, record_path):
                try:
                    stale.unlink(missing_ok=True)
                except OSError as err:
                    logger.debug("Cannot remove stale file %s: %s", stale, err)

            definition = context.registry.get(key_type)
            extra_args = list(definition.args) if definition else []
            record = context.generator.generate(
                key_type, domain, selector, key_path, extra_args
            )
            try:
                record_path.write_text(record)
            except OSError as err:
                msg = f"Cannot write DNS record {record_path}: {err}"
                raise KeyGenerationError(msg) from err

            state = self.load(key_path, selector)
            if state is KeyState.INVALID:
                msg = f"Generated key {key_path} is invalid: {self.error}"
                raise KeyConsistencyError(msg)
            if state is not expected:
                msg = (
                    f"Generated key {key_path} is {state.value}, "
                    f"expected {expected.value}"
                )
                raise KeyConsistencyError(msg)

        context.changes.record(ChangeAction.ADD, domain, selector, str(record_path))

    def delete(self, remove_files: bool = True) -> None:  # noqa: FBT001, FBT002
        """Record the deletion, then archive or remove both files.

        With ``remove_files=False`` only the deletion is recorded; the files
        belong to another key.
        """
        context = self.context
        if self.key_path is None:
            return
        record_path = self.record_path or self.key_path
        context.changes.record(
            ChangeAction.DELETE, self.domain or "", self.selector, str(record_path)
        )
        if not remove_files:
            return

        archive = context.settings.key_archive
        if context.dry_run:
            logger.info("Would delete key %s", self.key_path)
            return

        for file_path in (self.key_path, self.record_path):
            if file_path is None:
                continue
            if not self._owns_file(file_path):
                logger.warning(
                    "Not removing %s, not a key file under %s",
                    file_path,
                    context.settings.key_dir,
                )
                continue
            try:
                if archive is not None:
                    archive.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(file_path), str(archive / file_path.name))
                    logger.info("Archived %s to %s", file_path, archive)
                else:
                    file_path.unlink()
                    logger.info("Deleted %s", file_path)
            except FileNotFoundError:
                logger.debug("Key file %s already gone", file_path)
            except OSError as err:
                msg = f"Cannot remove key file {file_path}: {err}"
                raise PersistenceError(msg) from err

    def _owns_file(self, file_path: Path) -> bool:
        config = self.context.config
        if file_path.suffix not in (config.KEY_SUFFIX, config.RECORD_SUFFIX):
            return False
        key_dir = self.context.settings.key_dir.resolve()
        return file_path.resolve().is_relative_to(key_dir)

    def to_entry(self) -> dict[str, str]:
        return {"path": str(self.key_path), "selector": self.selector}
