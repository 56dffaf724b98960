"""
Rollover engine: decides which key signs for every domain and key type.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import IntEnum

from dkimroll.common.config import Config
from dkimroll.common.exceptions import (
    DkimRollError,
    KeyConsistencyError,
    KeyGenerationError,
)
from dkimroll.common.interfaces import IKeyGenerator, IUpdateNotifier
from dkimroll.common.models import KeyStatus, RolloverSettings
from dkimroll.core.changes import Change
from dkimroll.core.commands import KeyGeneratorCommand, UpdateNotifier
from dkimroll.core.context import KeyState, RolloverContext, current_month
from dkimroll.core.key import Key
from dkimroll.core.key_config import KeyConfigSet
from dkimroll.core.key_types import KeyTypeRegistry
from dkimroll.core.lock import RunLock

logger = logging.getLogger(__name__)

CATEGORIES = (KeyState.ACTIVE, KeyState.FUTURE, KeyState.EXPIRED)


class RunOutcome(IntEnum):
    """Process exit codes of a rollover run."""

    NO_CHANGES = 0
    FAILED = 1
    CHANGED = 3


@dataclass
class RunResult:
    outcome: RunOutcome
    changes: list[Change] = field(default_factory=list)
    notified: bool = False


class RolloverEngine:
    """Runs the rollover state machine over all configured domains."""

    def __init__(
        self,
        settings: RolloverSettings,
        generator: IKeyGenerator | None = None,
        notifier: IUpdateNotifier | None = None,
        month: int | None = None,
        dry_run: bool = False,  # noqa: FBT001, FBT002
        config: Config | None = None,
    ):
        self.settings = settings
        self.config = config or Config()
        self.registry = KeyTypeRegistry(settings.key_types)
        self.generator = generator or KeyGeneratorCommand(settings.genkey_command)
        self.notifier = notifier or UpdateNotifier(settings.update_command)
        self.month = month if month is not None else current_month()
        self.dry_run = dry_run

    def _new_context(self) -> RolloverContext:
        return RolloverContext(
            settings=self.settings,
            registry=self.registry,
            month=self.month,
            generator=self.generator,
            dry_run=self.dry_run,
            config=self.config,
        )

    def _load_sets(self, context: RolloverContext) -> dict[KeyState, KeyConfigSet]:
        sets = {}
        for category in CATEGORIES:
            key_set = KeyConfigSet(context, category)
            key_set.load()
            sets[category] = key_set
        return sets

    def run(self) -> RunResult:
        """Run one full pass, holding the lock unless this is a dry run."""
        lock = nullcontext() if self.dry_run else RunLock(self.settings.lock_file)
        try:
            with lock:
                return self._run()
        except DkimRollError as err:
            logger.error("Rollover aborted: %s", err)  # noqa: TRY400
            raise

    def _run(self) -> RunResult:
        context = self._new_context()
        sets = self._load_sets(context)

        for domain in self.settings.domains:
            for definition in self.registry:
                key_type = definition.type
                active_key = self._select_active(context, sets, domain, key_type)
                self._provision_future(context, sets, domain, key_type, active_key)

        doomed = self._sweep(sets)
        live = {
            key.key_path: key
            for key_set in sets.values()
            for key in key_set.iter_keys()
        }
        for key in doomed:
            owner = live.get(key.key_path)
            if owner is None:
                key.delete()
                continue
            # A key regenerated at the same path replaced this stale entry
            logger.info(
                "Dropping stale entry %s, file now belongs to key %s",
                key.key_path,
                owner.selector,
            )
            if owner.selector != key.selector:
                key.delete(remove_files=False)

        for key_set in sets.values():
            key_set.save()

        changes = list(context.changes.entries)
        if not changes:
            logger.info("No keys added or deleted")
            return RunResult(RunOutcome.NO_CHANGES)

        notified = False
        if self.dry_run:
            logger.info("Would notify: %s", context.changes.as_args())
        else:
            notified = self.notifier.notify(context.changes.as_args())
        return RunResult(RunOutcome.CHANGED, changes, notified)

    def _select_active(
        self,
        context: RolloverContext,
        sets: dict[KeyState, KeyConfigSet],
        domain: str,
        key_type: str,
    ) -> Key:
        active = sets[KeyState.ACTIVE]
        future = sets[KeyState.FUTURE]

        key = active.lookup(domain, key_type, KeyState.ACTIVE)
        if key is not None:
            logger.debug(
                "Using active %s key %s for %s", key_type, key.selector, domain
            )
            return key

        key = future.lookup(domain, key_type, KeyState.ACTIVE, remove=True)
        if key is not None:
            logger.info("Promoting %s key %s for %s", key_type, key.selector, domain)
            active.add(key)
            return key

        key = active.lookup(domain, key_type, KeyState.EXPIRED)
        if key is not None:
            logger.warning(
                "No replacement %s key for %s, extending expired key %s (age %s)",
                key_type,
                domain,
                key.selector,
                key.age,
            )
            key.extend()
            return key

        try:
            key = Key.create(context, domain, key_type, 0)
        except KeyGenerationError as err:
            msg = f"Cannot create active {key_type} key for {domain}: {err}"
            raise KeyGenerationError(msg, err.returncode) from err
        except KeyConsistencyError as err:
            msg = f"Cannot create active {key_type} key for {domain}: {err}"
            raise KeyConsistencyError(msg) from err
        active.add(key)
        return key

    def _provision_future(
        self,
        context: RolloverContext,
        sets: dict[KeyState, KeyConfigSet],
        domain: str,
        key_type: str,
        active_key: Key,
    ) -> None:
        settings = self.settings
        age = active_key.age or 0
        if settings.active_period - age > settings.future_period:
            return

        future = sets[KeyState.FUTURE]
        if future.lookup(domain, key_type, KeyState.FUTURE) is not None:
            return

        try:
            key = Key.create(context, domain, key_type, settings.future_period)
        except KeyGenerationError as err:
            msg = f"Cannot create future {key_type} key for {domain}: {err}"
            raise KeyGenerationError(msg, err.returncode) from err
        except KeyConsistencyError as err:
            msg = f"Cannot create future {key_type} key for {domain}: {err}"
            raise KeyConsistencyError(msg) from err
        future.add(key)

    def _sweep(self, sets: dict[KeyState, KeyConfigSet]) -> list[Key]:
        """Move expired keys to the expired set; return keys to delete."""
        expired = sets[KeyState.EXPIRED]
        doomed: list[Key] = []

        for category in (KeyState.ACTIVE, KeyState.FUTURE):
            _, removed = sets[category].partition()
            for key in removed:
                if key.state is KeyState.EXPIRED:
                    logger.info(
                        "Retiring %s key %s for %s",
                        key.key_type,
                        key.selector,
                        key.domain,
                    )
                    expired.add(key)
                else:
                    doomed.append(key)

        _, removed = expired.partition()
        doomed.extend(removed)
        for key in doomed:
            logger.info(
                "Removing %s key %s (%s)", key.state.value, key.key_path, key.domain
            )
        return doomed

    def status(self) -> list[KeyStatus]:
        """Describe every known key without changing anything."""
        context = self._new_context()
        rows = []
        for category, key_set in self._load_sets(context).items():
            for domain, keys in key_set.keys.items():
                rows.extend(
                    KeyStatus(
                        category=category.value,
                        domain=domain,
                        key_type=key.key_type,
                        selector=key.selector,
                        path=str(key.key_path),
                        age=key.age,
                        state=key.state.value,
                        error=key.error,
                    )
                    for key in keys
                )
        return rows
