"""
Persistent collection of keys for one lifecycle category.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from dkimroll.common.exceptions import PersistenceError
from dkimroll.common.models import KeyConfigDocument
from dkimroll.core.context import KeyState
from dkimroll.core.key import Key

if TYPE_CHECKING:
    from dkimroll.core.context import RolloverContext

logger = logging.getLogger(__name__)


class KeyConfigSet:
    """Keys of one category (active, future or expired) indexed by domain.

    The set is loaded once at the start of a run, mutated in memory and
    written back once at the end, and only when its canonical serialization
    differs from what was loaded.
    """

    def __init__(
        self,
        context: RolloverContext,
        category: KeyState,
        path: Path | None = None,
    ):
        self.context = context
        self.category = category
        self.path = path or context.settings.config_path(category.value)
        self.keys: dict[str, list[Key]] = {}
        self.raw: str = ""

    def load(self) -> None:
        """Read the backing file; a missing or malformed file yields an empty set."""
        self.keys = {}
        self.raw = ""
        try:
            with self.path.open() as f:
                content = f.read()
        except FileNotFoundError:
            logger.info(
                "No %s key config at %s, starting empty",
                self.category.value,
                self.path,
            )
            return
        except OSError as err:
            msg = f"Cannot read {self.category.value} key config {self.path}: {err}"
            raise PersistenceError(msg) from err

        try:
            document = KeyConfigDocument.model_validate_json(content)
        except ValidationError as err:
            logger.warning(
                "Ignoring malformed %s key config %s: %s",
                self.category.value,
                self.path,
                err,
            )
            return

        for domain, entry in document.domain.items():
            for item in entry.selectors:
                key = Key.from_file(self.context, Path(item.path), item.selector)
                if key.domain is None:
                    key.domain = domain
                elif key.domain != domain:
                    key.invalidate(
                        f"Key file {item.path} does not belong to domain {domain}"
                    )
                    key.domain = domain
                self.keys.setdefault(domain, []).append(key)

        self.raw = self.serialize(include_all=True)
        logger.debug(
            "Loaded %d %s key(s) from %s",
            sum(len(keys) for keys in self.keys.values()),
            self.category.value,
            self.path,
        )

    def lookup(
        self,
        domain: str,
        key_type: str,
        state: KeyState,
        remove: bool = False,  # noqa: FBT001, FBT002
    ) -> Key | None:
        """Return the first valid key of the given type and state for a domain."""
        keys = self.keys.get(domain, [])
        for index, key in enumerate(keys):
            if key.key_type == key_type and not key.error and key.state is state:
                if remove:
                    del keys[index]
                return key
        return None

    def add(self, key: Key) -> None:
        if key.domain is None:
            msg = f"Cannot add key without a domain: {key!r}"
            raise ValueError(msg)
        self.keys.setdefault(key.domain, []).append(key)

    def partition(self) -> tuple[list[Key], list[Key]]:
        """Drop keys whose state no longer matches this category and return them."""
        kept: list[Key] = []
        removed: list[Key] = []
        for domain in list(self.keys):
            domain_kept = []
            for key in self.keys[domain]:
                if key.state is self.category:
                    domain_kept.append(key)
                else:
                    removed.append(key)
            kept.extend(domain_kept)
            self.keys[domain] = domain_kept
        return kept, removed

    def iter_keys(self) -> list[Key]:
        return [key for keys in self.keys.values() for key in keys]

    def serialize(self, include_all: bool = False) -> str:  # noqa: FBT001, FBT002
        """Canonical JSON of the domain mapping without its enclosing braces."""
        document: dict[str, dict[str, list[dict[str, str]]]] = {}
        for domain, keys in self.keys.items():
            entries = [
                key.to_entry()
                for key in keys
                if include_all or key.state is self.category
            ]
            if entries:
                document[domain] = {"selectors": entries}
        return json.dumps(document, sort_keys=True, indent=4)[1:-1]

    def save(self) -> bool:
        """Write the set if it changed since loading. Returns True when changed."""
        fragment = self.serialize()
        if fragment == self.raw:
            logger.debug("%s key config unchanged, not writing", self.category.value)
            return False

        if self.context.dry_run:
            logger.info("Would update %s key config %s", self.category.value, self.path)
            return True

        content = '{"domain": {' + fragment + "}}\n"
        self._write_atomic(content)
        self.raw = fragment
        logger.info("Updated %s key config %s", self.category.value, self.path)
        return True

    def _write_atomic(self, content: str) -> None:
        tmp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, self.context.config.STATE_FILE_MODE)
            os.replace(tmp_path, self.path)
        except OSError as err:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            msg = f"Cannot write {self.category.value} key config {self.path}: {err}"
            raise PersistenceError(msg) from err
