"""
Registry of configured signing algorithm definitions.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from dkimroll.common.exceptions import (
    DuplicateKeyTypeError,
    KeyTypeError,
    MissingKeyTypeError,
)
from dkimroll.common.models import KeyTypeDefinition


class KeyTypeRegistry:
    """Ordered set of key types that must exist for every domain."""

    def __init__(self, definitions: Iterable[KeyTypeDefinition] = ()) -> None:
        self._types: dict[str, KeyTypeDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: KeyTypeDefinition) -> None:
        """Add a definition, rejecting empty, reused or unparseable type names."""
        if not definition.type:
            msg = "Key type definition without a type name"
            raise MissingKeyTypeError(msg)
        # "_" separates the fields of a key file name
        if "_" in definition.type:
            msg = f"Key type name must not contain '_': {definition.type}"
            raise KeyTypeError(msg)
        if definition.type in self._types:
            raise DuplicateKeyTypeError(definition.type)
        self._types[definition.type] = definition.model_copy(deep=True)

    def get(self, key_type: str) -> KeyTypeDefinition | None:
        return self._types.get(key_type)

    def names(self) -> list[str]:
        return list(self._types)

    def __contains__(self, key_type: object) -> bool:
        return key_type in self._types

    def __iter__(self) -> Iterator[KeyTypeDefinition]:
        return iter(list(self._types.values()))

    def __len__(self) -> int:
        return len(self._types)
