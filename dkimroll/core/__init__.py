"""
Key lifecycle: keys, key sets and the rollover engine.
"""

from dkimroll.core.context import KeyState, RolloverContext
from dkimroll.core.engine import RolloverEngine, RunOutcome, RunResult
from dkimroll.core.key import Key
from dkimroll.core.key_config import KeyConfigSet
from dkimroll.core.key_types import KeyTypeRegistry

__all__ = [
    "Key",
    "KeyConfigSet",
    "KeyState",
    "KeyTypeRegistry",
    "RolloverContext",
    "RolloverEngine",
    "RunOutcome",
    "RunResult",
]
