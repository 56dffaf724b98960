# DKIM key rollover

from dkimroll.common.models import RolloverSettings
from dkimroll.core.engine import RolloverEngine, RunOutcome, RunResult

__all__ = [
    "RolloverEngine",
    "RolloverSettings",
    "RunOutcome",
    "RunResult",
]
