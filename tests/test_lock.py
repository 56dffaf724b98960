from pathlib import Path

import pytest

from dkimroll.common.exceptions import LockError
from dkimroll.core.lock import RunLock


def test_lock_is_exclusive(tmp_path: Path):
    path = tmp_path / "run" / "dkimroll.lock"
    with RunLock(path) as lock:
        assert lock.locked
        with pytest.raises(LockError):
            RunLock(path).acquire()
    assert not lock.locked


def test_lock_can_be_reacquired(tmp_path: Path):
    path = tmp_path / "dkimroll.lock"
    with RunLock(path):
        pass
    with RunLock(path) as lock:
        assert lock.locked
