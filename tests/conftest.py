import json
from pathlib import Path

import pytest

from dkimroll.common.exceptions import KeyGenerationError
from dkimroll.common.models import RolloverSettings
from dkimroll.core.context import RolloverContext, format_month, month_index
from dkimroll.core.key_types import KeyTypeRegistry

# May 2024
MONTH = month_index(2024, 5)


class FakeGenerator:
    """Stands in for the key generation command."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    def generate(self, key_type, domain, selector, key_path, extra_args):
        self.calls.append((key_type, domain, selector, key_path, list(extra_args)))
        if self.fail:
            raise KeyGenerationError("generator exited with status 1", 1)
        key_path.write_text(f"private key {selector}\n")
        return f'{selector}._domainkey IN TXT ( "v=DKIM1; k={key_type}; p=AAAA" )\n'


class FakeNotifier:
    """Records update command invocations."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: list[list[str]] = []

    def notify(self, args):
        self.calls.append(list(args))
        return self.result


def make_key_files(key_dir: Path, month: int, key_type: str, domain: str) -> Path:
    """Create a key/record file pair as the generator would."""
    key_dir.mkdir(parents=True, exist_ok=True)
    key_path = key_dir / f"{format_month(month)}_{key_type}_{domain}.key"
    key_path.write_text("private key\n")
    key_path.with_suffix(".txt").write_text("record\n")
    return key_path


def write_state(path: Path, entries: dict[str, list[tuple[Path, str]]]) -> None:
    """Write a key config file mapping domain -> [(key path, selector)]."""
    document = {
        "domain": {
            domain: {
                "selectors": [
                    {"path": str(key_path), "selector": selector}
                    for key_path, selector in items
                ]
            }
            for domain, items in entries.items()
        }
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document))


def read_state(path: Path) -> dict[str, list[str]]:
    """Return domain -> [key path] of a key config file."""
    document = json.loads(path.read_text())
    return {
        domain: [entry["path"] for entry in data["selectors"]]
        for domain, data in document["domain"].items()
    }


@pytest.fixture
def key_dir(tmp_path: Path) -> Path:
    return tmp_path / "keys"


@pytest.fixture
def settings(key_dir: Path) -> RolloverSettings:
    return RolloverSettings.model_validate(
        {
            "key_dir": key_dir,
            "future_period": 1,
            "active_period": 3,
            "expired_period": 1,
            "key_types": [{"type": "ed25519"}],
            "domains": ["example.com"],
        }
    )


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def context(settings: RolloverSettings, generator: FakeGenerator) -> RolloverContext:
    return RolloverContext(
        settings=settings,
        registry=KeyTypeRegistry(settings.key_types),
        month=MONTH,
        generator=generator,
    )
