from pathlib import Path

import pytest
from conftest import MONTH, make_key_files

from dkimroll.common.exceptions import KeyConsistencyError, KeyGenerationError
from dkimroll.core.changes import ChangeAction
from dkimroll.core.context import KeyState, format_month, month_index, parse_month
from dkimroll.core.key import InvalidFilename, Key, MissingFile, Valid


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (-1, KeyState.FUTURE),
        (0, KeyState.ACTIVE),
        (2, KeyState.ACTIVE),  # active_period - 1
        (3, KeyState.EXPIRED),  # active_period
        (4, KeyState.DEAD),  # active_period + expired_period
        (40, KeyState.DEAD),
    ],
)
def test_state_for_age(context, age, expected):
    """Test lifecycle thresholds with active_period=3 and expired_period=1."""
    assert context.state_for_age(age) is expected


def test_state_for_age_last_expired_month(context):
    context.settings.expired_period = 2
    assert context.state_for_age(4) is KeyState.EXPIRED
    assert context.state_for_age(5) is KeyState.DEAD


def test_month_helpers():
    assert month_index(2024, 1) == 2024 * 12
    assert format_month(month_index(2024, 12)) == "202412"
    assert parse_month("202405") == MONTH
    assert parse_month("202413") is None
    assert parse_month("2024-5") is None
    assert parse_month("20240") is None


def test_parse_valid_filename(context, key_dir):
    path = key_dir / "202405_ed25519_example.com.key"
    outcome = Key.parse(context, path)

    assert isinstance(outcome, Valid)
    assert outcome.domain == "example.com"
    assert outcome.key_type == "ed25519"
    assert outcome.valid_from == MONTH
    assert outcome.selector == "202405-ed25519"
    assert outcome.record_path == key_dir / "202405_ed25519_example.com.txt"


def test_parse_explicit_selector(context, key_dir):
    outcome = Key.parse(context, key_dir / "202405_ed25519_example.com.key", "mail")
    assert isinstance(outcome, Valid)
    assert outcome.selector == "mail"


@pytest.mark.parametrize(
    "name",
    [
        "202405_ed25519_example.com.pem",
        "202405_ed25519.key",
        "202405_ed25519_example_com.key",
        "2024-5_ed25519_example.com.key",
        "202400_ed25519_example.com.key",
        "202405_dsa_example.com.key",
    ],
)
def test_parse_invalid_filename(context, key_dir, name):
    outcome = Key.parse(context, key_dir / name)
    assert isinstance(outcome, InvalidFilename)
    assert outcome.reason


def test_load_valid_key(context, key_dir):
    path = make_key_files(key_dir, MONTH - 1, "ed25519", "example.com")
    key = Key.from_file(context, path)

    assert key.state is KeyState.ACTIVE
    assert key.age == 1
    assert key.error is None


def test_load_missing_record_file(context, key_dir):
    path = make_key_files(key_dir, MONTH, "ed25519", "example.com")
    path.with_suffix(".txt").unlink()

    key = Key.from_file(context, path)

    assert key.state is KeyState.INVALID
    assert "missing" in key.error
    assert key.age is None


def test_load_without_file_check(context, key_dir):
    key = Key.from_file(
        context, key_dir / "202406_ed25519_example.com.key", check_files=False
    )
    assert key.state is KeyState.FUTURE


def test_check_files_reports_missing_key(context, key_dir):
    outcome = Key.parse(context, key_dir / "202405_ed25519_example.com.key")
    assert isinstance(Key._check_files(outcome), MissingFile)


def test_create_runs_generator(context, generator, key_dir):
    key = Key.create(context, "example.com", "ed25519", 0)

    assert key.state is KeyState.ACTIVE
    assert key.key_path == key_dir / "202405_ed25519_example.com.key"
    assert key.record_path.read_text().startswith("202405-ed25519._domainkey")
    assert generator.calls == [
        ("ed25519", "example.com", "202405-ed25519", key.key_path, [])
    ]
    change = context.changes.entries[0]
    assert change.action is ChangeAction.ADD
    assert change.record_path == str(key.record_path)


def test_create_future_key_passes_extra_args(context, generator, key_dir):
    context.registry.get("ed25519").args.extend(["--flag", "x"])

    key = Key.create(context, "example.com", "ed25519", 1)

    assert key.state is KeyState.FUTURE
    assert key.selector == "202406-ed25519"
    assert generator.calls[0][4] == ["--flag", "x"]


def test_create_replaces_stale_files(context, key_dir):
    path = make_key_files(key_dir, MONTH, "ed25519", "example.com")
    path.with_suffix(".txt").write_text("stale")

    Key.create(context, "example.com", "ed25519", 0)

    assert "stale" not in path.with_suffix(".txt").read_text()


def test_create_generator_failure_is_fatal(context, generator):
    generator.fail = True
    with pytest.raises(KeyGenerationError):
        Key.create(context, "example.com", "ed25519", 0)
    assert not context.changes


def test_create_invalid_result_is_fatal(context):
    class NoKeyGenerator:
        def generate(self, key_type, domain, selector, key_path, extra_args):
            return "record only\n"

    context.generator = NoKeyGenerator()
    with pytest.raises(KeyConsistencyError):
        Key.create(context, "example.com", "ed25519", 0)


def test_create_dry_run_touches_nothing(context, generator, key_dir):
    context.dry_run = True

    key = Key.create(context, "example.com", "ed25519", 0)

    assert key.state is KeyState.ACTIVE
    assert generator.calls == []
    assert not key_dir.exists()
    assert len(context.changes) == 1


def test_delete_unlinks_files(context, key_dir):
    path = make_key_files(key_dir, MONTH - 4, "ed25519", "example.com")
    key = Key.from_file(context, path)

    key.delete()

    assert not path.exists()
    assert not path.with_suffix(".txt").exists()
    change = context.changes.entries[0]
    assert change.action is ChangeAction.DELETE
    assert change.selector == "202401-ed25519"


def test_delete_moves_to_archive(context, key_dir, tmp_path: Path):
    archive = tmp_path / "archive"
    context.settings.key_archive = archive
    path = make_key_files(key_dir, MONTH - 4, "ed25519", "example.com")
    key = Key.from_file(context, path)

    key.delete()

    assert not path.exists()
    assert (archive / path.name).exists()
    assert (archive / path.with_suffix(".txt").name).exists()


def test_delete_skips_missing_files(context, key_dir):
    key = Key.from_file(context, key_dir / "202401_ed25519_example.com.key")
    assert key.state is KeyState.INVALID

    key.delete()

    assert context.changes.as_args() == [
        "del",
        "example.com",
        "202401-ed25519",
        str(key_dir / "202401_ed25519_example.com.txt"),
    ]


def test_delete_leaves_files_outside_key_dir(context, tmp_path: Path):
    path = make_key_files(tmp_path / "elsewhere", MONTH - 4, "ed25519", "example.com")
    key = Key.from_file(context, path)
    assert key.state is KeyState.DEAD

    key.delete()

    assert path.exists()
    assert path.with_suffix(".txt").exists()
    assert context.changes.entries[0].action is ChangeAction.DELETE


def test_delete_leaves_non_key_files(context, key_dir):
    key_dir.mkdir(parents=True)
    path = key_dir / "notes.pem"
    path.write_text("not a key\n")
    key = Key.from_file(context, path, "sel")
    assert key.state is KeyState.INVALID

    key.delete()

    assert path.exists()


def test_delete_without_removing_files(context, key_dir):
    path = make_key_files(key_dir, MONTH, "ed25519", "example.com")
    key = Key.from_file(context, path, "old")

    key.delete(remove_files=False)

    assert path.exists()
    assert path.with_suffix(".txt").exists()
    assert context.changes.as_args() == [
        "del",
        "example.com",
        "old",
        str(path.with_suffix(".txt")),
    ]
