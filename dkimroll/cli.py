"""
Command-line interface for DKIM key rollover.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from dkimroll.common.config import Config
from dkimroll.common.exceptions import DkimRollError
from dkimroll.common.logging_utils import parse_log_level, setup_logger
from dkimroll.core.context import parse_month
from dkimroll.core.engine import RolloverEngine, RunOutcome
from dkimroll.core.keygen import KeyGenerator


class RolloverFailed(click.ClickException):
    """A fatal error that aborted the command."""

    exit_code = int(RunOutcome.FAILED)


def _load_engine(
    config_path: Path | None,
    month: str | None = None,
    dry_run: bool = False,  # noqa: FBT001, FBT002
) -> RolloverEngine:
    month_index = None
    if month is not None:
        month_index = parse_month(month)
        if month_index is None:
            msg = f"{month!r} is not a YYYYMM month"
            raise click.BadParameter(msg, param_hint="--month")

    config = Config()
    try:
        settings = config.load_settings(config_path)
        return RolloverEngine(
            settings, month=month_index, dry_run=dry_run, config=config
        )
    except DkimRollError as err:
        raise RolloverFailed(str(err)) from err


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Log level name or number (default: from DKIMROLL_LOG_LEVEL env or INFO)",
)
def cli(log_level: str | None) -> None:
    """DKIM key rollover"""
    try:
        level = parse_log_level(log_level or Config().LOG_LEVEL)
    except ValueError as err:
        raise click.BadParameter(str(err), param_hint="--log-level") from err
    setup_logger(logging.getLogger("dkimroll"), level)


@cli.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (default: from DKIMROLL_CONFIG env)",
)
@click.option("--dry-run", is_flag=True, help="Show changes without making them")
@click.option("--month", default=None, help="Pretend the current month is YYYYMM")
def run(
    config_path: Path | None,
    dry_run: bool,  # noqa: FBT001
    month: str | None,
) -> None:
    """Create, promote and retire keys; exits 3 when keys changed"""
    engine = _load_engine(config_path, month, dry_run)
    try:
        result = engine.run()
    except DkimRollError as err:
        raise RolloverFailed(str(err)) from err

    for change in result.changes:
        click.echo(
            f"{change.action.value} {change.domain} {change.selector} "
            f"{change.record_path}"
        )
    click.get_current_context().exit(int(result.outcome))


@cli.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (default: from DKIMROLL_CONFIG env)",
)
@click.option("--month", default=None, help="Pretend the current month is YYYYMM")
def status(config_path: Path | None, month: str | None) -> None:
    """Show every known key and its state"""
    engine = _load_engine(config_path, month)
    try:
        rows = engine.status()
    except DkimRollError as err:
        raise RolloverFailed(str(err)) from err

    if not rows:
        click.echo("No keys")
        return
    for row in rows:
        age = "-" if row.age is None else str(row.age)
        line = (
            f"{row.category:<8} {row.domain:<30} {row.key_type or '-':<10} "
            f"{row.selector:<20} {age:>4} {row.state}"
        )
        if row.error:
            line += f" ({row.error})"
        click.echo(line)


@cli.command()
@click.argument("key_type")
@click.argument("domain")
@click.argument("selector")
@click.argument("key_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--bits", default=2048, type=int, help="RSA key size (default: 2048)")
def genkey(
    key_type: str, domain: str, selector: str, key_file: Path, bits: int
) -> None:
    """Generate a key and print its DNS record"""
    generator = KeyGenerator(bits=bits)
    try:
        record = generator.generate(key_type, domain, selector, key_file)
    except DkimRollError as err:
        raise RolloverFailed(str(err)) from err
    click.echo(record, nl=False)


if __name__ == "__main__":
    cli()
