# SPDX-License-Identifier: MPL-2.0
"""Main CLI entry point.

Exit status is 0 when every recorded key is still advertised, 1 when some
were rotated, and 2 when the binding could not be verified.
"""
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click

from bindcheck.core.config import CheckerConfig
from bindcheck.core.exceptions import BindCheckError
from bindcheck.core.models import SlotReport
from bindcheck.services.slots import LuksDumpFileReader, LuksTokenReader, SlotChecker
from bindcheck.services.walker import MetadataWalker

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_STALE = 1
EXIT_ERROR = 2


def check_options(func: Callable) -> Callable:
    """Options shared by every checking command."""
    options = [
        click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
                     help='Output format'),
        click.option('--timeout', type=float, default=None,
                     help='Seconds to wait for each key server'),
        click.option('--max-depth', type=int, default=None,
                     help='Maximum nesting of secret-sharing bindings'),
        click.option('--workers', type=int, default=None,
                     help='Sub-bindings to check in parallel'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_checker(timeout: Optional[float], max_depth: Optional[int], workers: Optional[int],
                  reader=None) -> SlotChecker:
    config = CheckerConfig.from_env(fetch_timeout=timeout, max_depth=max_depth, max_workers=workers)
    return SlotChecker(walker=MetadataWalker(config=config), reader=reader)


def emit_report(report: SlotReport, output: str) -> None:
    if output == 'json':
        click.echo(report.to_json())
        return

    if report.is_clean:
        click.echo(f"{report.device} slot {report.slot}: all recorded keys are still advertised")
        return

    click.echo(f"The following keys bound to {report.device} slot {report.slot} "
               "are no longer advertised and were probably rotated:")
    for key in sorted(report.stale_keys):
        click.echo(f"  {key}")


def emit_error(error: BindCheckError, device: str, slot: str, output: str) -> None:
    if output != 'json':
        click.echo(f"Error: {error.message}", err=True)
        return

    cause = error.__cause__
    click.echo(json.dumps({
        'device': device,
        'slot': slot,
        'error': error.message,
        'error_type': type(error).__name__,
        'cause_type': type(cause).__name__ if cause is not None else None,
    }, indent=2))


def run_check(check: Callable[[], SlotReport], device: str, slot: str, output: str) -> None:
    try:
        report = check()
    except BindCheckError as e:
        emit_error(e, device, slot, output)
        sys.exit(EXIT_ERROR)
    except Exception as e:
        logger.exception(f"Unexpected error while checking {device}")
        click.echo(f"Error: unexpected failure while checking {device}: {e}", err=True)
        sys.exit(EXIT_ERROR)

    emit_report(report, output)
    sys.exit(EXIT_CLEAN if report.is_clean else EXIT_STALE)


@click.group()  # type: ignore[misc]
@click.option('--verbose', '-v', is_flag=True, help='Log progress to stderr')
def cli(verbose: bool) -> None:
    """Report keys that key servers rotated since a device was bound."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()  # type: ignore[misc]
@click.option('--device', '-d', required=True, help='Encrypted block device')
@click.option('--slot', '-s', required=True, help='Key slot to check')
@click.option('--luks-dump', type=click.Path(exists=True, dir_okay=False),
              help='Read the header from a saved luksDump --dump-json-metadata file')
@check_options
def report(device: str, slot: str, luks_dump: Optional[str], output: str,
           timeout: Optional[float], max_depth: Optional[int], workers: Optional[int]) -> None:
    """Check the binding of one key slot."""
    reader = LuksDumpFileReader(luks_dump) if luks_dump else LuksTokenReader()

    def check() -> SlotReport:
        return build_checker(timeout, max_depth, workers, reader).check(device, slot)

    run_check(check, device, slot, output)


@cli.command()  # type: ignore[misc]
@click.argument('metadata_file', type=click.Path(exists=True, dir_okay=False))
@check_options
def metadata(metadata_file: str, output: str, timeout: Optional[float],
             max_depth: Optional[int], workers: Optional[int]) -> None:
    """Check binding metadata stored in a file (JSON or compact JWE)."""
    raw = Path(metadata_file).read_bytes()

    def check() -> SlotReport:
        return build_checker(timeout, max_depth, workers).check_raw(raw, metadata_file)

    run_check(check, metadata_file, '-', output)


@cli.command()  # type: ignore[misc]
def version() -> None:
    """Show version information."""
    from bindcheck import __version__

    click.echo(f"bindcheck v{__version__}")


if __name__ == "__main__":
    cli()
