"""
Command-line interface for PyGNSS-PPP.

Exit codes:
    0  every station/day finished (processed, skipped or unavailable)
    1  at least one station/day errored
    2  configuration, lock or pre-flight failure; nothing was processed
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from pygnss_ppp import __version__
from pygnss_ppp.core.exceptions import ConfigurationError, LockError, PreflightError, StationError
from pygnss_ppp.utils.dates import GNSSDate


EXIT_ERRORED = 1
EXIT_PREFLIGHT = 2

config_option = click.option(
    "--config", "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)


@click.group()
@click.version_option(version=__version__, prog_name="PyGNSS-PPP")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """PyGNSS-PPP: daily Precise Point Positioning pipeline

    Processes every configured station over the requested days, trying
    Final, Rapid and Ultra orbit products in that order.
    """
    ctx.ensure_object(dict)


@cli.command()
@config_option
@click.option(
    "--days", "-n",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of days to process, ending today (UTC)",
)
@click.option(
    "--date", "-d",
    "dates",
    multiple=True,
    help="Explicit day (YYYY-MM-DD or YYYY/DOY); repeatable, overrides --days",
)
@click.option(
    "--tier", "-t",
    type=click.Choice(["all", "final", "rapid", "ultra", "realtime"]),
    default="all",
    show_default=True,
    help="Orbit tier restriction",
)
@click.option("--force", is_flag=True, help="Reprocess days that already have results")
@click.option("--debug", is_flag=True, help="Keep the working directory and log verbosely")
@click.option("--fullog", is_flag=True, help="Archive the whole working directory per day")
@click.option("--lock", is_flag=True, help="Refuse to run while another instance holds the lock")
def run(
    config: Path | None,
    days: int,
    dates: tuple[str, ...],
    tier: str,
    force: bool,
    debug: bool,
    fullog: bool,
    lock: bool,
) -> None:
    """Run daily PPP processing.

    Examples:

        # Process yesterday and today for all configured stations
        pygnss-ppp run -n 2

        # Reprocess two specific days with Final orbits only
        pygnss-ppp run -d 2024-01-15 -d 2024/016 -t final --force

        # Real-time run from cron, Ultra orbits and a trailing window
        pygnss-ppp run -t realtime --lock
    """
    from pygnss_ppp.core.context import RunOptions, TierMode
    from pygnss_ppp.processing.pipeline import PPPPipeline
    from pygnss_ppp.utils.logging import StatusPrinter, setup_logging

    printer = StatusPrinter(click.echo)
    settings = _load(config, printer)

    log_config = settings.logging
    setup_logging(
        level="DEBUG" if debug else log_config.level,
        log_dir=log_config.log_dir,
        log_to_file=log_config.log_to_file,
        log_to_console=log_config.log_to_console,
        json_format=log_config.json_format,
    )

    options = RunOptions(
        days=days,
        dates=tuple(_parse_date(d) for d in dates),
        tier_mode=TierMode(tier),
        force=force,
        debug=debug,
        fullog=fullog,
        lock=lock,
    )

    pipeline = PPPPipeline(settings, options, printer=printer)
    try:
        summary = pipeline.run()
    except (ConfigurationError, LockError, PreflightError, StationError) as e:
        printer.fatal(str(e))
        sys.exit(EXIT_PREFLIGHT)

    if summary.errored:
        click.echo(f"\n{len(summary.errored)}/{len(summary.results)} station-days errored:")
        for result in summary.errored:
            click.echo(f"  {result.station} {result.day.iso}: {result.message}")
        sys.exit(EXIT_ERRORED)


@cli.command()
@config_option
def stations(config: Path | None) -> None:
    """List the stations a run would process."""
    from pygnss_ppp.stations.metadata import load_stations
    from pygnss_ppp.utils.logging import StatusPrinter

    printer = StatusPrinter(click.echo)
    settings = _load(config, printer)

    try:
        station_list = load_stations(settings)
    except StationError as e:
        printer.fatal(str(e))
        sys.exit(EXIT_PREFLIGHT)

    click.echo(f"{'Code':<6} {'Receiver':<20} {'Antenna':<20}")
    click.echo("-" * 48)
    for s in station_list:
        click.echo(f"{s.upper:<6} {(s.receiver or '')[:20]:<20} {(s.antenna or '')[:20]:<20}")

    click.echo(f"\nTotal: {len(station_list)} stations")


def _load(config: Path | None, printer):
    from pygnss_ppp.core.config import load_settings

    try:
        return load_settings(config)
    except (ConfigurationError, ValueError) as e:
        printer.fatal(f"Invalid configuration: {e}")
        sys.exit(EXIT_PREFLIGHT)


def _parse_date(date_str: str) -> GNSSDate:
    """Parse date string to GNSSDate (YYYY-MM-DD, YYYY/DOY or YYYYDOY)."""
    try:
        return GNSSDate.parse(date_str)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--date")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
