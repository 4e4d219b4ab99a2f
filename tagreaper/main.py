"""
Tag-Reaper CLI - Tag-scoped AWS garbage collector

Main entry point for the command-line interface.
"""

import signal
import sys
import threading
from contextlib import contextmanager
from typing import Dict, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from . import __version__
from .core.aws_client import AWSClient
from .core.config import (
    DEFAULT_AGE_MARKER_KEY,
    DEFAULT_MIN_AGE,
    DEFAULT_NAME_PREFIX,
    DEFAULT_OWNER_MARKER_KEY,
    DEFAULT_OWNER_MARKER_PREFIX,
    DEFAULT_REGION,
    EligibilityConfig,
    ReaperConfig,
    parse_duration,
)
from .core.exceptions import AWSClientError, ConfigError, DependencyCycleError, TagReaperError
from .core.logging import get_logger, setup_logging
from .core.models import ResourceType
from .core.pipeline import ReaperPipeline
from .reporters.cli_reporter import CLIReporter
from .reporters.json_reporter import JSONReporter

console = Console()
logger = get_logger(__name__)

EXIT_FAILURES = 1
EXIT_CANCELLED = 130


def _parse_min_age(ctx, param, value):
    """Convert --min-age text into a timedelta."""
    if value is None:
        return DEFAULT_MIN_AGE
    try:
        return parse_duration(value)
    except ConfigError as e:
        raise click.BadParameter(e.message)


def _parse_wait_timeouts(ctx, param, values: Tuple[str, ...]) -> Dict[str, float]:
    """Parse repeated TYPE=SECONDS pairs."""
    known = {t.value for t in ResourceType}
    timeouts: Dict[str, float] = {}
    for item in values:
        name, _, seconds = item.partition("=")
        if name not in known:
            raise click.BadParameter(f"Unknown resource type {name!r}; expected one of {', '.join(sorted(known))}")
        try:
            timeouts[name] = parse_duration(seconds).total_seconds()
        except ConfigError as e:
            raise click.BadParameter(e.message)
    return timeouts


def common_options(func):
    """Options shared by every command that talks to AWS."""
    options = [
        click.option("--region", "-r", default=DEFAULT_REGION, envvar="TAG_REAPER_REGION", show_default=True,
                     help="AWS region to sweep"),
        click.option("--profile", "-p", default=None, envvar="TAG_REAPER_PROFILE",
                     help="AWS profile name from ~/.aws/credentials"),
        click.option("--name-prefix", default=DEFAULT_NAME_PREFIX, envvar="TAG_REAPER_NAME_PREFIX",
                     show_default=True, help="Resource-name prefix used to narrow queries"),
        click.option("--owner-key", default=DEFAULT_OWNER_MARKER_KEY, envvar="TAG_REAPER_OWNER_KEY",
                     show_default=True, help="Tag holding the owner marker"),
        click.option("--owner-prefix", default=DEFAULT_OWNER_MARKER_PREFIX, envvar="TAG_REAPER_OWNER_PREFIX",
                     show_default=True, help="Required prefix of the owner marker"),
        click.option("--age-key", default=DEFAULT_AGE_MARKER_KEY, envvar="TAG_REAPER_AGE_KEY",
                     show_default=True, help="Tag holding the creation Unix timestamp"),
        click.option("--min-age", default="4d", envvar="TAG_REAPER_MIN_AGE", callback=_parse_min_age,
                     show_default=True, help="Minimum age before a resource is reclaimed (e.g. 36h, 4d)"),
        click.option("--max-workers", default=8, type=click.IntRange(min=1), envvar="TAG_REAPER_MAX_WORKERS",
                     show_default=True, help="Parallel deletions per stage"),
        click.option("--include-iam", is_flag=True, default=False, envvar="TAG_REAPER_INCLUDE_IAM",
                     help="Also list IAM roles (slow: pages through every role)"),
        click.option("--log-level", default="INFO", envvar="TAG_REAPER_LOG_LEVEL", show_default=True,
                     type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
                     help="Console and file log level"),
        click.option("--log-file", default=None, envvar="TAG_REAPER_LOG_FILE",
                     help="Also write logs to this file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(
    region: str,
    profile: Optional[str],
    name_prefix: str,
    owner_key: str,
    owner_prefix: str,
    age_key: str,
    min_age,
    max_workers: int,
    include_iam: bool,
    **extra,
) -> ReaperConfig:
    eligibility = EligibilityConfig(
        owner_marker_key=owner_key,
        owner_marker_prefix=owner_prefix,
        age_marker_key=age_key,
        min_age=min_age,
    )
    return ReaperConfig(
        eligibility=eligibility,
        name_prefix=name_prefix,
        region=region,
        profile=profile,
        max_workers=max_workers,
        include_iam=include_iam,
        **extra,
    )


@contextmanager
def cancel_on_signals(pipeline: ReaperPipeline, out: Console = console):
    """
    Route SIGINT/SIGTERM to the pipeline's cancel event while active.

    In-flight deletions finish; no new lister or stage starts.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        logger.warning(f"Received signal {signum}; cancelling")
        if not pipeline.cancelled:
            out.print("\n[yellow]Cancelling: waiting for in-flight work to finish...[/yellow]")
        pipeline.cancel()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _validate(client: AWSClient, out: Console = console) -> None:
    try:
        client.validate_credentials()
    except AWSClientError as e:
        out.print(f"\n[red bold]Authentication Error:[/red bold] {str(e)}")
        sys.exit(EXIT_FAILURES)


@click.group()
@click.version_option(version=__version__, prog_name="tag-reaper")
def cli():
    """
    Tag-Reaper: tag-scoped AWS garbage collector

    Finds resources left behind by CI builds (owner tag + build-time tag
    older than --min-age) and deletes them in dependency order.
    """
    pass


@cli.command("list")
@common_options
def list_resources(log_level: str, log_file: Optional[str], **options):
    """
    List stale resources without deleting anything.

    Examples:

        # Default project in us-west-2
        tag-reaper list

        # Everything older than a day, including IAM roles
        tag-reaper list --min-age 1d --include-iam
    """
    setup_logging(level=log_level, log_file=log_file)
    config = _build_config(**options)
    reporter = CLIReporter(console)
    pipeline = ReaperPipeline(config)
    _validate(pipeline.aws_client)

    reporter.print_header("Stale Resources", config.region, config.name_prefix)
    with cancel_on_signals(pipeline):
        discovery = pipeline.discover()
    reporter.report_discovery(discovery)

    if pipeline.cancelled:
        sys.exit(EXIT_CANCELLED)


@cli.command("plan")
@common_options
def plan_deletion(log_level: str, log_file: Optional[str], **options):
    """
    Show the staged deletion plan without deleting anything.

    Stages run one after another; units inside a stage run in parallel.
    """
    setup_logging(level=log_level, log_file=log_file)
    config = _build_config(**options)
    reporter = CLIReporter(console)
    pipeline = ReaperPipeline(config)
    _validate(pipeline.aws_client)

    reporter.print_header("Deletion Plan", config.region, config.name_prefix)
    with cancel_on_signals(pipeline):
        discovery = pipeline.discover()
    reporter.report_discovery(discovery)

    try:
        plan = pipeline.plan(discovery.resources)
    except DependencyCycleError as e:
        reporter.print_error(str(e))
        sys.exit(EXIT_FAILURES)
    reporter.report_plan(plan)

    if pipeline.cancelled:
        sys.exit(EXIT_CANCELLED)


@cli.command("sweep")
@common_options
@click.option("--dry-run", is_flag=True, default=False, envvar="TAG_REAPER_DRY_RUN",
              help="Plan and report without deleting anything")
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation")
@click.option("--report", "report_path", default=None, type=click.Path(dir_okay=False, allow_dash=True),
              help="Write outcomes as JSON lines to this file ('-' for stdout)")
@click.option("--fail-on-error", is_flag=True, default=False, envvar="TAG_REAPER_FAIL_ON_ERROR",
              help="Exit non-zero if any unit failed or was skipped")
@click.option("--poll-interval", default=5.0, type=click.FloatRange(min=0), show_default=True,
              envvar="TAG_REAPER_POLL_INTERVAL", help="Seconds between deletion status polls")
@click.option("--wait-timeout", "wait_timeouts", multiple=True, callback=_parse_wait_timeouts,
              metavar="TYPE=DURATION", help="Override a wait timeout, e.g. nat_gateway=15m (repeatable)")
def sweep(
    log_level: str,
    log_file: Optional[str],
    yes: bool,
    report_path: Optional[str],
    fail_on_error: bool,
    **options,
):
    """
    Discover, plan and delete stale resources.

    SAFETY FEATURES:
    - Dry-run mode (--dry-run): Preview without deleting
    - Confirmation prompt: Asks before deleting unless --yes
    - Ctrl-C stops after the current stage and still reports

    Examples:

        # Preview
        tag-reaper sweep --dry-run

        # Delete without prompting and keep a machine-readable record
        tag-reaper sweep --yes --report outcomes.jsonl

        # Nightly job: non-zero exit when anything is left behind
        tag-reaper sweep --yes --fail-on-error
    """
    setup_logging(level=log_level, log_file=log_file)
    config = _build_config(**options)
    # Keep stdout clean for the JSON-lines stream
    out = Console(stderr=True) if report_path == "-" else console
    reporter = CLIReporter(out)

    if config.dry_run:
        out.print(
            Panel(
                "[yellow bold]DRY-RUN MODE[/yellow bold]\n"
                "No resources will actually be deleted.",
                border_style="yellow",
            )
        )

    pipeline = ReaperPipeline(config, progress_callback=reporter.print_outcome)
    _validate(pipeline.aws_client, out)
    reporter.print_header("Sweep", config.region, config.name_prefix)

    try:
        with cancel_on_signals(pipeline, out):
            out.print("\n[bold]Step 1: Discovering stale resources...[/bold]")
            discovery = pipeline.discover()
            reporter.report_discovery(discovery)

            out.print("\n[bold]Step 2: Planning deletion order...[/bold]")
            plan = pipeline.plan(discovery.resources)
            reporter.report_plan(plan)

            outcomes = []
            if len(plan) and not config.dry_run and not yes and not pipeline.cancelled:
                out.print()
                confirmed = Confirm.ask(
                    f"[yellow]Delete {len(plan)} unit(s) in {len(plan.stages)} stage(s)?[/yellow]",
                    default=False,
                    console=out,
                )
                if not confirmed:
                    out.print("\n[yellow]Deletion cancelled by user.[/yellow]")
                    return

            if len(plan) and not pipeline.cancelled:
                verb = "Simulating" if config.dry_run else "Deleting"
                out.print(f"\n[bold]Step 3: {verb} {len(plan)} unit(s)...[/bold]\n")
                outcomes = pipeline.execute(plan)
    except TagReaperError as e:
        reporter.print_error(str(e))
        sys.exit(EXIT_FAILURES)

    summary = reporter.report_outcomes(outcomes, cancelled=pipeline.cancelled)

    if report_path == "-":
        JSONReporter().write(outcomes, sys.stdout)
    elif report_path:
        written = JSONReporter(output_path=report_path).report(outcomes)
        out.print(f"[dim]Outcomes saved to: {written}[/dim]")

    if pipeline.cancelled:
        sys.exit(EXIT_CANCELLED)
    if fail_on_error and summary.has_failures:
        sys.exit(EXIT_FAILURES)


@cli.command("validate")
@click.option("--profile", "-p", default=None, envvar="TAG_REAPER_PROFILE",
              help="AWS profile name from ~/.aws/credentials")
@click.option("--region", "-r", default=DEFAULT_REGION, envvar="TAG_REAPER_REGION",
              help="AWS region to use for validation")
def validate_credentials(profile: Optional[str], region: str):
    """Validate AWS credentials and show account info."""
    try:
        client = AWSClient(region=region, profile=profile)
        client.validate_credentials()
        account_id = client.get_account_id()

        console.print("\n[green bold]AWS credentials are valid![/green bold]")
        console.print(f"\n  Account ID: {account_id}")
        console.print(f"  Region: {region}")
        if profile:
            console.print(f"  Profile: {profile}")
        console.print()

    except AWSClientError as e:
        console.print(f"\n[red bold]Validation Failed:[/red bold] {str(e)}")
        sys.exit(EXIT_FAILURES)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
