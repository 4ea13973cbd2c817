"""Command line interface for integrit-remote."""

from __future__ import annotations

import json
import logging
import os
import pathlib
from typing import Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table, box

from integrit_remote import get_version
from integrit_remote.config import Config, load_config
from integrit_remote.core import LifecycleController, Mode, OperationOutcome, SiteCommand
from integrit_remote.errors import NotificationPreconditionError
from integrit_remote.logging import configure_logging
from integrit_remote.notify import NotificationSettings
from integrit_remote.remote import build_executor
from integrit_remote.report import ReportStatus, change_lines
from integrit_remote.sites import SiteRegistry, SiteState

ENV_MAILSERVER = "INTEGRIT_REMOTE_MAILSERVER"
ENV_FROM = "INTEGRIT_REMOTE_FROM"
ENV_TO = "INTEGRIT_REMOTE_TO"

EXIT_OPERATION_FAILED = 1
EXIT_USAGE = 2


def _load_environment(env_file: Optional[pathlib.Path]) -> None:
    """Load environment variables from .env files."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    else:
        load_dotenv(override=False)


def _load_settings(config_path: Optional[pathlib.Path]) -> Config:
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _prepare_logging(
    config: Config,
    override_path: Optional[pathlib.Path],
    override_level: Optional[str],
    verbose: bool = False,
) -> logging.Logger:
    """Configure logging based on configuration and overrides."""

    log_path = override_path or config.logging.path
    try:
        return configure_logging(
            log_path=log_path,
            level=override_level or config.logging.level,
            echo_level="DEBUG" if verbose else None,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    except OSError as exc:
        raise typer.BadParameter(f"Cannot open log file: {exc}", param_hint="--log-path") from exc


def _build_registry(config: Config) -> SiteRegistry:
    return SiteRegistry(
        config_dir=config.paths.config_path,
        database_dir=config.paths.database_path,
    )


def _build_command(
    *,
    init: Optional[str],
    update: Optional[str],
    check: Optional[str],
    host: Optional[str],
    notification: NotificationSettings,
) -> Optional[SiteCommand]:
    """Turn the mutually exclusive mode flags into a single command value."""

    selected = [
        (flag, site)
        for flag, site in (("--init", init), ("--update", update), ("--check", check))
        if site is not None
    ]
    if len(selected) > 1:
        flags = ", ".join(flag for flag, _ in selected)
        raise typer.BadParameter(f"Choose only one mode; got {flags}.")
    if host is not None and init is None:
        raise typer.BadParameter("--host is only used together with --init.", param_hint="--host")

    if init is not None:
        return SiteCommand.init(init, host=host)
    if update is not None:
        return SiteCommand.update(update)
    if check is not None:
        return SiteCommand.check(check, notification)
    return None


def _render_outcome(outcome: OperationOutcome) -> None:
    if outcome.config_created is not None:
        typer.echo(f"Created config {outcome.config_created}")

    if outcome.report:
        typer.echo(outcome.report.rstrip("\n"))

    if not outcome.ok:
        typer.echo(f"ERROR: {outcome.message}", err=True)
        if outcome.notified and not outcome.rebaselined:
            typer.echo(
                f"Alert was sent but the baseline for '{outcome.site}' was not refreshed.",
                err=True,
            )
        return

    target = f"{outcome.site} ({outcome.host})" if outcome.host else outcome.site
    if outcome.mode is Mode.CHECK:
        if outcome.report_status is ReportStatus.CLEAN:
            typer.echo(f"{target}: no changes detected.")
        else:
            count = len(change_lines(outcome.report))
            typer.echo(f"{target}: {count} change(s) detected; alert sent, baseline refreshed.")
    elif outcome.mode is Mode.INIT:
        typer.echo(f"{target}: initial baseline created.")
    else:
        typer.echo(f"{target}: baseline updated.")


def _list_sites(registry: SiteRegistry) -> None:
    sites = registry.list_sites()
    console = Console()
    if not sites:
        console.print(f"No site configs found in {registry.config_dir}.")
        return

    table = Table(
        title="Config files exist for the following sites",
        box=box.ROUNDED,
        border_style="grey39",
        header_style="bold",
    )
    table.add_column("SITE", justify="left", no_wrap=True)
    table.add_column("LAST MODIFIED", justify="left", no_wrap=True)
    table.add_column("BASELINE", justify="left", no_wrap=True)
    for listing in sites:
        baseline = "yes" if listing.state is SiteState.BASELINED else "no"
        table.add_row(
            listing.name,
            listing.last_modified.strftime("%Y-%m-%d %H:%M:%S"),
            baseline,
        )
    console.print(table)


app = typer.Typer(
    name="integrit-remote",
    help=(
        "Run integrit on remote sites and alert on changes. "
        "Without a mode option, lists the configured sites."
    ),
    add_completion=False,
)

config_app = typer.Typer(help="Configuration utilities.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    """Print the package version and exit when requested."""

    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    init: Optional[str] = typer.Option(
        None,
        "--init",
        "-i",
        metavar="SITE",
        help="Create the first known-good database for a site.",
    ),
    update: Optional[str] = typer.Option(
        None,
        "--update",
        "-u",
        metavar="SITE",
        help="Update an existing site's known-good database.",
    ),
    check: Optional[str] = typer.Option(
        None,
        "--check",
        "-c",
        metavar="SITE",
        help="Check an existing site's integrity and alert on changes.",
    ),
    host: Optional[str] = typer.Option(
        None,
        "--host",
        metavar="USER@HOST",
        help="With --init, write a starter config for a site that has none.",
    ),
    mailserver: Optional[str] = typer.Option(
        None,
        "--mailserver",
        "-m",
        metavar="ADDR",
        help=f"SMTP relay for alerts (required with --check; env {ENV_MAILSERVER}).",
    ),
    from_address: Optional[str] = typer.Option(
        None,
        "--from",
        "-f",
        metavar="ADDR",
        help=f"From-address of alert emails (env {ENV_FROM}).",
    ),
    to_address: Optional[str] = typer.Option(
        None,
        "--to",
        "-t",
        metavar="ADDR",
        help=f"Alert recipients, comma-separated (required with --check; env {ENV_TO}).",
    ),
    config: Optional[pathlib.Path] = typer.Option(
        None,
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (used exclusively).",
    ),
    env_file: Optional[pathlib.Path] = typer.Option(
        None,
        "--env-file",
        metavar="PATH",
        help="Load environment variables from .env-style file before execution.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level (debug, info, warn, error).",
    ),
    log_path: Optional[pathlib.Path] = typer.Option(
        None,
        "--log-path",
        metavar="PATH",
        help="Override the base directory or file for log output.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Echo the operation log to stderr.",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Run one lifecycle operation, or list sites when no mode is given."""

    _load_environment(env_file)
    settings = _load_settings(config)
    ctx.obj = {"config": settings, "config_path": config}

    if ctx.invoked_subcommand is not None:
        return

    notification = NotificationSettings.from_config(
        settings.notify,
        mailserver=mailserver or os.environ.get(ENV_MAILSERVER),
        from_address=from_address or os.environ.get(ENV_FROM),
        to_address=to_address or os.environ.get(ENV_TO),
    )
    command = _build_command(
        init=init, update=update, check=check, host=host, notification=notification
    )

    logger = _prepare_logging(settings, log_path, log_level, verbose)
    registry = _build_registry(settings)

    if command is None:
        _list_sites(registry)
        return

    logger.info("Starting %s for site %s", command.mode.value, command.site)
    with build_executor(settings.remote, logger) as executor:
        controller = LifecycleController(
            registry=registry,
            executor=executor,
            binary=settings.paths.binary_path,
            binary_name=settings.remote.binary_name,
            logger=logger,
        )
        outcome = controller.execute(command)

    _render_outcome(outcome)
    if isinstance(outcome.error, NotificationPreconditionError):
        typer.echo("Use --mailserver and --to (or the notify settings) with --check.", err=True)
        raise typer.Exit(code=EXIT_USAGE)
    if not outcome.ok:
        raise typer.Exit(code=EXIT_OPERATION_FAILED)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    format: str = typer.Option(
        "yaml",
        "--format",
        help="Output format (yaml or json).",
    ),
) -> None:
    """Show the effective configuration for this invocation."""

    config: Config = ctx.obj["config"]

    normalized_format = format.strip().lower()
    if normalized_format not in {"yaml", "json"}:
        raise typer.BadParameter("Format must be 'yaml' or 'json'.", param_hint="--format")

    if config.loaded_from:
        typer.echo("Loaded configuration from:", err=True)
        for entry in config.loaded_from:
            typer.echo(f"- {entry}", err=True)

    data = config.model.model_dump(mode="json")
    if normalized_format == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, sort_keys=False))
