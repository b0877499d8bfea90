import logging
import os
import shlex
from dataclasses import fields

import click
from rich.console import Console
from rich.logging import RichHandler

from .constants import CONFIG_FILE_NAME, LOG_FILE_RELPATH
from .core import PostgresProvisioner
from .errors import ProvisionerError
from .models import ProvisionerSettings
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.connection import configure, export_variables
from .services.environment import find_project_root
from .services.filesystem import FileSystemService
from .services.sql_client import SqlClientService

_SETTINGS_FIELDS = {item.name: item.type for item in fields(ProvisionerSettings)}
_COERCE = {"int": int, "float": float, "str": str}

stdout = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
        )
    ],
)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _build_settings(config_values) -> ProvisionerSettings:
    overrides = {}
    for key, type_name in _SETTINGS_FIELDS.items():
        if key in config_values:
            coerce = _COERCE.get(getattr(type_name, "__name__", type_name), str)
            try:
                overrides[key] = coerce(config_values[key])
            except (TypeError, ValueError) as exc:
                raise ProvisionerError(f"Invalid value for '{key}' in config: {config_values[key]!r}") from exc
    return ProvisionerSettings(**overrides)


def _configure_logging(logger, verbose: bool, log_file):
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger().setLevel(level)
    logger.setLevel(level)

    if log_file:
        FileSystemService(logger=logger).ensure_parent_dir(log_file)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%dT%H:%M:%S")
        )
        logger.addHandler(file_handler)


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {CONFIG_FILE_NAME} if present.",
)
@click.option(
    "--project-root",
    required=False,
    type=click.Path(file_okay=False),
    help="Project root holding the .env secrets file. Discovered from the working directory by default.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, project_root, verbose, log_file):
    """Provision and resolve the copilot-cli PostgreSQL instance."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), CONFIG_FILE_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = ConfigLoader().load(resolved_config)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj = {
        "config": config_values,
        "project_root": project_root or str(find_project_root()),
        "verbose": bool(_resolve_option(verbose, config_values, "verbose", default=False)),
        "log_file": _resolve_option(log_file, config_values, "log_file"),
    }


@main.command("env")
@click.option(
    "--optional-db",
    is_flag=True,
    default=False,
    help="Downgrade a missing CI secret to a warning for jobs that do not need the database.",
)
@click.option(
    "--export",
    "export_shell",
    is_flag=True,
    default=False,
    help="Print `export` statements for `eval`, including the secret.",
)
@click.option("--verify", is_flag=True, default=False, help="Check connectivity with psql or pg_isready.")
@click.pass_obj
def env_command(obj, optional_db, export_shell, verify):
    """Detect the execution context and resolve connection settings."""
    logger = logging.getLogger("copilotdb")
    _configure_logging(logger, obj["verbose"], obj["log_file"])

    try:
        report = configure(os.environ, obj["project_root"], require_database=not optional_db)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    if export_shell:
        for key, value in export_variables(report).items():
            click.echo(f"export {key}={shlex.quote(value)}")
        return

    descriptor = report.descriptor
    stdout.rule("Environment Configuration Summary")
    stdout.print(f"Deployment Type: {report.context.value}")
    stdout.print(f"CI Environment: {'true' if report.context.is_ci else 'false'}")
    if report.platform:
        stdout.print(f"Platform: {report.platform}")
    if descriptor is None:
        stdout.print(f"[yellow]{report.warning}[/yellow]")
        stdout.rule()
        return

    stdout.print("Database Configuration:")
    stdout.print(f"  Host: {descriptor.host}")
    stdout.print(f"  Port: {descriptor.port}")
    stdout.print(f"  Database: {descriptor.database}")
    stdout.print(f"  User: {descriptor.user}")
    stdout.print(f"  Connection: {descriptor.display_url}")
    stdout.rule()

    if verify:
        runner = CommandRunner(logger=logger)
        verified = SqlClientService(logger=logger, run_cmd=runner.run).verify_connection(descriptor)
        if verified is False:
            raise click.ClickException(f"Database connection failed: {descriptor.display_url}")


def _run_lifecycle(obj, action, dry_run=None, with_ui=None, json_output=False):
    logger = logging.getLogger("copilotdb")
    config_values = obj["config"]
    project_root = obj["project_root"]
    log_file = obj["log_file"] or os.path.join(project_root, LOG_FILE_RELPATH)
    _configure_logging(logger, obj["verbose"], log_file)

    try:
        provisioner = PostgresProvisioner(
            project_root=project_root,
            settings=_build_settings(config_values),
            with_ui=bool(_resolve_option(with_ui, config_values, "with_ui", default=False)),
            dry_run=bool(_resolve_option(dry_run, config_values, "dry_run", default=False)),
            json_output=json_output,
        )
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(provisioner.run(action))


@main.command()
@click.option("--with-ui", is_flag=True, default=None, help="Include the pgAdmin web UI.")
@click.option("--dry-run", is_flag=True, default=None, help="Preview what would be done without changes.")
@click.pass_obj
def setup(obj, with_ui, dry_run):
    """Set up and start PostgreSQL."""
    _run_lifecycle(obj, "setup", dry_run=dry_run, with_ui=with_ui)


@main.command()
@click.option("--dry-run", is_flag=True, default=None, help="Preview what would be done without changes.")
@click.pass_obj
def start(obj, dry_run):
    """Start the database containers."""
    _run_lifecycle(obj, "start", dry_run=dry_run)


@main.command()
@click.option("--dry-run", is_flag=True, default=None, help="Preview what would be done without changes.")
@click.pass_obj
def stop(obj, dry_run):
    """Stop the database containers."""
    _run_lifecycle(obj, "stop", dry_run=dry_run)


@main.command()
@click.option("--json", "json_output", is_flag=True, default=False, help="Print the status as JSON.")
@click.pass_obj
def status(obj, json_output):
    """Show container, readiness and configuration status."""
    _run_lifecycle(obj, "status", json_output=json_output)


if __name__ == "__main__":
    main()
