"""Command-line interface for gcontrol."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import uvicorn
import yaml
from pydantic import ValidationError
from safir.asyncio import run_with_asyncio
from safir.click import display_help

from .config import Config
from .constants import DEFAULT_LISTEN_ADDRESS
from .dependencies.config import config_dependency
from .factory import Factory
from .main import create_openapi
from .models.ldap import Credentials
from .models.sync import SyncFailure, SyncSuccess

__all__ = [
    "help",
    "main",
    "openapi_schema",
    "run",
    "sync",
    "validate_config",
]


def _load_config(config_path: Path | None) -> Config:
    """Load the configuration, turning failures into usage errors."""
    try:
        if config_path:
            config_dependency.set_config_path(config_path)
        return config_dependency.config()
    except (OSError, ValidationError, yaml.YAMLError) as e:
        path = config_path or config_dependency.config_path
        msg = f"Cannot load configuration from {path}: {e!s}"
        raise click.ClickException(msg) from e


def _parse_listen_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        msg = f"{address} is not of the form HOST:PORT"
        raise click.BadParameter(msg, param_hint="--listen-address")
    return host.strip("[]"), int(port)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Command-line interface for gcontrol."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.option(
    "--output",
    default=None,
    type=click.Path(path_type=Path),
    help="Output path (output to stdout if not given).",
)
def openapi_schema(*, output: Path | None) -> None:
    """Generate the OpenAPI schema."""
    schema = create_openapi()
    if output:
        output.parent.mkdir(exist_ok=True)
        output.write_text(schema)
    else:
        sys.stdout.write(schema)


@main.command()
@click.option(
    "--config-path",
    envvar="GCONTROL_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
@click.option(
    "--listen-address",
    envvar="GCONTROL_LISTEN_ADDRESS",
    default=DEFAULT_LISTEN_ADDRESS,
    show_default=True,
    help="Address and port on which to listen.",
)
def run(*, config_path: Path | None, listen_address: str) -> None:
    """Run the login listener until terminated."""
    host, port = _parse_listen_address(listen_address)
    config = _load_config(config_path)
    ssl_options: dict[str, str] = {}
    if config.grafana and config.grafana.tls_enabled:
        ssl_options = {
            "ssl_certfile": str(config.grafana.cert_file),
            "ssl_keyfile": str(config.grafana.cert_key),
        }
    uvicorn.run(
        "gcontrol.main:create_app",
        factory=True,
        host=host,
        port=port,
        **ssl_options,
    )


@main.command()
@click.argument("username")
@click.option(
    "--password",
    envvar="GCONTROL_PASSWORD",
    prompt=True,
    hide_input=True,
    help="Password of the user (prompted for if not given).",
)
@click.option(
    "--config-path",
    envvar="GCONTROL_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
@run_with_asyncio
async def sync(
    username: str, *, password: str, config_path: Path | None
) -> None:
    """Synchronize the permissions of one user and report the results.

    Exits with a non-zero status if no directory server could be queried.
    """
    config = _load_config(config_path)
    credentials = Credentials(username=username, password=password)
    async with Factory.standalone(config) as factory:
        permission_sync = factory.create_permission_sync()
        outcomes = await permission_sync.synchronize(credentials)

    for outcome in outcomes:
        if isinstance(outcome, SyncSuccess):
            grants = ", ".join(
                f"org {g.org_id} team {g.team_id}"
                for g in sorted(outcome.grants)
            )
            click.echo(
                f"{outcome.server}: {len(outcome.groups)} groups,"
                f" grants: {grants or 'none'}"
            )
        else:
            click.echo(
                f"{outcome.server}: {outcome.kind} failure: {outcome.message}"
            )
    if all(isinstance(o, SyncFailure) for o in outcomes):
        raise click.ClickException("No directory server could be queried")


@main.command()
@click.option(
    "--config-path",
    envvar="GCONTROL_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
def validate_config(*, config_path: Path | None) -> None:
    """Check that the configuration file is valid."""
    config = _load_config(config_path)
    click.echo(f"Configuration valid ({len(config.servers)} servers)")
