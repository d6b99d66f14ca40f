"""CLI entry point for the nsc tool."""

import logging
import sys

import click

from nsc.adapters import get_adapter, registered_protocols
from nsc.comparator import run_check
from nsc.config import DEFAULT_ENV_FILE, load_config, load_env, resolve_config
from nsc.errors import NscError
from nsc.executor import resolve_container
from nsc.models import Verdict
from nsc.output import ICON_FAIL, divergence_message, render, render_error
from nsc.tools import ensure_tools
from nsc.transport import Transport

logger = logging.getLogger(__name__)

FORMATS = ("table", "json")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--public-rpc", default=None, metavar="URL", help="Public reference RPC endpoint."
)
@click.option(
    "--local-rpc",
    default=None,
    metavar="URL",
    help="Local RPC endpoint (default: from RPC_PORT or the protocol's default port).",
)
@click.option(
    "--protocol",
    "-p",
    default=None,
    type=click.Choice(registered_protocols(), case_sensitive=False),
    help="Protocol family of the node (default: $PROTOCOL or evm).",
)
@click.option(
    "--block-lag",
    default=None,
    type=click.IntRange(min=0),
    help="Acceptable lag threshold (default: 2).",
)
@click.option(
    "--sample-secs",
    default=None,
    type=click.IntRange(min=1),
    help="ETA sampling window in seconds (default: 10).",
)
@click.option(
    "--growth-rate",
    default=None,
    type=click.FloatRange(min=0),
    help="Assumed public chain growth per second for the ETA.",
)
@click.option(
    "--container",
    default=None,
    metavar="NAME",
    help="Docker container to query the local node from.",
)
@click.option(
    "--compose-service",
    default=None,
    metavar="NAME",
    help="Docker Compose service to query the local node from.",
)
@click.option(
    "--env-file",
    default=DEFAULT_ENV_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Environment file to load.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=False),
    help="Path to YAML config file (default: ~/.nsc/config.yaml).",
)
@click.option(
    "--no-install", is_flag=True, help="Do not install curl inside the container."
)
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    type=click.Choice(FORMATS, case_sensitive=False),
    show_default=True,
    help="Output format.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(
    public_rpc: str | None,
    local_rpc: str | None,
    protocol: str | None,
    block_lag: int | None,
    sample_secs: int | None,
    growth_rate: float | None,
    container: str | None,
    compose_service: str | None,
    env_file: str,
    config_path: str | None,
    no_install: bool,
    output_format: str,
    verbose: bool,
) -> None:
    """Check node sync status against a public reference RPC.

    \b
    Exit codes:
      0  In sync or within acceptable lag
      1  Still syncing (beyond threshold)
      2  Error (RPC/tools/invalid args/diverged)
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        file_config = load_config(config_path)
        env = load_env(env_file)
        target = resolve_container(container, compose_service)
        cfg = resolve_config(
            file_config,
            env,
            protocol=protocol,
            public_rpc=public_rpc,
            local_rpc=local_rpc,
            block_lag=block_lag,
            sample_secs=sample_secs,
            growth_rate=growth_rate,
            container=target,
            no_install=no_install,
        )
        logger.debug("Config resolved: %s", cfg)

        tools = ensure_tools(target, no_install=cfg.no_install)
        transport = Transport(cfg.connect_timeout, cfg.read_timeout)
        try:
            adapter = get_adapter(cfg.protocol, transport)
            report = run_check(adapter, cfg, tools=tools)
        finally:
            transport.close()
    except NscError as exc:
        render_error(exc, output_format.lower())
        sys.exit(exc.verdict.exit_code)

    render(report, output_format.lower())

    if report.verdict is Verdict.DIVERGED:
        click.echo(f"{ICON_FAIL} error: {divergence_message(report)}", err=True)

    sys.exit(report.exit_code)
