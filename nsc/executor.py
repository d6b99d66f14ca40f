"""Command executor: run argv on this host or inside a container."""

import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from nsc.errors import ConfigError, ToolingError

logger = logging.getLogger(__name__)

# Exit status reported for a command killed by our timeout (as timeout(1)).
TIMEOUT_EXIT = 124


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


Runner = Callable[..., CommandResult]


def execute(
    argv: Sequence[str],
    container: str | None = None,
    *,
    timeout: float | None = None,
) -> CommandResult:
    """Run *argv*, optionally through ``docker exec`` in *container*.

    Args:
        argv: Command and arguments.
        container: Container name or id; None runs on this host.
        timeout: Seconds before the command is killed.

    Returns:
        A ``CommandResult``. A timeout is reported as exit status 124
        rather than raised.

    Raises:
        ToolingError: If the executable (or ``docker``) is not installed.
    """
    full = ["docker", "exec", container, *argv] if container else list(argv)
    logger.debug("exec: %s", " ".join(full))

    try:
        proc = subprocess.run(
            full,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ToolingError(f"{full[0]} not found on this host") from exc
    except subprocess.TimeoutExpired:
        logger.debug("exec timed out after %ss: %s", timeout, full[0])
        return CommandResult(
            stdout="", stderr=f"timed out after {timeout}s", returncode=TIMEOUT_EXIT
        )

    return CommandResult(
        stdout=proc.stdout, stderr=proc.stderr, returncode=proc.returncode
    )


def resolve_container(
    container: str | None,
    compose_service: str | None,
    *,
    runner: Runner = execute,
) -> str | None:
    """Work out the execution context for the local endpoint.

    An explicit *container* wins. Otherwise *compose_service* is looked up
    with ``docker compose ps -q``. With neither, requests run on the host.

    Raises:
        ConfigError: If the compose service has no running container.
    """
    if container:
        return container
    if not compose_service:
        return None

    result = runner(["docker", "compose", "ps", "-q", compose_service])
    ids = result.stdout.split() if result.ok else []
    if not ids:
        raise ConfigError(f"Compose service '{compose_service}' not found or not running")

    logger.debug("Compose service %s -> container %s", compose_service, ids[0])
    return ids[0]
