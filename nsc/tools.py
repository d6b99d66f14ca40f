"""Tool provisioning: make sure an HTTP client exists where requests run."""

import logging

from nsc.errors import ToolingError
from nsc.executor import Runner, execute
from nsc.models import ToolStatus

logger = logging.getLogger(__name__)

# Packages installed into a container that lacks curl.
_PACKAGES = ("curl", "ca-certificates")


def ensure_tools(
    container: str | None,
    *,
    no_install: bool = False,
    runner: Runner = execute,
) -> ToolStatus:
    """Check (and if needed install) the HTTP client for *container*.

    On the host, requests go through the ``requests`` library and nothing
    needs to be checked. Inside a container they go through ``curl``,
    which is installed with ``apt-get`` or ``apk`` when missing.

    Args:
        container: Container the local endpoint is reached through, or
            None for the host.
        no_install: Fail instead of installing a missing client.
        runner: Command executor (injectable for tests).

    Returns:
        A ``ToolStatus`` describing the client in use.

    Raises:
        ToolingError: If curl is missing and cannot or may not be
            installed.
    """
    if container is None:
        return ToolStatus(container=None, client="requests")

    if _has(runner, container, "curl"):
        logger.debug("curl available in %s", container)
        return ToolStatus(container=container, client="curl")

    if no_install:
        raise ToolingError(
            f"curl not found in container {container} and --no-install specified"
        )

    if _has(runner, container, "apt-get"):
        logger.info("Installing %s in %s with apt-get", " ".join(_PACKAGES), container)
        _install(runner, container, ["apt-get", "update", "-qq"])
        _install(runner, container, ["apt-get", "install", "-qq", "-y", *_PACKAGES])
    elif _has(runner, container, "apk"):
        logger.info("Installing %s in %s with apk", " ".join(_PACKAGES), container)
        _install(runner, container, ["apk", "add", "--no-cache", *_PACKAGES])
    else:
        raise ToolingError(
            f"Cannot install curl in container {container}: unknown package manager"
        )

    if not _has(runner, container, "curl"):
        raise ToolingError(f"curl still missing in container {container} after install")

    return ToolStatus(container=container, client="curl", installed=True)


def _has(runner: Runner, container: str, tool: str) -> bool:
    return runner(["sh", "-c", f"command -v {tool}"], container).ok


def _install(runner: Runner, container: str, argv: list[str]) -> None:
    result = runner(argv, container)
    if not result.ok:
        raise ToolingError(
            f"'{' '.join(argv)}' failed in container {container}: "
            f"{result.stderr.strip() or f'exit {result.returncode}'}"
        )
