"""Transport layer: JSON-RPC POST and REST GET, direct or via a container."""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

from nsc.errors import TransportError
from nsc.executor import Runner, execute
from nsc.models import Endpoint
from nsc.parsing import decode_object

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 30.0

# Slack given to curl inside a container before the executor kills it.
_EXEC_GRACE_SECS = 5.0

_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class RpcRequest:
    """A JSON-RPC 2.0 call with positional parameters."""

    method: str
    params: list = field(default_factory=list)

    def body(self) -> str:
        """Serialise to the compact wire form with ``id`` fixed to 1."""
        return json.dumps(
            {"jsonrpc": "2.0", "method": self.method, "params": self.params, "id": 1},
            separators=(",", ":"),
        )


class Transport:
    """Issues requests against node endpoints.

    Endpoints without a container are called directly with a
    ``requests.Session``; endpoints with one are called by running
    ``curl`` inside that container through the command executor.

    HTTP status codes are not treated as failures: the body is returned
    and left to the adapter to interpret. Only failing to get a complete
    response at all is a ``TransportError``.

    ``read_timeout`` bounds the whole call, not just each socket read:
    direct responses are streamed and abandoned once it has elapsed, the
    way ``curl --max-time`` does for proxied calls.
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        *,
        session: requests.Session | None = None,
        runner: Runner = execute,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.session = session or requests.Session()
        self.runner = runner
        self.clock = clock

    def call(self, endpoint: Endpoint, request: RpcRequest | str) -> str:
        """Send *request* to *endpoint* and return the raw response body.

        Args:
            endpoint: Target endpoint.
            request: An ``RpcRequest`` for a JSON-RPC POST, or a path
                (e.g. ``"/status"``) for a REST GET.

        Raises:
            TransportError: Scoped to ``endpoint.side`` when no response
                could be obtained.
        """
        if isinstance(request, RpcRequest):
            url, body = endpoint.url, request.body()
            logger.debug("%s POST %s %s", endpoint.side, url, request.method)
        else:
            url, body = endpoint.url + request, None
            logger.debug("%s GET %s", endpoint.side, url)

        if endpoint.container:
            return self._call_in_container(endpoint, url, body)
        return self._call_direct(endpoint, url, body)

    def rpc(self, endpoint: Endpoint, method: str, params: list | None = None) -> dict:
        """JSON-RPC call; returns the decoded response envelope."""
        raw = self.call(endpoint, RpcRequest(method, params or []))
        return decode_object(raw, context=method, scope=endpoint.side)

    def get(self, endpoint: Endpoint, path: str) -> dict:
        """REST GET; returns the decoded response document."""
        raw = self.call(endpoint, path)
        return decode_object(raw, context=path, scope=endpoint.side)

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _call_direct(self, endpoint: Endpoint, url: str, body: str | None) -> str:
        timeout = (self.connect_timeout, self.read_timeout)
        deadline = self.clock() + self.read_timeout
        try:
            if body is None:
                resp = self.session.get(url, timeout=timeout, stream=True)
            else:
                resp = self.session.post(
                    url,
                    data=body,
                    headers={"Content-Type": CONTENT_TYPE},
                    timeout=timeout,
                    stream=True,
                )
            with resp:
                logger.debug("%s %s -> HTTP %d", endpoint.side, url, resp.status_code)
                self._check_deadline(endpoint, deadline)
                chunks = []
                for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                    chunks.append(chunk)
                    self._check_deadline(endpoint, deadline)
                encoding = resp.encoding or "utf-8"
        except requests.RequestException as exc:
            raise TransportError(endpoint.side, endpoint.url, str(exc)) from exc

        return b"".join(chunks).decode(encoding, errors="replace")

    def _check_deadline(self, endpoint: Endpoint, deadline: float) -> None:
        if self.clock() > deadline:
            raise TransportError(
                endpoint.side,
                endpoint.url,
                f"no complete response within {_fmt_secs(self.read_timeout)}s",
            )

    def _call_in_container(self, endpoint: Endpoint, url: str, body: str | None) -> str:
        argv = ["curl", "-sS"]
        if body is not None:
            argv += ["-X", "POST", url, "-H", f"Content-Type: {CONTENT_TYPE}", "-d", body]
        else:
            argv.append(url)
        argv += [
            "--connect-timeout",
            _fmt_secs(self.connect_timeout),
            "--max-time",
            _fmt_secs(self.read_timeout),
        ]

        result = self.runner(
            argv,
            endpoint.container,
            timeout=self.read_timeout + _EXEC_GRACE_SECS,
        )
        if not result.ok:
            reason = result.stderr.strip() or f"curl exited with {result.returncode}"
            raise TransportError(endpoint.side, endpoint.url, reason)
        return result.stdout


def _fmt_secs(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
