"""Data models: endpoints, measurements, lag/ETA results, verdicts, reports."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

Side = Literal["local", "public"]


class Verdict(Enum):
    """Outcome of a single check run.

    Only ``IN_SYNC`` and ``SYNCING`` are non-error outcomes; everything
    else maps to exit code 2.
    """

    IN_SYNC = "in_sync"
    SYNCING = "syncing"
    DIVERGED = "diverged"
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"
    TOOLING_ERROR = "tooling_error"
    CONFIG_ERROR = "config_error"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES.get(self, 2)

    @property
    def is_error(self) -> bool:
        return self not in (Verdict.IN_SYNC, Verdict.SYNCING)


_EXIT_CODES: dict[Verdict, int] = {
    Verdict.IN_SYNC: 0,
    Verdict.SYNCING: 1,
}


class LagDirection(Enum):
    """Which side leads, with the label used in reports."""

    LOCAL_BEHIND = "local behind"
    LOCAL_AHEAD = "local ahead"
    IN_SYNC = "local in sync"


@dataclass(frozen=True)
class Endpoint:
    """A node endpoint and how to reach it.

    Attributes:
        url: Base URL, without trailing slash.
        side: ``"local"`` or ``"public"``; used to scope transport errors.
        container: Container name/id to proxy requests through, or None
            for a direct call from this host.
    """

    url: str
    side: Side
    container: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", self.url.rstrip("/"))

    @property
    def via(self) -> str:
        return f"container {self.container}" if self.container else "direct"


@dataclass(frozen=True)
class ChainMeasurement:
    """Chain head as reported by one node.

    ``position`` is a block height, beacon slot or Sui checkpoint sequence
    number. ``reference`` is the hash, root or digest at ``position``.
    Both are None when the node did not report them, which is distinct
    from zero / empty.

    Attributes:
        side: Which node produced the measurement.
        protocol: Adapter name (``"evm"``, ``"cosmos"``, ...).
        position: Head position, or None if absent.
        reference: Hash/root/digest at ``position``, or None if absent.
        is_syncing: Node's own syncing flag; None when unknown or not
            queried.
        advisories: Extra flags that are reported but never affect the
            verdict (e.g. beacon ``is_optimistic``).
    """

    side: Side
    protocol: str
    position: int | None
    reference: str | None = None
    is_syncing: bool | None = None
    advisories: dict = field(default_factory=dict)


@dataclass(frozen=True)
class LagResult:
    """Signed lag of the local node behind the public one."""

    raw_lag: int
    magnitude: int
    direction: LagDirection


@dataclass(frozen=True)
class EtaSample:
    """Local progress observed over a sampling window.

    Attributes:
        start_position: Local position before the wait.
        end_position: Local position after the wait, or None if the
            re-query produced nothing.
        window_secs: Length of the sampling window.
        blocks_advanced: ``end - start``; None when ``end_position`` is.
        rate: Observed local rate in units per second.
        effective_rate: ``rate`` minus assumed public growth, floored.
        eta_seconds: Estimated seconds to catch up, or None when no
            estimate is possible.
    """

    start_position: int
    end_position: int | None
    window_secs: int
    blocks_advanced: int | None = None
    rate: float = 0.0
    effective_rate: float = 0.0
    eta_seconds: int | None = None

    @property
    def available(self) -> bool:
        return self.eta_seconds is not None


@dataclass(frozen=True)
class ToolStatus:
    """Which HTTP client is used for the local endpoint.

    Attributes:
        container: Execution context, or None for the host.
        client: Name of the HTTP client (``"requests"`` or ``"curl"``).
        installed: True if the client had to be installed this run.
    """

    container: str | None
    client: str
    installed: bool = False


@dataclass
class CheckReport:
    """Everything measured and decided in one run, ready for rendering.

    Attributes:
        protocol: Adapter name.
        unit: Position unit (``"blocks"``, ``"slots"``, ``"checkpoints"``).
        syncing_label: Name of the native syncing flag, or None when the
            protocol has none and syncing is derived from lag.
        local_endpoint: Resolved local endpoint.
        public_endpoint: Resolved public endpoint.
        local: Local measurement.
        public: Public measurement.
        lag: Lag between the two.
        block_lag: Threshold above which the node counts as syncing.
        eta: ETA sample, only present when the local node was behind.
        compared_position: Position at which references were compared.
        local_reference: Local reference at ``compared_position``.
        public_reference: Public reference at ``compared_position``.
        verdict: Final verdict.
        tools: HTTP client status, if checked.
    """

    protocol: str
    unit: str
    syncing_label: str | None
    local_endpoint: Endpoint
    public_endpoint: Endpoint
    local: ChainMeasurement
    public: ChainMeasurement
    lag: LagResult
    block_lag: int
    eta: EtaSample | None
    compared_position: int
    local_reference: str | None
    public_reference: str | None
    verdict: Verdict
    tools: ToolStatus | None = None

    @property
    def exit_code(self) -> int:
        return self.verdict.exit_code
