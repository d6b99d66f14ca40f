"""Shared fixtures: environment isolation and a scriptable fake adapter."""

import pytest

from nsc.adapters import Adapter
from nsc.config import CheckConfig
from nsc.models import Endpoint

_ENV_VARS = (
    "PROTOCOL",
    "PUBLIC_RPC",
    "LOCAL_RPC",
    "BLOCK_LAG",
    "SAMPLE_SECS",
    "PROTOCOL_PORT_VARS",
    "RPC_PORT",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment, cwd and ~/.nsc out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("nsc.config.DEFAULT_CONFIG_PATH", tmp_path / "nope.yaml")
    monkeypatch.chdir(tmp_path)


class FakeAdapter(Adapter):
    """Adapter returning scripted values instead of querying a node.

    ``positions`` maps a side to the positions returned by successive
    ``get_position`` calls; the last one repeats. Entries may be
    exceptions, which are raised instead.
    """

    name = "evm"
    unit = "blocks"
    default_port = 8588
    default_growth_rate = 0.08
    syncing_label = "eth_syncing"

    def __init__(
        self,
        positions: dict,
        references: dict | None = None,
        syncing: bool | None = False,
    ) -> None:
        super().__init__(transport=None)  # type: ignore[arg-type]
        self.positions = {side: list(seq) for side, seq in positions.items()}
        self.references = references or {}
        self.syncing = syncing
        self.reference_calls: list[tuple[str, int]] = []
        self.position_calls: list[str] = []

    def get_position(self, endpoint):
        self.position_calls.append(endpoint.side)
        seq = self.positions[endpoint.side]
        value = seq.pop(0) if len(seq) > 1 else seq[0]
        if isinstance(value, Exception):
            raise value
        return value

    def get_reference(self, endpoint, position):
        self.reference_calls.append((endpoint.side, position))
        return self.references.get((endpoint.side, position))

    def get_syncing_flag(self, endpoint):
        return self.syncing


@pytest.fixture
def fake_adapter() -> type[FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def check_config() -> CheckConfig:
    return CheckConfig(
        protocol="evm",
        local=Endpoint(url="http://127.0.0.1:8588", side="local"),
        public=Endpoint(url="https://rpc.example.org", side="public"),
        block_lag=2,
        sample_secs=10,
        growth_rate=0.08,
    )
