"""Sui full-node adapter (JSON-RPC)."""

from nsc.adapters import Adapter
from nsc.models import Endpoint
from nsc.parsing import dig, parse_int, parse_str, rpc_result


class SuiAdapter(Adapter):
    """Adapter for Sui full nodes.

    Positions are checkpoint sequence numbers and references are
    checkpoint digests. Sui exposes no syncing flag, so the flag is
    always unknown and syncing is derived from lag alone.
    """

    name = "sui"
    unit = "checkpoints"
    default_port = 9000
    # Checkpoints are produced every ~250ms.
    default_growth_rate = 4.0
    syncing_label = None

    def get_position(self, endpoint: Endpoint) -> int | None:
        method = "sui_getLatestCheckpointSequenceNumber"
        response = self.transport.rpc(endpoint, method)
        result = rpc_result(response, method=method, scope=endpoint.side)
        return parse_int(result, field=method, scope=endpoint.side)

    def get_reference(self, endpoint: Endpoint, position: int) -> str | None:
        response = self.transport.rpc(endpoint, "sui_getCheckpoint", [str(position)])
        return parse_str(dig(response, "result", "digest"))

    def get_syncing_flag(self, endpoint: Endpoint) -> bool | None:
        return None
