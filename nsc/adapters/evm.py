"""EVM execution-layer adapter (Ethereum JSON-RPC)."""

import logging

from nsc.adapters import Adapter
from nsc.errors import ParseError
from nsc.models import Endpoint
from nsc.parsing import dig, parse_hex_int, parse_str, rpc_result

logger = logging.getLogger(__name__)


class EvmAdapter(Adapter):
    """Adapter for geth-style execution clients.

    Uses ``eth_blockNumber`` for the head, ``eth_getBlockByNumber`` for
    block hashes and ``eth_syncing`` for the syncing flag.
    """

    name = "evm"
    unit = "blocks"
    default_port = 8588
    # ~12s block time
    default_growth_rate = 0.08
    syncing_label = "eth_syncing"

    def get_position(self, endpoint: Endpoint) -> int | None:
        response = self.transport.rpc(endpoint, "eth_blockNumber")
        result = rpc_result(response, method="eth_blockNumber", scope=endpoint.side)
        return parse_hex_int(result, field="eth_blockNumber", scope=endpoint.side)

    def get_reference(self, endpoint: Endpoint, position: int) -> str | None:
        response = self.transport.rpc(
            endpoint, "eth_getBlockByNumber", [hex(position), False]
        )
        if "error" in response:
            logger.debug(
                "%s eth_getBlockByNumber(%d) error: %s",
                endpoint.side,
                position,
                response["error"],
            )
        return parse_str(dig(response, "result", "hash"))

    def get_syncing_flag(self, endpoint: Endpoint) -> bool | None:
        """Return False only for a literal ``false``.

        Any other result, including a progress object, means the node is
        syncing. A missing result is a parse failure.
        """
        response = self.transport.rpc(endpoint, "eth_syncing")
        result = rpc_result(response, method="eth_syncing", scope=endpoint.side)
        if result is None:
            raise ParseError("Failed to parse eth_syncing: no result", endpoint.side)
        return result is not False
