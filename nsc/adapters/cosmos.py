"""Tendermint / CometBFT (Cosmos SDK) adapter over the RPC REST interface."""

import logging

from nsc.adapters import Adapter
from nsc.models import ChainMeasurement, Endpoint
from nsc.parsing import dig, parse_bool, parse_int, parse_str

logger = logging.getLogger(__name__)


def _unwrap(doc: dict) -> dict:
    """Strip the JSON-RPC ``result`` envelope if present.

    CometBFT's URI endpoints wrap payloads in ``{"result": ...}``, while
    some proxies and older versions return the payload bare.
    """
    inner = doc.get("result")
    return inner if isinstance(inner, dict) else doc


class CosmosAdapter(Adapter):
    """Adapter for Tendermint/CometBFT nodes.

    ``/status`` returns height, hash and ``catching_up`` together, so a
    head measurement is a single request. Hashes at other heights come
    from ``/block?height=N``.
    """

    name = "cosmos"
    unit = "blocks"
    default_port = 26657
    # ~6s block time
    default_growth_rate = 1 / 6
    syncing_label = "catching_up"

    def _sync_info(self, endpoint: Endpoint) -> dict:
        doc = _unwrap(self.transport.get(endpoint, "/status"))
        sync_info = doc.get("sync_info")
        return sync_info if isinstance(sync_info, dict) else {}

    def get_position(self, endpoint: Endpoint) -> int | None:
        return parse_int(
            self._sync_info(endpoint).get("latest_block_height"),
            field="sync_info.latest_block_height",
            scope=endpoint.side,
        )

    def get_reference(self, endpoint: Endpoint, position: int) -> str | None:
        doc = _unwrap(self.transport.get(endpoint, f"/block?height={position}"))
        if "error" in doc:
            logger.debug(
                "%s /block?height=%d error: %s", endpoint.side, position, doc["error"]
            )
        return parse_str(dig(doc, "block_id", "hash"))

    def get_syncing_flag(self, endpoint: Endpoint) -> bool | None:
        return parse_bool(
            self._sync_info(endpoint).get("catching_up"),
            field="sync_info.catching_up",
            scope=endpoint.side,
        )

    def measure(
        self, endpoint: Endpoint, *, query_syncing: bool = True
    ) -> ChainMeasurement:
        sync_info = self._sync_info(endpoint)
        position = parse_int(
            sync_info.get("latest_block_height"),
            field="sync_info.latest_block_height",
            scope=endpoint.side,
        )
        catching_up = parse_bool(
            sync_info.get("catching_up"),
            field="sync_info.catching_up",
            scope=endpoint.side,
        )
        return ChainMeasurement(
            side=endpoint.side,
            protocol=self.name,
            position=position,
            reference=parse_str(sync_info.get("latest_block_hash")),
            is_syncing=catching_up if query_syncing else None,
        )
