"""Ethereum consensus-layer (beacon node) adapter over the standard REST API."""

from nsc.adapters import Adapter
from nsc.models import ChainMeasurement, Endpoint
from nsc.parsing import dig, parse_bool, parse_int, parse_str

SYNCING_PATH = "/eth/v1/node/syncing"
HEADERS_PATH = "/eth/v1/beacon/headers/{block_id}"


class BeaconAdapter(Adapter):
    """Adapter for beacon nodes (Lighthouse, Prysm, Teku, Nimbus, Lodestar).

    Position is ``data.head_slot`` from the syncing endpoint; the
    reference is the block root from the headers endpoint. A slot with
    no block returns 404 and is reported as an absent root.
    """

    name = "beacon"
    unit = "slots"
    default_port = 5052
    # 12s slots
    default_growth_rate = 1 / 12
    syncing_label = "is_syncing"

    def _syncing(self, endpoint: Endpoint) -> dict:
        data = self.transport.get(endpoint, SYNCING_PATH).get("data")
        return data if isinstance(data, dict) else {}

    def _root(self, endpoint: Endpoint, block_id: str) -> str | None:
        doc = self.transport.get(endpoint, HEADERS_PATH.format(block_id=block_id))
        return parse_str(dig(doc, "data", "root"))

    def get_position(self, endpoint: Endpoint) -> int | None:
        return parse_int(
            self._syncing(endpoint).get("head_slot"),
            field="data.head_slot",
            scope=endpoint.side,
        )

    def get_reference(self, endpoint: Endpoint, position: int) -> str | None:
        return self._root(endpoint, str(position))

    def get_syncing_flag(self, endpoint: Endpoint) -> bool | None:
        return parse_bool(
            self._syncing(endpoint).get("is_syncing"),
            field="data.is_syncing",
            scope=endpoint.side,
        )

    def measure(
        self, endpoint: Endpoint, *, query_syncing: bool = True
    ) -> ChainMeasurement:
        data = self._syncing(endpoint)
        position = parse_int(
            data.get("head_slot"), field="data.head_slot", scope=endpoint.side
        )
        is_syncing = parse_bool(
            data.get("is_syncing"), field="data.is_syncing", scope=endpoint.side
        )
        is_optimistic = parse_bool(
            data.get("is_optimistic"), field="data.is_optimistic", scope=endpoint.side
        )

        advisories = {}
        if is_optimistic is not None:
            advisories["is_optimistic"] = is_optimistic

        return ChainMeasurement(
            side=endpoint.side,
            protocol=self.name,
            position=position,
            reference=self._root(endpoint, "head") if position is not None else None,
            is_syncing=is_syncing if query_syncing else None,
            advisories=advisories,
        )
