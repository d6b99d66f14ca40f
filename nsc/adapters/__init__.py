"""Adapter registry and abstract Adapter base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from nsc.errors import ConfigError
from nsc.models import ChainMeasurement

if TYPE_CHECKING:
    from nsc.models import Endpoint
    from nsc.transport import Transport


class Adapter(ABC):
    """Abstract base class for protocol adapters.

    Each supported chain family implements a concrete subclass that knows
    how to read head position, reference (hash/root/digest) and syncing
    flag from its node API, using the shared ``Transport``.

    Attributes:
        name: Protocol name used for selection (``PROTOCOL``).
        unit: What a position counts, for reports.
        default_port: Local RPC port used when nothing else is configured.
        default_growth_rate: Assumed public chain growth (positions per
            second) subtracted from the local catch-up rate in the ETA.
        syncing_label: Name of the native syncing flag, or None when the
            protocol has none.
    """

    name: str = ""
    unit: str = "blocks"
    default_port: int = 0
    default_growth_rate: float = 0.0
    syncing_label: str | None = None

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    @abstractmethod
    def get_position(self, endpoint: Endpoint) -> int | None:
        """Return the head position, or None if the node reports none."""

    @abstractmethod
    def get_reference(self, endpoint: Endpoint, position: int) -> str | None:
        """Return the hash/root/digest at *position*, or None if absent."""

    @abstractmethod
    def get_syncing_flag(self, endpoint: Endpoint) -> bool | None:
        """Return the node's own syncing flag, or None if unknown."""

    def measure(
        self, endpoint: Endpoint, *, query_syncing: bool = True
    ) -> ChainMeasurement:
        """Take a full head measurement of *endpoint*.

        The default implementation asks for the syncing flag first, then
        the head position, then the reference at that position.
        Subclasses whose API returns several fields in one response
        override this to save calls.

        Args:
            endpoint: Node to measure.
            query_syncing: Skip the syncing query when False (the public
                node's flag does not affect the verdict).
        """
        is_syncing = self.get_syncing_flag(endpoint) if query_syncing else None
        position = self.get_position(endpoint)
        reference = (
            self.get_reference(endpoint, position) if position is not None else None
        )
        return ChainMeasurement(
            side=endpoint.side,
            protocol=self.name,
            position=position,
            reference=reference,
            is_syncing=is_syncing,
        )


def _build_registry() -> dict[str, type[Adapter]]:
    """Build the protocol-name → Adapter-class mapping.

    Imports are deferred to avoid circular imports and to keep the
    registry definition in one place.
    """
    from nsc.adapters.beacon import BeaconAdapter
    from nsc.adapters.cosmos import CosmosAdapter
    from nsc.adapters.evm import EvmAdapter
    from nsc.adapters.sui import SuiAdapter

    return {
        "evm": EvmAdapter,
        "cosmos": CosmosAdapter,
        "beacon": BeaconAdapter,
        "sui": SuiAdapter,
    }


def get_adapter_class(protocol: str) -> type[Adapter]:
    """Look up the adapter class for *protocol*.

    Raises:
        ConfigError: If *protocol* is not in the registry.
    """
    registry = _build_registry()
    adapter_cls = registry.get(protocol.lower())
    if adapter_cls is None:
        known = ", ".join(sorted(registry))
        raise ConfigError(f"Unknown protocol {protocol!r}. Known protocols: {known}")
    return adapter_cls


def get_adapter(protocol: str, transport: Transport) -> Adapter:
    """Look up and instantiate the adapter for *protocol*.

    Args:
        protocol: Protocol name (e.g. ``"evm"``, ``"cosmos"``).
        transport: Transport the adapter issues its requests through.

    Raises:
        ConfigError: If *protocol* is not in the registry.
    """
    return get_adapter_class(protocol)(transport)


def registered_protocols() -> list[str]:
    """Return a sorted list of all registered protocol names."""
    return sorted(_build_registry())
