"""Comparator: lag, ETA sampling, reference check and verdict decision."""

import logging
import math
import time
from collections.abc import Callable

from nsc.adapters import Adapter
from nsc.config import CheckConfig
from nsc.errors import NscError, ParseError
from nsc.models import (
    ChainMeasurement,
    CheckReport,
    EtaSample,
    LagDirection,
    LagResult,
    ToolStatus,
    Verdict,
)

logger = logging.getLogger(__name__)

# Lowest catch-up rate used in the ETA, so a node barely outpacing the
# chain yields a large ETA instead of a division by ~zero.
MIN_EFFECTIVE_RATE = 0.01


def compute_lag(local: ChainMeasurement, public: ChainMeasurement) -> LagResult:
    """Compute the signed lag of *local* behind *public*.

    Raises:
        ParseError: If either side has no position.
    """
    for m in (local, public):
        if m.position is None:
            raise ParseError(f"Failed to get {m.side} head position", m.side)

    raw = public.position - local.position  # type: ignore[operator]
    if raw > 0:
        direction = LagDirection.LOCAL_BEHIND
    elif raw < 0:
        direction = LagDirection.LOCAL_AHEAD
    else:
        direction = LagDirection.IN_SYNC
    return LagResult(raw_lag=raw, magnitude=abs(raw), direction=direction)


def estimate_eta(
    start: int,
    end: int | None,
    target: int,
    window_secs: int,
    growth_rate: float,
) -> EtaSample:
    """Derive catch-up rate and ETA from two local positions.

    Args:
        start: Local position before the window.
        end: Local position after the window, or None if unknown.
        target: Public head position to catch up to.
        window_secs: Length of the window in seconds.
        growth_rate: Assumed public chain growth per second.

    Returns:
        An ``EtaSample``. When local advanced, the ETA is a whole number
        of seconds, at least 1, since the node was behind when sampling
        started.
    """
    if end is None:
        return EtaSample(
            start_position=start, end_position=None, window_secs=window_secs
        )

    advanced = end - start
    if advanced <= 0:
        return EtaSample(
            start_position=start,
            end_position=end,
            window_secs=window_secs,
            blocks_advanced=advanced,
        )

    rate = advanced / window_secs
    effective = max(rate - growth_rate, MIN_EFFECTIVE_RATE)
    remaining = max(target - end, 0)
    return EtaSample(
        start_position=start,
        end_position=end,
        window_secs=window_secs,
        blocks_advanced=advanced,
        rate=rate,
        effective_rate=effective,
        eta_seconds=_eta_seconds(remaining, effective),
    )


def _eta_seconds(remaining: int, effective_rate: float) -> int:
    # Rounded before ceil so float noise (99 / 0.01) does not add a second.
    return max(1, math.ceil(round(remaining / effective_rate, 6)))


def sample_eta(
    adapter: Adapter,
    config: CheckConfig,
    local: ChainMeasurement,
    public: ChainMeasurement,
    *,
    sleep: Callable[[float], None] | None = None,
) -> EtaSample:
    """Sleep for the sampling window and re-measure the local head.

    Failing to re-query the local node only makes the ETA unavailable;
    it does not fail the run.
    """
    logger.info("Sampling local progress for %ds", config.sample_secs)
    (sleep or time.sleep)(config.sample_secs)

    try:
        end = adapter.get_position(config.local)
    except NscError as exc:
        logger.warning("ETA unavailable: re-query of local head failed: %s", exc)
        end = None

    sample = estimate_eta(
        start=local.position,  # type: ignore[arg-type]
        end=end,
        target=public.position,  # type: ignore[arg-type]
        window_secs=config.sample_secs,
        growth_rate=config.growth_rate,
    )
    if not sample.available:
        logger.warning(
            "ETA unavailable: local advanced %s %s in %ds",
            sample.blocks_advanced,
            adapter.unit,
            config.sample_secs,
        )
    return sample


def compare_references(
    adapter: Adapter,
    config: CheckConfig,
    local: ChainMeasurement,
    public: ChainMeasurement,
) -> tuple[str | None, str | None]:
    """Return local and public references at the local head position.

    The public reference from *public* is reused when both heads are at
    the same position; otherwise the public node is asked for the
    reference at the local position, whichever side leads.
    """
    if public.position == local.position:
        return local.reference, public.reference
    public_ref = adapter.get_reference(config.public, local.position)  # type: ignore[arg-type]
    return local.reference, public_ref


def is_diverged(local_reference: str | None, public_reference: str | None) -> bool:
    """True only when both references are present and differ."""
    return (
        local_reference is not None
        and public_reference is not None
        and local_reference != public_reference
    )


def decide_verdict(
    local: ChainMeasurement,
    lag: LagResult,
    block_lag: int,
    diverged: bool,
) -> Verdict:
    """Turn measurements into a verdict.

    Divergence wins. Otherwise the node is syncing if it says so or lags
    by more than *block_lag*. Being ahead never counts as syncing.
    """
    if diverged:
        return Verdict.DIVERGED
    if local.is_syncing is True or lag.raw_lag > block_lag:
        return Verdict.SYNCING
    return Verdict.IN_SYNC


def run_check(
    adapter: Adapter,
    config: CheckConfig,
    *,
    tools: ToolStatus | None = None,
    sleep: Callable[[float], None] | None = None,
) -> CheckReport:
    """Run one full comparison pass.

    The local node is measured first; a failure there is raised before
    the public node is contacted. Any ``NscError`` propagates to the
    caller.

    Args:
        adapter: Protocol adapter to query with.
        config: Resolved check configuration.
        tools: Tool status to carry into the report.
        sleep: Sleep function used for the ETA window (default:
            ``time.sleep``).

    Returns:
        A ``CheckReport`` whose verdict is IN_SYNC, SYNCING or DIVERGED.
    """
    local = adapter.measure(config.local)
    if local.position is None:
        raise ParseError("Failed to get local head position", "local")

    public = adapter.measure(config.public, query_syncing=False)
    lag = compute_lag(local, public)
    logger.debug(
        "local=%s public=%s lag=%d", local.position, public.position, lag.raw_lag
    )

    eta = None
    if lag.raw_lag > 0:
        eta = sample_eta(adapter, config, local, public, sleep=sleep)

    local_ref, public_ref = compare_references(adapter, config, local, public)
    diverged = is_diverged(local_ref, public_ref)
    verdict = decide_verdict(local, lag, config.block_lag, diverged)

    return CheckReport(
        protocol=adapter.name,
        unit=adapter.unit,
        syncing_label=adapter.syncing_label,
        local_endpoint=config.local,
        public_endpoint=config.public,
        local=local,
        public=public,
        lag=lag,
        block_lag=config.block_lag,
        eta=eta,
        compared_position=local.position,
        local_reference=local_ref,
        public_reference=public_ref,
        verdict=verdict,
        tools=tools,
    )


def format_eta(secs: int) -> str:
    """Format a duration using its two largest sensible units."""
    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m {secs % 60}s"
    if secs < 86400:
        return f"{secs // 3600}h {secs % 3600 // 60}m"
    return f"{secs // 86400}d {secs % 86400 // 3600}h"
