"""Configuration: YAML config file, ``.env`` loading and final resolution."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import dotenv_values

from nsc.adapters import get_adapter_class
from nsc.errors import ConfigError
from nsc.models import Endpoint

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".nsc"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_ENV_FILE = ".env"

DEFAULT_PROTOCOL = "evm"
DEFAULT_BLOCK_LAG = 2
DEFAULT_SAMPLE_SECS = 10
DEFAULT_PORT_VARS = "RPC_PORT"

MAX_CONNECT_TIMEOUT = 10.0
MAX_READ_TIMEOUT = 30.0


@dataclass
class NscConfig:
    """Defaults read from the YAML config file.

    Every field is optional; anything left unset falls through to the
    environment or built-in defaults during resolution.

    Attributes:
        protocol: Protocol to check (``evm``, ``cosmos``, ``beacon``, ``sui``).
        public_rpc: Public reference endpoint.
        local_rpc: Local node endpoint.
        block_lag: Lag threshold above which the node counts as syncing.
        sample_secs: ETA sampling window in seconds.
        connect_timeout: Per-request connect timeout in seconds.
        read_timeout: Per-request read timeout in seconds.
        growth_rates: Assumed public chain growth per second, by protocol.
    """

    protocol: str | None = None
    public_rpc: str | None = None
    local_rpc: str | None = None
    block_lag: int | None = None
    sample_secs: int | None = None
    connect_timeout: float = MAX_CONNECT_TIMEOUT
    read_timeout: float = MAX_READ_TIMEOUT
    growth_rates: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckConfig:
    """Fully resolved, read-only settings for one check run.

    Attributes:
        protocol: Selected protocol name.
        local: Local endpoint (possibly proxied through a container).
        public: Public reference endpoint (always direct).
        block_lag: Lag threshold for the syncing verdict.
        sample_secs: ETA sampling window in seconds.
        growth_rate: Assumed public chain growth per second.
        no_install: Do not install missing tools in the container.
        connect_timeout: Per-request connect timeout in seconds.
        read_timeout: Per-request read timeout in seconds.
    """

    protocol: str
    local: Endpoint
    public: Endpoint
    block_lag: int = DEFAULT_BLOCK_LAG
    sample_secs: int = DEFAULT_SAMPLE_SECS
    growth_rate: float = 0.0
    no_install: bool = False
    connect_timeout: float = MAX_CONNECT_TIMEOUT
    read_timeout: float = MAX_READ_TIMEOUT


# YAML keys whose values must be strings.
_STRING_KEYS = ("protocol", "public_rpc", "local_rpc")

# Keys in the YAML file that map to NscConfig fields.
_YAML_KEY_TO_FIELD: dict[str, str] = {
    "protocol": "protocol",
    "public_rpc": "public_rpc",
    "local_rpc": "local_rpc",
    "block_lag": "block_lag",
    "sample_secs": "sample_secs",
    "connect_timeout": "connect_timeout",
    "read_timeout": "read_timeout",
    "growth_rates": "growth_rates",
}


def load_config(path: Path | str | None = None) -> NscConfig:
    """Load defaults from a YAML file.

    Args:
        path: Explicit path to a YAML config file.  If ``None``, the
            default location (``~/.nsc/config.yaml``) is tried.  If the
            default file doesn't exist, an ``NscConfig`` with all defaults
            is returned silently.

    Returns:
        A populated ``NscConfig`` instance.

    Raises:
        ConfigError: If an explicit *path* doesn't exist, or the file
            contains invalid YAML or has an unexpected structure.
    """
    resolved = _resolve_path(path)

    if resolved is None:
        logger.debug("No config file found; using defaults")
        return NscConfig()

    logger.debug("Loading config from %s", resolved)
    try:
        text = resolved.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {resolved}: {exc}") from exc

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    if raw is None:
        # Empty file: all defaults.
        return NscConfig()

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a YAML mapping at the top level in {resolved}, "
            f"got {type(raw).__name__}"
        )

    return _build_config(raw, source=resolved)


def load_env(
    env_file: Path | str | None = DEFAULT_ENV_FILE,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Overlay the variables from *env_file* on the process environment.

    The file holds ``KEY=value`` lines; ``#`` comments, an ``export``
    prefix and single or double quotes are handled by python-dotenv.
    ``${VAR}`` references are left as-is. A missing file is not an error.

    Args:
        env_file: Path to the env file, or None to skip it.
        base: Environment to overlay on (default: ``os.environ``).

    Returns:
        The merged mapping; file values win.

    Raises:
        ConfigError: If the file exists but cannot be read or decoded.
    """
    env = dict(os.environ if base is None else base)
    if env_file is None:
        return env

    p = Path(env_file).expanduser()
    if not p.is_file():
        logger.debug("Env file %s not found; skipping", p)
        return env

    try:
        values = dotenv_values(p, interpolate=False)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read env file {p}: {exc}") from exc
    loaded = {k: v for k, v in values.items() if v is not None}
    logger.debug("Loaded %d variable(s) from %s", len(loaded), p)
    env.update(loaded)
    return env


def resolve_config(
    file_config: NscConfig,
    env: Mapping[str, str],
    *,
    protocol: str | None = None,
    public_rpc: str | None = None,
    local_rpc: str | None = None,
    block_lag: int | None = None,
    sample_secs: int | None = None,
    growth_rate: float | None = None,
    container: str | None = None,
    no_install: bool = False,
) -> CheckConfig:
    """Merge CLI values, environment and file config into a ``CheckConfig``.

    Priority for every setting is CLI, then environment, then the YAML
    file, then built-in defaults.

    Raises:
        ConfigError: If the protocol is unknown, no public RPC is
            configured, or a value is out of range.
    """
    proto = (
        protocol or env.get("PROTOCOL") or file_config.protocol or DEFAULT_PROTOCOL
    ).strip().lower()
    adapter_cls = get_adapter_class(proto)

    public_url = public_rpc or env.get("PUBLIC_RPC") or file_config.public_rpc
    if not public_url:
        raise ConfigError("--public-rpc is required")

    local_url = (
        local_rpc
        or env.get("LOCAL_RPC")
        or _url_from_port_vars(env)
        or file_config.local_rpc
        or f"http://127.0.0.1:{adapter_cls.default_port}"
    )

    lag = _first_int("block lag", block_lag, env.get("BLOCK_LAG"), file_config.block_lag)
    secs = _first_int(
        "sample secs", sample_secs, env.get("SAMPLE_SECS"), file_config.sample_secs
    )
    lag = DEFAULT_BLOCK_LAG if lag is None else lag
    secs = DEFAULT_SAMPLE_SECS if secs is None else secs
    if lag < 0:
        raise ConfigError(f"block lag must be >= 0, got {lag}")
    if secs < 1:
        raise ConfigError(f"sample secs must be >= 1, got {secs}")

    rate = growth_rate
    if rate is None:
        rate = file_config.growth_rates.get(proto, adapter_cls.default_growth_rate)
    rate = _as_float("growth rate", rate)
    if rate < 0:
        raise ConfigError(f"growth rate must be >= 0, got {rate}")

    connect = _as_float("connect_timeout", file_config.connect_timeout)
    read = _as_float("read_timeout", file_config.read_timeout)
    if not 0 < connect <= MAX_CONNECT_TIMEOUT:
        raise ConfigError(f"connect_timeout must be in (0, {MAX_CONNECT_TIMEOUT:g}]")
    if not 0 < read <= MAX_READ_TIMEOUT:
        raise ConfigError(f"read_timeout must be in (0, {MAX_READ_TIMEOUT:g}]")

    return CheckConfig(
        protocol=proto,
        local=Endpoint(url=local_url, side="local", container=container),
        public=Endpoint(url=public_url, side="public"),
        block_lag=lag,
        sample_secs=secs,
        growth_rate=rate,
        no_install=no_install,
        connect_timeout=connect,
        read_timeout=read,
    )


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _resolve_path(path: Path | str | None) -> Path | None:
    """Return a concrete ``Path`` to read, or ``None`` if nothing to read.

    Raises:
        ConfigError: If the caller supplied an explicit path that
            doesn't exist on disk.
    """
    if path is not None:
        p = Path(path).expanduser()
        if not p.is_file():
            raise ConfigError(f"Config file not found: {p}")
        return p

    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.is_file():
        return default
    return None


def _build_config(raw: dict, source: Path) -> NscConfig:
    """Map raw YAML dict to an ``NscConfig``, ignoring unknown keys."""
    kwargs: dict[str, object] = {}

    for yaml_key, field_name in _YAML_KEY_TO_FIELD.items():
        if yaml_key in raw and raw[yaml_key] is not None:
            kwargs[field_name] = raw[yaml_key]

    unknown = set(raw) - set(_YAML_KEY_TO_FIELD)
    if unknown:
        logger.warning(
            "Ignoring unknown config keys in %s: %s",
            source,
            ", ".join(sorted(unknown)),
        )

    for key in _STRING_KEYS:
        if key in kwargs and not isinstance(kwargs[key], str):
            raise ConfigError(
                f"{key} in {source} must be a string, got {kwargs[key]!r}"
            )

    rates = kwargs.get("growth_rates", {})
    if not isinstance(rates, dict):
        raise ConfigError(f"growth_rates in {source} must be a mapping")
    kwargs["growth_rates"] = {
        str(k).lower(): _as_float(f"growth_rates.{k}", v) for k, v in rates.items()
    }

    return NscConfig(**kwargs)  # type: ignore[arg-type]


def _url_from_port_vars(env: Mapping[str, str]) -> str | None:
    """Build a localhost URL from the first port variable that is set."""
    names = env.get("PROTOCOL_PORT_VARS") or DEFAULT_PORT_VARS
    for name in names.split():
        port = env.get(name)
        if port:
            return f"http://127.0.0.1:{port.strip()}"
    return None


def _first_int(name: str, *candidates: object) -> int | None:
    for value in candidates:
        if value is None or value == "":
            continue
        return _as_int(name, value)
    return None


def _as_int(name: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(name: str, value: object) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
