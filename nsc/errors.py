"""Error taxonomy. Every error is terminal for the run and maps to a verdict."""

from nsc.models import Side, Verdict


class NscError(Exception):
    """Base class for all errors that end a check run."""

    verdict: Verdict = Verdict.CONFIG_ERROR
    label = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(NscError):
    """Raised when flags, environment or the config file are unusable."""

    verdict = Verdict.CONFIG_ERROR
    label = "config error"


class ToolingError(NscError):
    """Raised when a required tool is missing and cannot be installed."""

    verdict = Verdict.TOOLING_ERROR
    label = "tooling error"


class TransportError(NscError):
    """Raised when an endpoint cannot be reached.

    Attributes:
        scope: Which side (``"local"`` or ``"public"``) failed.
        url: The endpoint URL.
    """

    verdict = Verdict.TRANSPORT_ERROR

    def __init__(self, scope: Side, url: str, reason: str) -> None:
        super().__init__(f"{scope} RPC unreachable ({url}): {reason}")
        self.scope = scope
        self.url = url
        self.reason = reason

    @property
    def label(self) -> str:  # type: ignore[override]
        return f"{self.scope} transport error"


class ParseError(NscError):
    """Raised when a response cannot be decoded or lacks a required field."""

    verdict = Verdict.PARSE_ERROR

    def __init__(self, message: str, scope: Side | None = None) -> None:
        super().__init__(message)
        self.scope = scope

    @property
    def label(self) -> str:  # type: ignore[override]
        return f"{self.scope} parse error" if self.scope else "parse error"
