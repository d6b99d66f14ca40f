"""Output renderer: rich report, JSON report, error diagnostics."""

import dataclasses
import json
import logging
import sys
from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nsc.comparator import format_eta
from nsc.errors import NscError
from nsc.models import ChainMeasurement, CheckReport, Endpoint, ToolStatus, Verdict

logger = logging.getLogger(__name__)

ICON_OK = "✅"
ICON_WAIT = "⏳"
ICON_FAIL = "❌"
ICON_WARN = "⚠️"

# Reference values longer than this are shortened in the table report.
_REF_MAX = 22

_FINAL_STATUS: dict[Verdict, str] = {
    Verdict.IN_SYNC: f"{ICON_OK} Final status: in sync",
    Verdict.SYNCING: f"{ICON_WAIT} Final status: syncing",
    Verdict.DIVERGED: f"{ICON_FAIL} Final status: error (diverged)",
}
FINAL_ERROR = f"{ICON_FAIL} Final status: error"


def render(
    report: CheckReport,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch output to the appropriate formatter.

    Args:
        report: Check report to render.
        fmt: Output format, ``"table"`` or ``"json"``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).

    Raises:
        ValueError: If *fmt* is not ``"table"`` or ``"json"``.
    """
    if fmt == "table":
        render_table(report, file=file, width=width)
    elif fmt == "json":
        render_json(report, file=file)
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    report: CheckReport,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render *report* as a human-readable ``rich`` report to *file*.

    Sections, in order: tool status, syncing flag, head comparison, ETA,
    reference comparison, final status.

    Args:
        report: Check report to render.
        file: Writable file object (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).
    """
    out = file or sys.stdout
    console = Console(file=out, highlight=False, emoji=False, width=width)

    if report.tools is not None:
        console.print(_tools_line(report.tools))
    console.print(_syncing_line(report))
    if report.local.advisories.get("is_optimistic"):
        console.print(f"{ICON_WAIT} is_optimistic: true")

    console.print()
    console.print(_head_table(report))
    console.print(f"ETA sample:  {escape(eta_text(report))}")

    console.print()
    console.print(_reference_table(report))

    console.print()
    console.print(final_status_line(report.verdict))


def _tools_line(tools: ToolStatus) -> str:
    if tools.container is None:
        return f"{ICON_OK} HTTP client: {tools.client} (direct)"
    suffix = ", installed" if tools.installed else ""
    return (
        f"{ICON_OK} Tools available in container {escape(tools.container)} "
        f"({tools.client}{suffix})"
    )


def _syncing_line(report: CheckReport) -> str:
    if report.syncing_label is None:
        # No native flag: derived from lag.
        syncing = report.lag.raw_lag > report.block_lag
        icon = ICON_WAIT if syncing else ICON_OK
        state = "syncing" if syncing else "in_sync"
        return f"{icon} sync_state: {state} (derived from lag)"

    flag = report.local.is_syncing
    if flag is None:
        return f"{ICON_WARN} {report.syncing_label}: unknown"
    icon = ICON_WAIT if flag else ICON_OK
    return f"{icon} {report.syncing_label}: {str(flag).lower()}"


def _head_table(report: CheckReport) -> Table:
    lag = report.lag
    table = Table(title="Head comparison", show_header=False, title_justify="left")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Local head", _fmt(report.local.position))
    table.add_row("Public head", _fmt(report.public.position))
    table.add_row("Lag", f"{lag.magnitude} {report.unit}")
    table.add_row("Direction", lag.direction.value)
    table.add_row("Threshold", f"{report.block_lag} {report.unit}")
    return table


def _reference_table(report: CheckReport) -> Table:
    table = Table(
        title=f"Reference comparison at {unit_singular(report.unit)} "
        f"{report.compared_position}",
        title_justify="left",
    )
    table.add_column("Side")
    table.add_column("Endpoint")
    table.add_column("Reference")
    table.add_row(
        "Local", escape(report.local_endpoint.url), short_ref(report.local_reference)
    )
    table.add_row(
        "Public", escape(report.public_endpoint.url), short_ref(report.public_reference)
    )
    return table


def eta_text(report: CheckReport) -> str:
    """Return the ETA line body, ``"n/a"`` when no estimate exists."""
    eta = report.eta
    if eta is None or eta.eta_seconds is None:
        return "n/a"
    return f"{eta.rate:.2f} {report.unit}/sec -> ~{format_eta(eta.eta_seconds)}"


def final_status_line(verdict: Verdict) -> str:
    return _FINAL_STATUS.get(verdict, FINAL_ERROR)


def divergence_message(report: CheckReport) -> str:
    """Describe a reference mismatch for the error stream."""
    return (
        f"Reference mismatch at {unit_singular(report.unit)} "
        f"{report.compared_position}: local {report.local_reference} "
        f"!= public {report.public_reference}"
    )


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


def render_json(report: CheckReport, *, file: object | None = None) -> None:
    """Render *report* as JSON to *file*.

    References are emitted in full; absent values are ``null``.

    Args:
        report: Check report to render.
        file: Writable file object (default: ``sys.stdout``).
    """
    out = file or sys.stdout
    payload = _report_to_dict(report)
    json.dump(payload, out, indent=2, default=str)
    out.write("\n")  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def render_error(
    exc: NscError,
    fmt: str = "table",
    *,
    file: object | None = None,
    err: object | None = None,
) -> None:
    """Report a terminal error.

    The labelled diagnostic always goes to *err*. *file* gets the final
    status line, or for ``"json"`` a JSON document with the verdict and
    the error, so JSON consumers never see plain text on stdout.
    """
    out = file or sys.stdout
    err_out = err or sys.stderr
    err_out.write(f"{ICON_FAIL} {exc.label}: {exc.message}\n")  # type: ignore[union-attr]
    if fmt == "json":
        payload = {
            "verdict": exc.verdict.value,
            "exit_code": exc.verdict.exit_code,
            "error": {"label": exc.label, "message": exc.message},
        }
        json.dump(payload, out, indent=2)
        out.write("\n")  # type: ignore[union-attr]
    else:
        out.write(f"{FINAL_ERROR}\n")  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _report_to_dict(report: CheckReport) -> dict:
    """Convert a ``CheckReport`` to a plain dict."""
    lag = report.lag
    return {
        "protocol": report.protocol,
        "verdict": report.verdict.value,
        "exit_code": report.exit_code,
        "unit": report.unit,
        "local": _measurement_dict(report.local, report.local_endpoint),
        "public": _measurement_dict(report.public, report.public_endpoint),
        "lag": {
            "raw": lag.raw_lag,
            "magnitude": lag.magnitude,
            "direction": lag.direction.value,
            "threshold": report.block_lag,
        },
        "eta": dataclasses.asdict(report.eta) if report.eta is not None else None,
        "references": {
            "position": report.compared_position,
            "local": report.local_reference,
            "public": report.public_reference,
        },
        "tools": dataclasses.asdict(report.tools) if report.tools is not None else None,
    }


def _measurement_dict(measurement: ChainMeasurement, endpoint: Endpoint) -> dict:
    return {
        "url": endpoint.url,
        "container": endpoint.container,
        "position": measurement.position,
        "reference": measurement.reference,
        "is_syncing": measurement.is_syncing,
        "advisories": measurement.advisories,
    }


def short_ref(value: str | None) -> str:
    """Shorten a reference for display; ``None`` becomes ``"n/a"``."""
    if value is None:
        return "n/a"
    if len(value) <= _REF_MAX:
        return escape(value)
    return escape(f"{value[:10]}…{value[-8:]}")


def unit_singular(unit: str) -> str:
    return unit[:-1] if unit.endswith("s") else unit


def _fmt(value: object) -> str:
    """Format a field value for table display.

    ``None`` becomes ``"n/a"``, everything else is stringified.
    """
    if value is None:
        return "n/a"
    return str(value)


def render_to_string(report: CheckReport, fmt: str, *, width: int = 200) -> str:
    """Render to a string instead of stdout (used by tests).

    Args:
        report: Check report to render.
        fmt: Output format, ``"table"`` or ``"json"``.
        width: Console width for table rendering (default: 200).

    Returns:
        The rendered output as a string.
    """
    buf = StringIO()
    render(report, fmt, file=buf, width=width)
    return buf.getvalue()
