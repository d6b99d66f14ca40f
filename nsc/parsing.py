"""Strict decoding helpers for node responses.

Absent and null values are returned as ``None`` and never coerced to zero
or an empty string. Values that are present but malformed raise
``ParseError``.
"""

import json

from nsc.errors import ParseError
from nsc.models import Side


def decode_object(raw: str, *, context: str, scope: Side | None = None) -> dict:
    """Decode *raw* as a JSON object.

    Raises:
        ParseError: If *raw* is not valid JSON or not a JSON object.
    """
    try:
        doc = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(f"JSON parse error ({context}): {exc}", scope) from exc
    if not isinstance(doc, dict):
        raise ParseError(
            f"JSON parse error ({context}): expected an object, "
            f"got {type(doc).__name__}",
            scope,
        )
    return doc


def dig(doc: object, *path: str) -> object | None:
    """Follow *path* through nested dicts, returning None on any gap."""
    node = doc
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
        if node is None:
            return None
    return node


def rpc_result(response: dict, *, method: str, scope: Side | None = None) -> object:
    """Return the ``result`` of a JSON-RPC response for a required value.

    A null or missing result is returned as None.

    Raises:
        ParseError: If the node answered with an ``error`` object.
    """
    error = response.get("error")
    if error is not None:
        message = error.get("message", error) if isinstance(error, dict) else error
        raise ParseError(f"{method} returned an error: {message}", scope)
    return response.get("result")


def parse_hex_int(
    value: object, *, field: str, scope: Side | None = None
) -> int | None:
    """Decode a ``0x``-prefixed quantity into an int.

    Returns:
        The decoded integer, or None if *value* is None.

    Raises:
        ParseError: If *value* is present but not a hex quantity string.
    """
    if value is None:
        return None
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise ParseError(f"{field}: expected hex quantity, got {value!r}", scope)
    try:
        return int(value, 16)
    except ValueError as exc:
        raise ParseError(f"{field}: invalid hex quantity {value!r}", scope) from exc


def parse_int(value: object, *, field: str, scope: Side | None = None) -> int | None:
    """Decode an int or a decimal string into an int.

    Raises:
        ParseError: If *value* is present but not an integer.
    """
    if value is None:
        return None
    # bool is an int subclass; a flag in a numeric field is malformed.
    if isinstance(value, bool):
        raise ParseError(f"{field}: expected integer, got {value!r}", scope)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise ParseError(f"{field}: invalid integer {value!r}", scope) from exc
    raise ParseError(f"{field}: expected integer, got {value!r}", scope)


def parse_bool(value: object, *, field: str, scope: Side | None = None) -> bool | None:
    """Decode a JSON boolean (or ``"true"``/``"false"`` string).

    Raises:
        ParseError: If *value* is present but not a boolean.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ParseError(f"{field}: expected boolean, got {value!r}", scope)


def parse_str(value: object) -> str | None:
    """Return *value* as a non-empty string, or None."""
    if value is None:
        return None
    text = str(value)
    return text or None
