"""Query string encoding.

Parameters are an ordered mapping of name -> values. A value may be a single
scalar or a sequence; None renders as an empty string. Keys and values are
form-encoded as UTF-8 (space becomes '+', "~" becomes "%7E").
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any
from urllib.parse import quote_plus

QueryParams = Mapping[str | None, Any]


def _encode(text: str) -> str:
    # quote_plus always leaves "~" alone; form encoding escapes it.
    return quote_plus(text, safe="*", encoding="utf-8").replace("~", "%7E")


def _value_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _as_values(values: Any) -> list[Any]:
    """Normalize a mapping value to a list of raw values."""
    if values is None:
        return []
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        return [values]
    return list(values)


def build_query(params: QueryParams | None) -> str:
    """Encode params as "k=v&k=v" without a leading '?'.

    Entries with a None or empty key are skipped. A key with no values is
    emitted once with an empty value; a key with N values is emitted N times.
    """
    if not params:
        return ""

    pairs: list[str] = []
    for key, values in params.items():
        if not key:
            continue
        encoded_key = _encode(key)
        raw_values = _as_values(values)
        if not raw_values:
            pairs.append(f"{encoded_key}=")
            continue
        for value in raw_values:
            pairs.append(f"{encoded_key}={_encode(_value_to_string(value))}")

    return "&".join(pairs)


def append_query(base: str, params: QueryParams | None) -> str:
    """Return base with "?query" appended, or base unchanged if nothing was encoded."""
    query = build_query(params)
    if not query:
        return base
    return f"{base}?{query}"
