# SPDX-License-Identifier: MPL-2.0
"""Canonical JSON serialisation for JOSE hash inputs.

RFC 7638 thumbprints hash the required members of a JWK serialised with
lexicographically sorted keys and no whitespace. Those members are always
strings, so the output coincides with the JSON Canonicalization Scheme
(RFC 8785) for every input the thumbprint code produces.
"""

from __future__ import annotations

import json
import math
from typing import Any


class CanonicalizationError(Exception):
    """Raised when data cannot be canonicalized."""


def _check(value: Any) -> None:
    """Recursively reject values that have no canonical form."""

    if isinstance(value, float) and not math.isfinite(value):
        raise CanonicalizationError("Non-finite float values are not allowed")

    if isinstance(value, (list, tuple)):
        for item in value:
            _check(item)
        return

    if isinstance(value, dict):
        if any(not isinstance(k, str) for k in value):
            raise CanonicalizationError("Dictionary keys must be strings")
        for item in value.values():
            _check(item)
        return

    if value is not None and not isinstance(value, (str, bool, int, float)):
        raise CanonicalizationError(f"Type {type(value)!r} is not supported for canonicalization")


def canonicalize(data: Any) -> str:
    """Convert data to a compact, key-sorted JSON string."""

    _check(data)
    try:
        return json.dumps(
            data,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise CanonicalizationError(str(exc)) from exc


def canonical_bytes(data: Any) -> bytes:
    """UTF-8 encoded :func:`canonicalize` output, ready for hashing."""

    return canonicalize(data).encode("utf-8")
