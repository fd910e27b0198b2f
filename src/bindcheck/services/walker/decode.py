# SPDX-License-Identifier: MPL-2.0
"""Decoding of encoded binding metadata.

Binding metadata travels inside the protected header of a JWE. Sub-bindings of
a secret-sharing binding are compact JWEs; slot storage usually holds the JWE
in JSON serialization. Only the protected header is needed to inspect a
binding, so nothing is decrypted here.
"""

from __future__ import annotations

import json
from typing import Any, Union

from bindcheck.core.crypto import b64url_decode
from bindcheck.core.exceptions import DecodeFailedError

METADATA_NODE = "clevis"

Token = Union[str, bytes, dict]


def _protected_header(protected: Any) -> dict[str, Any]:
    if not isinstance(protected, str) or not protected:
        raise DecodeFailedError("JWE has no protected header")
    try:
        header = json.loads(b64url_decode(protected))
    except (ValueError, RecursionError) as exc:
        raise DecodeFailedError(f"JWE protected header is not base64url JSON: {exc}") from exc
    if not isinstance(header, dict):
        raise DecodeFailedError("JWE protected header is not a JSON object")
    return header


def decode_token(token: Token) -> dict[str, Any]:
    """Return the protected header of a JWE in compact or JSON serialization.

    Raises:
        DecodeFailedError: If ``token`` is not a decodable JWE.
    """
    if isinstance(token, bytes):
        try:
            token = token.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeFailedError("JWE is not valid UTF-8") from exc

    if isinstance(token, dict):
        return _protected_header(token.get("protected"))

    if not isinstance(token, str):
        raise DecodeFailedError(f"Unsupported JWE token type: {type(token).__name__}")

    text = token.strip()
    if text.startswith("{"):
        try:
            obj = json.loads(text)
        except (ValueError, RecursionError) as exc:
            raise DecodeFailedError(f"JWE is not valid JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise DecodeFailedError("JWE is not a JSON object")
        return _protected_header(obj.get("protected"))

    parts = text.split(".")
    if len(parts) != 5:
        raise DecodeFailedError(f"Compact JWE must have 5 parts, got {len(parts)}")
    return _protected_header(parts[0])


def parse_metadata(raw: Union[bytes, str, dict]) -> dict[str, Any]:
    """Turn raw slot contents into a binding metadata document.

    Accepts a plain metadata object (one carrying a ``clevis`` node), a LUKS2
    token object holding a ``jwe``, a JSON JWE, or a compact JWE.

    Raises:
        DecodeFailedError: If the contents cannot be decoded.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeFailedError("Slot metadata is not valid UTF-8") from exc

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise DecodeFailedError("Slot metadata is empty")
        if not text.startswith("{"):
            return decode_token(text)
        try:
            raw = json.loads(text)
        except (ValueError, RecursionError) as exc:
            raise DecodeFailedError(f"Slot metadata is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise DecodeFailedError("Slot metadata is not a JSON object")
    if METADATA_NODE in raw:
        return raw
    if "jwe" in raw:
        return decode_token(raw["jwe"])
    return decode_token(raw)
