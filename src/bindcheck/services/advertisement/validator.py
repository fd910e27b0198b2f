# SPDX-License-Identifier: MPL-2.0
"""Advertisement validation.

An advertisement is a JWS whose payload is the server's JWK Set. It certifies
itself: the keys that verify the signatures come from the payload being
verified. No other root of trust is consulted.

Every key in the set that is allowed to ``verify`` must validate at least one
of the signatures. A single verify key that validates nothing rejects the
whole advertisement.
"""

import json
import logging
from typing import Any, Dict, List, Tuple

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from bindcheck.core.crypto import b64url_decode, key_allows, thumbprint, verify_jws_signature
from bindcheck.core.exceptions import (
    InvalidKeyError,
    MalformedAdvertisementError,
    NoVerifyKeyError,
    SignatureInvalidError,
)
from bindcheck.core.models import Advertisement

logger = logging.getLogger(__name__)

JWS_SCHEMA = {
    "type": "object",
    "required": ["payload"],
    "properties": {
        "payload": {"type": "string", "minLength": 1},
        "protected": {"type": "string"},
        "signature": {"type": "string"},
        "signatures": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["signature"],
                "properties": {
                    "protected": {"type": "string"},
                    "signature": {"type": "string"},
                },
            },
        },
    },
}

KEY_SET_SCHEMA = {
    "type": "object",
    "required": ["keys"],
    "properties": {
        "keys": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["kty"],
                "properties": {"kty": {"type": "string"}},
            },
        }
    },
}

Signature = Tuple[str, str]


class AdvertisementValidator:
    """Checks advertisement structure and signatures.

    Keys named in errors are identified by their thumbprint with ``thumbprint_hash``.
    """

    def __init__(self, thumbprint_hash: str = "S256"):
        self.thumbprint_hash = thumbprint_hash

    def validate(self, advertisement: Advertisement) -> List[Dict[str, Any]]:
        """Validate ``advertisement`` and return its full key set.

        Raises:
            MalformedAdvertisementError: If the document or its payload does
                not parse, or the key set is missing or empty.
            NoVerifyKeyError: If no advertised key may be used to verify.
            SignatureInvalidError: If there are no signatures, or some verify
                key validates none of them.
        """
        jws = self._parse(advertisement)
        keys = self._extract_keys(jws, advertisement.url)

        verify_keys = [key for key in keys if key_allows(key, "verify")]
        if not verify_keys:
            raise NoVerifyKeyError(
                f"Advertisement from {advertisement.url} has no verify key",
                {"url": advertisement.url},
            )

        signatures = self._signatures(jws)
        if not signatures:
            raise SignatureInvalidError(
                f"Advertisement from {advertisement.url} is not signed",
                {"url": advertisement.url},
            )

        payload = jws["payload"]
        for key in verify_keys:
            if not any(verify_jws_signature(protected, payload, sig, key) for protected, sig in signatures):
                kid = thumbprint(key, self.thumbprint_hash)
                logger.error(f"Advertisement from {advertisement.url} not signed by verify key {kid}")
                raise SignatureInvalidError(
                    f"Advertisement from {advertisement.url} is not signed by verify key {kid}",
                    {"url": advertisement.url, "key": kid},
                )

        logger.info(
            f"Advertisement from {advertisement.url} verified "
            f"({len(verify_keys)} verify key(s), {len(keys)} key(s) total)"
        )
        return keys

    @staticmethod
    def _parse(advertisement: Advertisement) -> Dict[str, Any]:
        try:
            jws = json.loads(advertisement.body)
        except (ValueError, RecursionError) as e:
            raise MalformedAdvertisementError(
                f"Advertisement from {advertisement.url} is not valid JSON: {e}",
                {"url": advertisement.url},
            ) from e

        try:
            validate(jws, JWS_SCHEMA)
        except SchemaValidationError as e:
            raise MalformedAdvertisementError(
                f"Advertisement from {advertisement.url} is not a JWS: {e.message}",
                {"url": advertisement.url},
            ) from e
        return jws

    @staticmethod
    def _extract_keys(jws: Dict[str, Any], url: str) -> List[Dict[str, Any]]:
        try:
            payload = json.loads(b64url_decode(jws["payload"]))
        except (ValueError, RecursionError) as e:
            raise MalformedAdvertisementError(
                f"Advertisement payload from {url} is not base64url JSON",
                {"url": url},
            ) from e

        try:
            validate(payload, KEY_SET_SCHEMA)
        except SchemaValidationError as e:
            raise MalformedAdvertisementError(
                f"Advertisement payload from {url} has no usable key set: {e.message}",
                {"url": url},
            ) from e

        keys = payload["keys"]
        for key in keys:
            try:
                thumbprint(key)
            except InvalidKeyError as e:
                raise MalformedAdvertisementError(
                    f"Advertisement from {url} contains an invalid key: {e.message}",
                    {"url": url},
                ) from e
        return keys

    @staticmethod
    def _signatures(jws: Dict[str, Any]) -> List[Signature]:
        """Collect (protected, signature) pairs from either JWS JSON serialization."""
        if "signatures" in jws:
            return [(s.get("protected", ""), s["signature"]) for s in jws["signatures"]]
        if "signature" in jws:
            return [(jws.get("protected", ""), jws["signature"])]
        return []
