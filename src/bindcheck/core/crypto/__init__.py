# SPDX-License-Identifier: MPL-2.0
"""JOSE primitives used by the checker.

This module covers the small slice of JWK/JWS handling the checker needs:
RFC 7638 thumbprints, key capability checks, public key loading and JWS
signature verification. :class:`KeyPair` and :func:`create_jws` produce
advertisements in the same format a key server publishes; they are mostly
useful for tests and local tooling.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from bindcheck.core.canonicalization import canonical_bytes
from bindcheck.core.exceptions import CryptographicError, InvalidKeyError

PublicKey = Union[
    ec.EllipticCurvePublicKey,
    ed25519.Ed25519PublicKey,
    ed448.Ed448PublicKey,
    rsa.RSAPublicKey,
]

THUMBPRINT_HASHES = {
    "S1": hashlib.sha1,
    "S224": hashlib.sha224,
    "S256": hashlib.sha256,
    "S384": hashlib.sha384,
    "S512": hashlib.sha512,
}

# RFC 7638 section 3.2
_REQUIRED_MEMBERS = {
    "EC": ("crv", "kty", "x", "y"),
    "OKP": ("crv", "kty", "x"),
    "RSA": ("e", "kty", "n"),
    "oct": ("k", "kty"),
}

_CURVES = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}

_EC_ALGS = {
    "ES256": ("P-256", hashes.SHA256),
    "ES384": ("P-384", hashes.SHA384),
    "ES512": ("P-521", hashes.SHA512),
}

_RSA_HASHES = {"256": hashes.SHA256, "384": hashes.SHA384, "512": hashes.SHA512}

_USE_FOR_OP = {
    "sign": "sig",
    "verify": "sig",
    "encrypt": "enc",
    "decrypt": "enc",
    "wrapKey": "enc",
    "unwrapKey": "enc",
    "deriveKey": "enc",
    "deriveBits": "enc",
}


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded base64url. Raises ``ValueError`` on bad input."""
    if not isinstance(data, str):
        raise ValueError("base64url input must be a string")
    try:
        return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid base64url: {exc}") from exc


def _b64url_int(data: str) -> int:
    return int.from_bytes(b64url_decode(data), "big")


# ----------------------------------------------------------------------
# JWK helpers
# ----------------------------------------------------------------------
def thumbprint(jwk: dict[str, Any], hash_alg: str = "S256") -> str:
    """Compute the RFC 7638 thumbprint of ``jwk``.

    Args:
        jwk: The key. Only its required public members are hashed, so the
            thumbprint of a private JWK equals that of its public half.
        hash_alg: One of ``S1``, ``S224``, ``S256``, ``S384``, ``S512``.

    Raises:
        InvalidKeyError: If the key type is unknown or a required member is
            missing.
    """
    if not isinstance(jwk, dict):
        raise InvalidKeyError("JWK must be a JSON object")
    try:
        digest = THUMBPRINT_HASHES[hash_alg]
    except KeyError:
        raise CryptographicError(f"Unsupported thumbprint hash: {hash_alg}") from None

    kty = jwk.get("kty")
    members = _REQUIRED_MEMBERS.get(kty)
    if members is None:
        raise InvalidKeyError(f"Unsupported key type: {kty!r}", {"kty": kty})

    missing = [m for m in members if not isinstance(jwk.get(m), str)]
    if missing:
        raise InvalidKeyError(
            f"JWK is missing required members: {', '.join(missing)}",
            {"kty": kty, "missing": missing},
        )

    required = {m: jwk[m] for m in members}
    return b64url_encode(digest(canonical_bytes(required)).digest())


def thumbprints(keys: Iterable[dict[str, Any]], hash_alg: str = "S256") -> set[str]:
    """Thumbprint every key in ``keys``."""
    return {thumbprint(key, hash_alg) for key in keys}


def key_allows(jwk: dict[str, Any], op: str) -> bool:
    """Return True if ``jwk`` explicitly permits operation ``op``.

    ``key_ops`` takes precedence over ``use``. A key declaring neither is not
    considered capable of anything.
    """
    key_ops = jwk.get("key_ops")
    if isinstance(key_ops, list):
        return op in key_ops
    use = jwk.get("use")
    if isinstance(use, str):
        return use == _USE_FOR_OP.get(op)
    return False


def load_public_key(jwk: dict[str, Any]) -> PublicKey:
    """Build a ``cryptography`` public key from a JWK.

    Raises:
        InvalidKeyError: If the key cannot be loaded.
    """
    kty = jwk.get("kty")
    try:
        if kty == "EC":
            curve = _CURVES[jwk["crv"]]
            numbers = ec.EllipticCurvePublicNumbers(
                _b64url_int(jwk["x"]), _b64url_int(jwk["y"]), curve()
            )
            return numbers.public_key()
        if kty == "OKP":
            raw = b64url_decode(jwk["x"])
            if jwk["crv"] == "Ed25519":
                return ed25519.Ed25519PublicKey.from_public_bytes(raw)
            if jwk["crv"] == "Ed448":
                return ed448.Ed448PublicKey.from_public_bytes(raw)
            raise KeyError(jwk["crv"])
        if kty == "RSA":
            return rsa.RSAPublicNumbers(_b64url_int(jwk["e"]), _b64url_int(jwk["n"])).public_key()
    except (KeyError, TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyError(f"Could not load {kty} key: {exc}", {"kty": kty}) from exc
    raise InvalidKeyError(f"Unsupported key type: {kty!r}", {"kty": kty})


def _verify(key: PublicKey, alg: str, crv: Any, signature: bytes, data: bytes) -> None:
    """Verify ``signature`` over ``data``; raise ``InvalidSignature`` on mismatch."""
    if alg in _EC_ALGS:
        expected_crv, hash_cls = _EC_ALGS[alg]
        if not isinstance(key, ec.EllipticCurvePublicKey) or crv != expected_crv:
            raise InvalidSignature()
        size = (key.curve.key_size + 7) // 8
        if len(signature) != 2 * size:
            raise InvalidSignature()
        r = int.from_bytes(signature[:size], "big")
        s = int.from_bytes(signature[size:], "big")
        key.verify(encode_dss_signature(r, s), data, ec.ECDSA(hash_cls()))
    elif alg == "EdDSA":
        if not isinstance(key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
            raise InvalidSignature()
        key.verify(signature, data)
    elif alg[:2] in ("RS", "PS") and alg[2:] in _RSA_HASHES:
        if not isinstance(key, rsa.RSAPublicKey):
            raise InvalidSignature()
        hash_cls = _RSA_HASHES[alg[2:]]
        if alg.startswith("RS"):
            pad = padding.PKCS1v15()
        else:
            pad = padding.PSS(mgf=padding.MGF1(hash_cls()), salt_length=hash_cls.digest_size)
        key.verify(signature, data, pad, hash_cls())
    else:
        raise InvalidSignature()


def verify_jws_signature(protected: str, payload: str, signature: str, jwk: dict[str, Any]) -> bool:
    """Check one JWS signature against one key.

    Args:
        protected: Base64url protected header, as it appears in the JWS
        payload: Base64url payload, as it appears in the JWS
        signature: Base64url signature
        jwk: The public key to verify with

    Returns:
        True if the signature is valid for ``jwk``, False otherwise.
    """
    try:
        header = json.loads(b64url_decode(protected)) if protected else {}
        if not isinstance(header, dict):
            return False
        alg = header.get("alg") or jwk.get("alg")
        if not isinstance(alg, str):
            return False
        if jwk.get("alg") not in (None, alg):
            return False
        key = load_public_key(jwk)
        signing_input = f"{protected}.{payload}".encode("ascii")
        _verify(key, alg, jwk.get("crv"), b64url_decode(signature), signing_input)
    except (InvalidSignature, InvalidKeyError, ValueError, TypeError):
        return False
    else:
        return True


# ----------------------------------------------------------------------
# Signing side
# ----------------------------------------------------------------------
@dataclass
class KeyPair:
    """An EC or Ed25519 signing key with its JWS algorithm."""

    private_key: Union[ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]
    alg: str = "ES512"
    kid: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def generate(cls, alg: str = "ES512", kid: str | None = None) -> KeyPair:
        """Generate a new key for ``alg`` (``ES256``, ``ES384``, ``ES512`` or ``EdDSA``)."""
        if alg in _EC_ALGS:
            curve = _CURVES[_EC_ALGS[alg][0]]
            private_key = ec.generate_private_key(curve())
        elif alg == "EdDSA":
            private_key = ed25519.Ed25519PrivateKey.generate()
        else:
            raise CryptographicError(f"Unsupported signing algorithm: {alg}")
        return cls(private_key=private_key, alg=alg, kid=kid)

    def to_jwk(self, key_ops: Sequence[str] | None = ("verify",), use: str | None = None) -> dict[str, Any]:
        """Return the public half as a JWK.

        Args:
            key_ops: Operations to declare; ``None`` omits ``key_ops``.
            use: Optional ``use`` member.
        """
        if isinstance(self.private_key, ec.EllipticCurvePrivateKey):
            numbers = self.private_key.public_key().public_numbers()
            size = (self.private_key.curve.key_size + 7) // 8
            jwk: dict[str, Any] = {
                "kty": "EC",
                "crv": _EC_ALGS[self.alg][0],
                "x": b64url_encode(numbers.x.to_bytes(size, "big")),
                "y": b64url_encode(numbers.y.to_bytes(size, "big")),
            }
        else:
            raw = self.private_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
            jwk = {"kty": "OKP", "crv": "Ed25519", "x": b64url_encode(raw)}

        jwk["alg"] = self.alg
        if key_ops is not None:
            jwk["key_ops"] = list(key_ops)
        if use is not None:
            jwk["use"] = use
        if self.kid:
            jwk["kid"] = self.kid
        jwk.update(self.extra)
        return jwk

    def sign(self, data: bytes) -> bytes:
        """Sign ``data`` and return the JWS-encoded signature bytes."""
        if isinstance(self.private_key, ec.EllipticCurvePrivateKey):
            hash_cls = _EC_ALGS[self.alg][1]
            r, s = decode_dss_signature(self.private_key.sign(data, ec.ECDSA(hash_cls())))
            size = (self.private_key.curve.key_size + 7) // 8
            return r.to_bytes(size, "big") + s.to_bytes(size, "big")
        return self.private_key.sign(data)


def create_jws(payload: dict[str, Any], signers: Sequence[KeyPair]) -> dict[str, Any]:
    """Sign ``payload`` with every key in ``signers`` (general JSON serialization)."""
    payload_b64 = b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signatures = []
    for signer in signers:
        header = {"alg": signer.alg, "cty": "jwk-set+json"}
        protected = b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
        signing_input = f"{protected}.{payload_b64}".encode("ascii")
        signatures.append({"protected": protected, "signature": b64url_encode(signer.sign(signing_input))})
    return {"payload": payload_b64, "signatures": signatures}
