# SPDX-License-Identifier: MPL-2.0
"""Unit tests for the JOSE primitives."""

from __future__ import annotations

import json

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from bindcheck.core.crypto import (
    KeyPair,
    b64url_decode,
    b64url_encode,
    create_jws,
    key_allows,
    load_public_key,
    thumbprint,
    thumbprints,
    verify_jws_signature,
)
from bindcheck.core.exceptions import CryptographicError, InvalidKeyError

# RFC 7638 section 3.1
RFC7638_KEY = {
    "kty": "RSA",
    "n": (
        "0vx7agoebGcQSuuPiLJXZptN9nndrQmbXEps2aiAFbWhM78LhWx4cbbfAAtVT86zwu1RK7aPFFxuhDR1L6tSoc_BJECP"
        "ebWKRXjBZCiFV4n3oknjhMstn64tZ_2W-5JsGY4Hc5n9yBXArwl93lqt7_RN5w6Cf0h4QyQ5v-65YGjQR0_FDW2QvzqY"
        "368QQMicAtaSqzs8KJZgnYb9c7d0zgdAZHzu6qMQvRL5hajrn1n91CbOpbISD08qNLyrdkt-bFTWhAI4vMQFh6WeZu0f"
        "M4lFd2NcRwr3XPksINHaQ-G_xBniIqbw0Ls1jF44-csFCur-kEgU8awapJzKnqDKgw"
    ),
    "e": "AQAB",
    "alg": "RS256",
    "kid": "2011-04-29",
}
RFC7638_THUMBPRINT = "NzbLsXh8uDCcd-6MNwXF4W_7noWXFZAfHkxZsRGC9Xs"


def _sign_single(key: KeyPair, payload: dict) -> tuple[str, str, str]:
    jws = create_jws(payload, [key])
    sig = jws["signatures"][0]
    return sig["protected"], jws["payload"], sig["signature"]


def test_b64url_roundtrip_without_padding() -> None:
    encoded = b64url_encode(b"\xfb\xff")
    assert "=" not in encoded
    assert b64url_decode(encoded) == b"\xfb\xff"


def test_b64url_decode_rejects_non_strings() -> None:
    with pytest.raises(ValueError):
        b64url_decode(b"abc")  # type: ignore[arg-type]


def test_thumbprint_matches_rfc7638_example() -> None:
    assert thumbprint(RFC7638_KEY) == RFC7638_THUMBPRINT


def test_thumbprint_ignores_optional_members() -> None:
    key = KeyPair.generate("ES256")
    plain = key.to_jwk(key_ops=None)
    decorated = key.to_jwk(key_ops=["verify"], use="sig")
    decorated["kid"] = "something"
    assert thumbprint(plain) == thumbprint(decorated)


@pytest.mark.parametrize("hash_alg, length", [("S1", 27), ("S256", 43), ("S512", 86)])
def test_thumbprint_hash_algorithms(hash_alg: str, length: int) -> None:
    assert len(thumbprint(RFC7638_KEY, hash_alg)) == length


def test_thumbprint_unknown_hash() -> None:
    with pytest.raises(CryptographicError):
        thumbprint(RFC7638_KEY, "MD5")


@pytest.mark.parametrize(
    "jwk",
    [
        {"kty": "EC", "crv": "P-256", "x": "AAAA"},
        {"kty": "RSA", "n": "AAAA"},
        {"kty": "weird", "x": "AAAA"},
        {"crv": "Ed25519", "x": "AAAA"},
    ],
)
def test_thumbprint_rejects_incomplete_keys(jwk: dict) -> None:
    with pytest.raises(InvalidKeyError):
        thumbprint(jwk)


def test_thumbprints_deduplicates() -> None:
    key = KeyPair.generate("ES256").to_jwk()
    assert thumbprints([key, dict(key)]) == {thumbprint(key)}


@pytest.mark.parametrize(
    "jwk, op, expected",
    [
        ({"key_ops": ["verify"]}, "verify", True),
        ({"key_ops": ["deriveKey"]}, "verify", False),
        ({"use": "sig"}, "verify", True),
        ({"use": "enc"}, "verify", False),
        ({"use": "enc"}, "deriveKey", True),
        ({"key_ops": ["deriveKey"], "use": "sig"}, "verify", False),
        ({}, "verify", False),
    ],
)
def test_key_allows(jwk: dict, op: str, expected: bool) -> None:
    assert key_allows(jwk, op) is expected


@pytest.mark.parametrize("alg", ["ES256", "ES384", "ES512", "EdDSA"])
def test_jws_signature_roundtrip(alg: str) -> None:
    key = KeyPair.generate(alg)
    protected, payload, signature = _sign_single(key, {"keys": [key.to_jwk()]})
    assert verify_jws_signature(protected, payload, signature, key.to_jwk())


def test_jws_signature_rejects_other_key() -> None:
    key = KeyPair.generate("ES256")
    other = KeyPair.generate("ES256")
    protected, payload, signature = _sign_single(key, {"keys": []})
    assert not verify_jws_signature(protected, payload, signature, other.to_jwk())


def test_jws_signature_rejects_tampered_payload() -> None:
    key = KeyPair.generate("ES256")
    protected, _, signature = _sign_single(key, {"keys": []})
    forged = b64url_encode(json.dumps({"keys": [{"kty": "oct", "k": "AA"}]}).encode())
    assert not verify_jws_signature(protected, forged, signature, key.to_jwk())


def test_jws_signature_rejects_truncated_signature() -> None:
    key = KeyPair.generate("ES256")
    protected, payload, signature = _sign_single(key, {"keys": []})
    truncated = b64url_encode(b64url_decode(signature)[:-1])
    assert not verify_jws_signature(protected, payload, truncated, key.to_jwk())


def test_jws_signature_rejects_alg_mismatch() -> None:
    key = KeyPair.generate("ES256")
    protected, payload, signature = _sign_single(key, {"keys": []})
    jwk = key.to_jwk()
    jwk["alg"] = "ES512"
    assert not verify_jws_signature(protected, payload, signature, jwk)


def test_jws_signature_rejects_garbage_header() -> None:
    key = KeyPair.generate("ES256")
    _, payload, signature = _sign_single(key, {"keys": []})
    assert not verify_jws_signature("not-json", payload, signature, key.to_jwk())


@pytest.mark.parametrize("alg", ["RS256", "PS384"])
def test_jws_signature_rsa(alg: str) -> None:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    numbers = private_key.public_key().public_numbers()
    jwk = {
        "kty": "RSA",
        "n": b64url_encode(numbers.n.to_bytes((numbers.n.bit_length() + 7) // 8, "big")),
        "e": b64url_encode(numbers.e.to_bytes(3, "big")),
        "key_ops": ["verify"],
    }
    protected = b64url_encode(json.dumps({"alg": alg}).encode())
    payload = b64url_encode(b'{"keys":[]}')
    hash_cls = hashes.SHA256 if alg.endswith("256") else hashes.SHA384
    if alg.startswith("RS"):
        pad = padding.PKCS1v15()
    else:
        pad = padding.PSS(mgf=padding.MGF1(hash_cls()), salt_length=hash_cls.digest_size)
    signature = private_key.sign(f"{protected}.{payload}".encode(), pad, hash_cls())

    assert verify_jws_signature(protected, payload, b64url_encode(signature), jwk)


def test_load_public_key_rejects_bad_curve() -> None:
    with pytest.raises(InvalidKeyError):
        load_public_key({"kty": "EC", "crv": "P-192", "x": "AA", "y": "AA"})


def test_keypair_jwk_is_public_only() -> None:
    jwk = KeyPair.generate("ES512", kid="adv-1").to_jwk()
    assert jwk["crv"] == "P-521"
    assert jwk["kid"] == "adv-1"
    assert jwk["key_ops"] == ["verify"]
    assert "d" not in jwk


def test_keypair_rejects_unknown_alg() -> None:
    with pytest.raises(CryptographicError):
        KeyPair.generate("HS256")
