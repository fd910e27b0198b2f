# SPDX-License-Identifier: MPL-2.0
"""Shared fixtures: signing keys, advertisements and binding documents."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, Iterable, List, Sequence, Union

import pytest

from bindcheck.core.crypto import KeyPair, b64url_encode, create_jws
from bindcheck.core.models import Advertisement

TANG_URL = "http://tang.example"


class StubFetcher:
    """Fetcher double returning canned advertisements per key server URL."""

    def __init__(self, responses: Dict[str, Union[Advertisement, Exception]]):
        self.responses = responses
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> Advertisement:
        with self._lock:
            self.calls.append(url)
        result = self.responses[url]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def signer() -> KeyPair:
    return KeyPair.generate("ES256")


@pytest.fixture
def exchange_key() -> Dict[str, Any]:
    """A key-exchange JWK as key servers publish next to their signing keys."""
    jwk = KeyPair.generate("ES256").to_jwk(key_ops=["deriveKey"])
    jwk["alg"] = "ECMR"
    return jwk


@pytest.fixture
def make_adv() -> Callable[..., Advertisement]:
    def _make(
        signers: Sequence[KeyPair],
        extra_keys: Iterable[Dict[str, Any]] = (),
        url: str = TANG_URL,
        signed_by: Sequence[KeyPair] | None = None,
    ) -> Advertisement:
        keys = [s.to_jwk() for s in signers] + list(extra_keys)
        jws = create_jws({"keys": keys}, signers if signed_by is None else signed_by)
        return Advertisement(url=f"{url}/adv", body=json.dumps(jws).encode("utf-8"))

    return _make


@pytest.fixture
def tang_binding() -> Callable[..., Dict[str, Any]]:
    def _make(keys: Iterable[Dict[str, Any]], url: str = TANG_URL) -> Dict[str, Any]:
        return {"clevis": {"pin": "tang", "tang": {"url": url, "adv": {"keys": list(keys)}}}}

    return _make


@pytest.fixture
def sss_binding() -> Callable[..., Dict[str, Any]]:
    def _make(tokens: Iterable[Any], threshold: int = 1) -> Dict[str, Any]:
        return {"clevis": {"pin": "sss", "sss": {"t": threshold, "p": "AQAB", "jwe": list(tokens)}}}

    return _make


@pytest.fixture
def compact_jwe() -> Callable[[Dict[str, Any]], str]:
    """Wrap a metadata document as the protected header of a compact JWE."""

    def _make(header: Dict[str, Any]) -> str:
        protected = b64url_encode(json.dumps(header).encode("utf-8"))
        return f"{protected}..aXY.Y2lwaGVydGV4dA.dGFn"

    return _make


@pytest.fixture
def stub_fetcher() -> Callable[[Dict[str, Union[Advertisement, Exception]]], StubFetcher]:
    return StubFetcher
