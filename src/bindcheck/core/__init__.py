# SPDX-License-Identifier: MPL-2.0
"""Core functionality for bindcheck."""
from bindcheck.core.comparison import compare
from bindcheck.core.config import CheckerConfig
from bindcheck.core.crypto import KeyPair, key_allows, thumbprint, thumbprints, verify_jws_signature

__all__ = [
    "compare",
    "CheckerConfig",
    "KeyPair",
    "key_allows",
    "thumbprint",
    "thumbprints",
    "verify_jws_signature",
]
