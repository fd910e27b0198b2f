# SPDX-License-Identifier: MPL-2.0
"""Binding metadata traversal."""

from .decode import decode_token, parse_metadata
from .walker import MetadataWalker, parse_binding

__all__ = ["MetadataWalker", "decode_token", "parse_binding", "parse_metadata"]
