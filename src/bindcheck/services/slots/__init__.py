# SPDX-License-Identifier: MPL-2.0
"""Reading slot bindings and checking them."""

from .checker import SlotChecker
from .reader import LuksDumpFileReader, LuksTokenReader, SlotMetadataReader, select_token

__all__ = [
    "LuksDumpFileReader",
    "LuksTokenReader",
    "SlotChecker",
    "SlotMetadataReader",
    "select_token",
]
