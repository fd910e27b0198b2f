# SPDX-License-Identifier: MPL-2.0
"""
bindcheck - Detect rotated key server keys in automatic-unlock bindings.

This package compares the keys recorded in an encrypted device's binding
metadata against the keys its key servers advertise today, and reports the
recorded keys that are no longer advertised.
"""

import contextlib
from importlib.metadata import version

# Set up version
__version__ = "0.1.0"

with contextlib.suppress(Exception):
    __version__ = version("bindcheck")


# Core components
from bindcheck.core import compare, thumbprint
from bindcheck.core.config import CheckerConfig
from bindcheck.services.slots import SlotChecker
from bindcheck.services.walker import MetadataWalker

# Public API
__all__ = [
    "CheckerConfig",
    "MetadataWalker",
    "SlotChecker",
    "compare",
    "thumbprint",
    "__version__",
]
