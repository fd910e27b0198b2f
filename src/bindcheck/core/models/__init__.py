# SPDX-License-Identifier: MPL-2.0
"""Data models for bindcheck."""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Pin(str, Enum):
    """Key-recovery schemes the checker knows how to inspect."""

    DIRECT_REMOTE = "tang"
    SECRET_SHARING = "sss"


@dataclass(frozen=True)
class DirectRemoteBinding:
    """A binding to a single remote key server."""

    url: str
    recorded_keys: tuple[dict[str, Any], ...]


@dataclass(frozen=True)
class SecretSharingBinding:
    """A binding split into sub-bindings, each an encoded token."""

    tokens: tuple[Any, ...]
    threshold: Optional[int] = None


@dataclass(frozen=True)
class OtherBinding:
    """A binding whose scheme does not depend on remote key advertisements."""

    pin: str


Binding = Union[DirectRemoteBinding, SecretSharingBinding, OtherBinding]


@dataclass(frozen=True)
class Advertisement:
    """Raw advertisement as returned by a key server."""

    url: str
    body: bytes
    status_code: int = 200


@dataclass
class SlotReport:
    """Result of checking one slot."""

    device: str
    slot: str
    stale_keys: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_clean(self) -> bool:
        return not self.stale_keys

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to a dictionary."""
        return {
            "device": self.device,
            "slot": self.slot,
            "clean": self.is_clean,
            "stale_keys": sorted(self.stale_keys),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert the report to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
