# SPDX-License-Identifier: MPL-2.0
"""Slot metadata readers.

LUKS2 keeps automatic-unlock bindings as tokens of type ``clevis`` in the
header's JSON area. Each token lists the keyslots it unlocks and carries the
binding as a JSON-serialized JWE under ``jwe``.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Protocol, Union

from bindcheck.core.exceptions import SlotReadError

logger = logging.getLogger(__name__)

TOKEN_TYPE = "clevis"
CRYPTSETUP = "cryptsetup"
CRYPTSETUP_TIMEOUT = 30  # seconds


class SlotMetadataReader(Protocol):
    """Anything that can return the raw binding metadata of a slot."""

    def read(self, device: str, slot: Union[int, str]) -> bytes:
        ...


def _normalize_slot(slot: Union[int, str]) -> str:
    text = str(slot).strip()
    if not text.isdigit():
        raise SlotReadError(f"Invalid key slot: {slot!r}")
    return str(int(text))


def select_token(header: Dict[str, Any], slot: Union[int, str], source: str = "device") -> bytes:
    """Pick the binding bound to ``slot`` from a LUKS2 JSON header.

    Raises:
        SlotReadError: If the header has no binding for the slot.
    """
    slot_id = _normalize_slot(slot)
    tokens = header.get("tokens") if isinstance(header, dict) else None
    if not isinstance(tokens, dict):
        raise SlotReadError(f"{source} has no LUKS2 tokens")

    for token_id in sorted(tokens, key=lambda t: int(t) if str(t).isdigit() else -1):
        token = tokens[token_id]
        if not isinstance(token, dict) or token.get("type") != TOKEN_TYPE:
            continue
        keyslots = token.get("keyslots", [])
        if not isinstance(keyslots, list):
            raise SlotReadError(f"Token {token_id} on {source} has invalid keyslots")
        if slot_id not in [str(s) for s in keyslots]:
            continue
        if "jwe" not in token:
            raise SlotReadError(f"Token {token_id} on {source} has no binding metadata")
        logger.debug(f"Using token {token_id} for slot {slot_id} on {source}")
        return json.dumps(token["jwe"]).encode("utf-8")

    raise SlotReadError(f"Key slot {slot_id} on {source} is not bound")


class LuksTokenReader:
    """Reads bindings straight from a LUKS2 device with ``cryptsetup``."""

    def __init__(self, cryptsetup: str = CRYPTSETUP, timeout: float = CRYPTSETUP_TIMEOUT):
        self.cryptsetup = cryptsetup
        self.timeout = timeout

    def read(self, device: str, slot: Union[int, str]) -> bytes:
        cmd = [self.cryptsetup, "luksDump", "--dump-json-metadata", device]
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SlotReadError(f"{self.cryptsetup} is not installed") from e
        except subprocess.TimeoutExpired as e:
            raise SlotReadError(f"Timed out reading the LUKS header of {device}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip() or f"exit status {result.returncode}"
            raise SlotReadError(f"Could not read the LUKS header of {device}: {stderr}")

        try:
            header = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise SlotReadError(f"{device} does not have a LUKS2 JSON header") from e
        return select_token(header, slot, device)


class LuksDumpFileReader:
    """Reads bindings from a saved ``luksDump --dump-json-metadata`` file.

    The ``device`` argument of :meth:`read` is only used in messages.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self, device: str, slot: Union[int, str]) -> bytes:
        try:
            header = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise SlotReadError(f"Could not read {self.path}: {e.strerror or e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SlotReadError(f"{self.path} is not a LUKS2 JSON header dump") from e
        return select_token(header, slot, device or str(self.path))
