# SPDX-License-Identifier: MPL-2.0
"""Slot checks: read a slot's binding and walk it."""

import logging
from typing import Optional, Union

from bindcheck.core.models import SlotReport
from bindcheck.services.slots.reader import LuksTokenReader, SlotMetadataReader
from bindcheck.services.walker import MetadataWalker, parse_metadata

logger = logging.getLogger(__name__)


class SlotChecker:
    """Checks one slot of an encrypted device for rotated keys.

    The checker only reports. Rebinding a slot is left to the caller.
    """

    def __init__(
        self,
        walker: Optional[MetadataWalker] = None,
        reader: Optional[SlotMetadataReader] = None,
    ):
        self.walker = walker or MetadataWalker()
        self.reader = reader or LuksTokenReader()

    def check(self, device: str, slot: Union[int, str]) -> SlotReport:
        """Check ``slot`` on ``device``.

        Raises:
            SlotReadError: If the slot's binding cannot be read.
            WalkError: If the binding cannot be checked.
        """
        return self.check_raw(self.reader.read(device, slot), device, slot)

    def check_raw(self, raw: Union[bytes, str], device: str, slot: Union[int, str] = "-") -> SlotReport:
        """Check binding metadata that was already read from somewhere."""
        stale = self.walker.walk(parse_metadata(raw))
        logger.info(f"{device} slot {slot}: {len(stale)} stale key(s)")
        return SlotReport(device=device, slot=str(slot), stale_keys=stale)
