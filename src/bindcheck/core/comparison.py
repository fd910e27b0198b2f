# SPDX-License-Identifier: MPL-2.0
"""Key set comparison by thumbprint."""

from typing import AbstractSet

from bindcheck.core.exceptions import InputError


def compare(current: AbstractSet[str], recorded: AbstractSet[str]) -> frozenset[str]:
    """Return the recorded thumbprints that are not currently advertised.

    Args:
        current: Thumbprints of the keys the server advertises now
        recorded: Thumbprints of the keys recorded in the binding

    Raises:
        InputError: If either set is empty. An empty set means the input was
            malformed, which is not the same as "nothing rotated".
    """
    if not current:
        raise InputError("Current key set is empty")
    if not recorded:
        raise InputError("Recorded key set is empty")
    return frozenset(recorded) - frozenset(current)
