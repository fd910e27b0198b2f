# SPDX-License-Identifier: MPL-2.0
"""Custom exceptions for bindcheck.

Every failure mode of a check has its own exception type so callers can tell
"could not verify" apart from "verified, nothing rotated". None of these are
ever translated into an empty result.
"""

from typing import Any, Dict, Optional


class BindCheckError(Exception):
    """Base exception for all bindcheck errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputError(BindCheckError):
    """Raised when a key set handed to the comparator is empty."""


class CryptographicError(BindCheckError):
    """Raised when cryptographic operations fail."""


class InvalidKeyError(CryptographicError):
    """Raised when a JWK is invalid or malformed."""


class FetchError(BindCheckError):
    """Base exception for advertisement retrieval errors."""


class UnreachableError(FetchError):
    """Raised when the advertisement endpoint cannot be reached or returns nothing."""


class ValidationError(BindCheckError):
    """Base exception for advertisement validation errors."""


class MalformedAdvertisementError(ValidationError):
    """Raised when an advertisement cannot be parsed or has no keys."""


class NoVerifyKeyError(ValidationError):
    """Raised when an advertisement declares no verify-capable key."""


class SignatureInvalidError(ValidationError):
    """Raised when an advertisement signature is missing or does not verify."""


class WalkError(BindCheckError):
    """Base exception for binding metadata traversal errors."""

    @property
    def cause(self) -> Optional[BaseException]:
        """The exception that triggered this one, if any."""
        return self.__cause__


class MalformedMetadataError(WalkError):
    """Raised when binding metadata lacks required fields."""


class DecodeFailedError(WalkError):
    """Raised when a nested sub-binding token cannot be decoded."""


class DepthExceededError(WalkError):
    """Raised when binding metadata nests deeper than the configured maximum."""


class RemoteCheckError(WalkError):
    """Raised when fetching or validating an advertisement fails for a branch."""


class ConfigurationError(BindCheckError):
    """Raised when configuration is invalid or missing."""


class SlotReadError(BindCheckError):
    """Raised when binding metadata cannot be read from a device slot.

    The message is meant to be shown to the user as is.
    """
