# SPDX-License-Identifier: MPL-2.0
"""Key server advertisement retrieval and validation."""

from .fetcher import AdvertisementFetcher, advertisement_url
from .validator import AdvertisementValidator

__all__ = ["AdvertisementFetcher", "AdvertisementValidator", "advertisement_url"]
