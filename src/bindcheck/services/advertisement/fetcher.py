# SPDX-License-Identifier: MPL-2.0
"""Advertisement retrieval.

Fetches the signed key advertisement a key server publishes at ``<url>/adv``.
Every call performs a fresh GET; nothing is cached and nothing is retried.
"""

import logging
from typing import Optional

import requests

from bindcheck.core.config import CheckerConfig
from bindcheck.core.exceptions import UnreachableError
from bindcheck.core.models import Advertisement

logger = logging.getLogger(__name__)

ADV_PATH = "/adv"
ACCEPT = "application/jose+json, application/json;q=0.9"


def advertisement_url(url: str) -> str:
    """Return the advertisement endpoint for a key server URL.

    A URL without a scheme is treated as plain HTTP.
    """
    url = url.strip()
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/") + ADV_PATH


class AdvertisementFetcher:
    """Retrieves raw advertisements over HTTP(S)."""

    def __init__(
        self,
        config: Optional[CheckerConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the fetcher.

        Args:
            config: Checker configuration; supplies the per-request timeout
            session: Optional session to reuse, mainly for tests
        """
        self.config = config or CheckerConfig()
        self.session = session or requests.Session()

    def fetch(self, url: str) -> Advertisement:
        """Fetch the advertisement for the key server at ``url``.

        Raises:
            UnreachableError: On transport failure, a non-2xx response, or an
                empty body.
        """
        target = advertisement_url(url)
        logger.info(f"Fetching advertisement from {target}")

        try:
            response = self.session.get(
                target,
                timeout=self.config.fetch_timeout,
                allow_redirects=True,
                headers={"Accept": ACCEPT, "User-Agent": self.config.user_agent},
            )
        except requests.RequestException as e:
            logger.error(f"Failed to fetch advertisement from {target}: {e}")
            raise UnreachableError(
                f"Could not reach {target}: {e}", {"url": target}
            ) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Failed to fetch advertisement from {target}: HTTP {response.status_code}")
            raise UnreachableError(
                f"Key server at {target} answered HTTP {response.status_code}",
                {"url": target, "status_code": response.status_code},
            )

        body = response.content or b""
        if not body.strip():
            logger.error(f"Empty advertisement from {target}")
            raise UnreachableError(
                f"Key server at {target} returned an empty advertisement",
                {"url": target, "status_code": response.status_code},
            )

        return Advertisement(url=target, body=body, status_code=response.status_code)
