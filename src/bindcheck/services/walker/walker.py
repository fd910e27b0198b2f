# SPDX-License-Identifier: MPL-2.0
"""Binding metadata traversal.

The walker finds keys recorded in a binding that the key server no longer
advertises. A direct remote binding is checked against a freshly fetched
advertisement. A secret-sharing binding is checked by decoding each of its
sub-bindings and walking them in turn; their results are unioned. Bindings of
any other kind do not depend on remote keys and yield nothing.

Any failure aborts the whole walk. A partial result is never returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from bindcheck.core.comparison import compare
from bindcheck.core.config import CheckerConfig
from bindcheck.core.crypto import thumbprint
from bindcheck.core.exceptions import (
    DecodeFailedError,
    DepthExceededError,
    FetchError,
    InvalidKeyError,
    MalformedMetadataError,
    RemoteCheckError,
    ValidationError,
)
from bindcheck.core.models import (
    Binding,
    DirectRemoteBinding,
    OtherBinding,
    Pin,
    SecretSharingBinding,
)
from bindcheck.services.advertisement import AdvertisementFetcher, AdvertisementValidator
from bindcheck.services.walker.decode import METADATA_NODE, decode_token

logger = logging.getLogger(__name__)

Thumbprinter = Callable[[Dict[str, Any]], str]


def parse_binding(metadata: Any, path: str = METADATA_NODE) -> Binding:
    """Turn a metadata document into a binding variant.

    Args:
        metadata: Document carrying a ``clevis`` node
        path: Location of the document, used in error messages

    Raises:
        MalformedMetadataError: If required fields are missing or empty.
    """
    node = metadata.get(METADATA_NODE) if isinstance(metadata, dict) else None
    if not isinstance(node, dict):
        raise MalformedMetadataError(f"{path}: missing '{METADATA_NODE}' node", {"path": path})

    pin = node.get("pin")
    if not isinstance(pin, str) or not pin:
        raise MalformedMetadataError(f"{path}: missing pin", {"path": path})

    if pin == Pin.DIRECT_REMOTE.value:
        payload = node.get(pin)
        if not isinstance(payload, dict):
            raise MalformedMetadataError(f"{path}: missing '{pin}' configuration", {"path": path})

        url = payload.get("url")
        if not isinstance(url, str) or not url.strip():
            raise MalformedMetadataError(f"{path}: missing key server URL", {"path": path})

        adv = payload.get("adv")
        keys = adv.get("keys") if isinstance(adv, dict) else None
        if not isinstance(keys, list) or not keys:
            raise MalformedMetadataError(f"{path}: no recorded keys", {"path": path, "url": url})
        if not all(isinstance(key, dict) for key in keys):
            raise MalformedMetadataError(f"{path}: recorded keys must be objects", {"path": path, "url": url})
        return DirectRemoteBinding(url=url, recorded_keys=tuple(keys))

    if pin == Pin.SECRET_SHARING.value:
        payload = node.get(pin)
        if not isinstance(payload, dict):
            raise MalformedMetadataError(f"{path}: missing '{pin}' configuration", {"path": path})

        tokens = payload.get("jwe")
        if not isinstance(tokens, list) or not tokens:
            raise MalformedMetadataError(f"{path}: no sub-bindings", {"path": path})
        threshold = payload.get("t")
        return SecretSharingBinding(
            tokens=tuple(tokens),
            threshold=threshold if isinstance(threshold, int) else None,
        )

    return OtherBinding(pin=pin)


class MetadataWalker:
    """Walks binding metadata and collects stale key thumbprints."""

    def __init__(
        self,
        fetcher: Optional[AdvertisementFetcher] = None,
        validator: Optional[AdvertisementValidator] = None,
        config: Optional[CheckerConfig] = None,
        thumbprinter: Optional[Thumbprinter] = None,
    ):
        """Initialize the walker.

        Args:
            fetcher: Advertisement fetcher; built from ``config`` if omitted
            validator: Advertisement validator
            config: Checker configuration
            thumbprinter: Key identity function; RFC 7638 thumbprints with the
                configured hash by default
        """
        self.config = config or CheckerConfig()
        self.fetcher = fetcher or AdvertisementFetcher(self.config)
        self.validator = validator or AdvertisementValidator(self.config.thumbprint_hash)
        self.thumbprinter = thumbprinter or partial(thumbprint, hash_alg=self.config.thumbprint_hash)

    def walk(self, metadata: Dict[str, Any]) -> frozenset:
        """Return thumbprints of recorded keys the server no longer advertises.

        An empty result means every reachable key server was checked and
        nothing was rotated.

        Raises:
            WalkError: If the metadata is malformed, a sub-binding cannot be
                decoded, nesting is too deep, or an advertisement could not be
                fetched or validated.
        """
        return self._walk(metadata, 0, METADATA_NODE)

    def _walk(self, metadata: Any, depth: int, path: str) -> frozenset:
        if depth > self.config.max_depth:
            raise DepthExceededError(
                f"{path}: binding nested deeper than {self.config.max_depth} levels",
                {"path": path, "max_depth": self.config.max_depth},
            )

        binding = parse_binding(metadata, path)
        if isinstance(binding, DirectRemoteBinding):
            return self._check_remote(binding, path)
        if isinstance(binding, SecretSharingBinding):
            return self._check_shares(binding, depth, path)

        logger.debug(f"{path}: pin '{binding.pin}' does not use a key server, skipping")
        return frozenset()

    def _thumbprints(self, keys: Iterable[Dict[str, Any]], path: str) -> set:
        try:
            return {self.thumbprinter(key) for key in keys}
        except InvalidKeyError as e:
            raise MalformedMetadataError(f"{path}: {e.message}", {"path": path}) from e

    def _check_remote(self, binding: DirectRemoteBinding, path: str) -> frozenset:
        recorded = self._thumbprints(binding.recorded_keys, path)

        try:
            advertisement = self.fetcher.fetch(binding.url)
            current_keys = self.validator.validate(advertisement)
        except (FetchError, ValidationError) as e:
            raise RemoteCheckError(
                f"{path}: {e.message}", {"path": path, "url": binding.url}
            ) from e

        current = {self.thumbprinter(key) for key in current_keys}
        stale = compare(current, recorded)

        if stale:
            logger.warning(f"{path}: {len(stale)} recorded key(s) no longer advertised by {binding.url}")
        else:
            logger.info(f"{path}: all recorded keys still advertised by {binding.url}")
        return stale

    def _check_shares(self, binding: SecretSharingBinding, depth: int, path: str) -> frozenset:
        # Decode everything first so a bad token fails before any fetch.
        children: List[Tuple[str, Dict[str, Any]]] = []
        for index, token in enumerate(binding.tokens):
            child_path = f"{path}.{Pin.SECRET_SHARING.value}[{index}]"
            try:
                children.append((child_path, decode_token(token)))
            except DecodeFailedError as e:
                raise DecodeFailedError(f"{child_path}: {e.message}", {"path": child_path}) from e

        logger.debug(f"{path}: checking {len(children)} sub-binding(s)")
        if self.config.max_workers > 1 and len(children) > 1:
            results = self._walk_concurrently(children, depth + 1)
        else:
            results = [self._walk(document, depth + 1, child_path) for child_path, document in children]
        return frozenset().union(*results)

    def _walk_concurrently(self, children: List[Tuple[str, Dict[str, Any]]], depth: int) -> List[frozenset]:
        workers = min(self.config.max_workers, len(children))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bindcheck")
        try:
            futures = [pool.submit(self._walk, document, depth, child_path) for child_path, document in children]
            # Every branch settles before an error is picked, so the reported
            # failure is always the first one in branch order.
            wait(futures)
            for future in futures:
                if future.exception() is not None:
                    raise future.exception()
            return [future.result() for future in futures]
        finally:
            pool.shutdown(wait=True)
