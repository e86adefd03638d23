"""
Off-chain Content Stores
========================
Stores accept a JSON-serializable blob and return an opaque locator; the
ledger only ever sees the locator.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
import structlog

from core.exceptions import ConfigurationError, ContentStoreError
from core.utils import compute_hash

logger = structlog.get_logger(__name__)


class ContentStore(ABC):
    """Interface of an off-chain blob store."""

    @abstractmethod
    def add_json(self, obj: Any) -> str:
        """Store a JSON-serializable object and return its locator."""

    @abstractmethod
    def get_json(self, locator: str) -> Any:
        """Fetch and parse the object stored under ``locator``."""


class InMemoryContentStore(ContentStore):
    """Content-addressed dict store for tests and local runs."""

    def __init__(self):
        self._blobs: Dict[str, str] = {}

    def add_json(self, obj: Any) -> str:
        data = json.dumps(obj, sort_keys=True)
        locator = "mem-" + compute_hash(data)
        self._blobs[locator] = data
        return locator

    def get_json(self, locator: str) -> Any:
        if locator not in self._blobs:
            raise ContentStoreError(f"No content under locator {locator}", locator=locator)
        return json.loads(self._blobs[locator])

    def __len__(self) -> int:
        return len(self._blobs)


class IPFSContentStore(ContentStore):
    """
    Client for the IPFS HTTP API (``/api/v0/add`` and ``/api/v0/cat``).

    Locators are the CIDs returned by the node.
    """

    def __init__(
        self,
        api_url: str = "http://127.0.0.1:5001",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def add_json(self, obj: Any) -> str:
        endpoint = f"{self.api_url}/api/v0/add"
        data = json.dumps(obj)
        try:
            response = self.session.post(
                endpoint,
                files={"file": ("record.json", data.encode("utf-8"))},
                params={"pin": "true"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            cid = response.json()["Hash"]
        except requests.RequestException as e:
            raise ContentStoreError(f"IPFS add failed: {e}", endpoint=endpoint) from e
        except (KeyError, ValueError) as e:
            raise ContentStoreError(f"Unexpected IPFS add response: {e}", endpoint=endpoint) from e

        logger.info("Stored content in IPFS", cid=cid, size=len(data))
        return cid

    def get_json(self, locator: str) -> Any:
        endpoint = f"{self.api_url}/api/v0/cat"
        try:
            response = self.session.post(
                endpoint, params={"arg": locator}, timeout=self.timeout
            )
            response.raise_for_status()
            return json.loads(response.content.decode("utf-8"))
        except requests.RequestException as e:
            raise ContentStoreError(
                f"IPFS cat failed: {e}", endpoint=endpoint, locator=locator
            ) from e
        except ValueError as e:
            raise ContentStoreError(
                f"Content under {locator} is not JSON: {e}", endpoint=endpoint, locator=locator
            ) from e


def create_content_store(kind: str = "memory", **kwargs: Any) -> ContentStore:
    """Build a content store by name ('memory' or 'ipfs')."""
    if kind == "memory":
        return InMemoryContentStore()
    if kind == "ipfs":
        return IPFSContentStore(**kwargs)
    raise ConfigurationError(f"Unknown content store: {kind}", config_key="gateway.content_store")
