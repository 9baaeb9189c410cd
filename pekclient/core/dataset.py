"""
Dataset accessor.

Fetches precomputed dataset attributes (raw features, scaled data and
low-dimensional projections) from the server and caches them per key.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Dict

import structlog

from pekclient.storage.dataset_cache import MISSING, DatasetCache, MemoryDatasetCache
from pekclient.utils.error_handling import PekDatasetError

if TYPE_CHECKING:
    from pekclient.services.client import PekClient


logger = structlog.get_logger(__name__)

DATASET_KEYS = ("features", "original", "scaled", "isomap", "mds", "pca", "tsne", "umap")


class PekDataset:
    """
    Dataset published by the server.

    Concurrent first fetches of the same key share a single request.
    """

    def __init__(self, name: str, client: "PekClient", cache: DatasetCache = None):
        """
        Args:
            name: Dataset name
            client: Client used to send requests
            cache: Cache for fetched attributes (in-memory if None)
        """
        self.name = name
        self._client = client
        self._cache = cache if cache is not None else MemoryDatasetCache()
        self._inflight: Dict[str, asyncio.Future] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    async def get(self, key: str) -> Any:
        """
        Retrieve an attribute of the dataset.

        Args:
            key: One of 'features', 'original', 'scaled', 'isomap', 'mds',
                'pca', 'tsne', 'umap'

        Returns:
            The attribute value as sent by the server

        Raises:
            PekDatasetError: If the key is not valid
        """
        if key not in DATASET_KEYS:
            raise PekDatasetError(
                f"Invalid key='{key}'. Must be in {list(DATASET_KEYS)}.",
                details={"dataset": self.name, "key": key},
            )

        cached = await self._cache.get(self.name, key)
        if cached is not MISSING:
            return cached

        fetch = self._inflight.get(key)
        if fetch is None:
            fetch = asyncio.ensure_future(self._fetch(key))
            self._inflight[key] = fetch
            fetch.add_done_callback(lambda _: self._inflight.pop(key, None))

        return await asyncio.shield(fetch)

    async def _fetch(self, key: str) -> Any:
        response = await self._client._send("dataset", {"name": self.name, key: True})
        if not isinstance(response, dict) or key not in response:
            raise PekDatasetError(
                f"Server response for dataset '{self.name}' does not contain '{key}'.",
                details={"dataset": self.name, "key": key},
            )

        value = response[key]
        await self._cache.set(self.name, key, value)
        logger.debug("dataset_attribute_fetched", dataset=self.name, key=key)
        return value

    async def get_features(self) -> Any:
        return await self.get("features")

    async def get_original_data(self) -> Any:
        return await self.get("original")

    async def get_scaled_data(self) -> Any:
        return await self.get("scaled")

    async def get_isomap(self) -> Any:
        """ISOMAP projection, scaled to [-1, 1]."""
        return await self.get("isomap")

    async def get_mds(self) -> Any:
        """MDS projection, scaled to [-1, 1]."""
        return await self.get("mds")

    async def get_pca(self) -> Any:
        """PCA projection, scaled to [-1, 1]."""
        return await self.get("pca")

    async def get_tsne(self) -> Any:
        """t-SNE projection, scaled to [-1, 1]."""
        return await self.get("tsne")

    async def get_umap(self) -> Any:
        """UMAP projection, scaled to [-1, 1]."""
        return await self.get("umap")
