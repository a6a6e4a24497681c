"""
Document store for dashboard definitions.

Two interchangeable backends behind the same get/list/put/delete contract:
- DataStoreBackend: the DHIS2 dataStore (``dataStore/<namespace>/<key>``)
- SearchIndexBackend: the search index service (``/search``, ``/get``,
  ``/index``, ``/delete``), documents scoped by ``systemId``

STORAGE in settings picks one.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from idvt.config import settings
from idvt.db.dhis2 import Dhis2Client, require_dhis2

logger = logging.getLogger(__name__)

INDICATORS = "i-indicators"
VISUALIZATION_QUERIES = "i-visualization-queries"
DATA_SOURCES = "i-data-sources"

Document = Dict[str, Any]

_document_store: Optional["DocumentStore"] = None


def _is_not_found(error: httpx.HTTPStatusError) -> bool:
    return error.response.status_code == 404


class DocumentStore(ABC):
    """Key-value access to documents grouped by namespace."""

    @abstractmethod
    async def get(self, namespace: str, document_id: str) -> Optional[Document]:
        """Return the document, or None if it does not exist."""

    @abstractmethod
    async def list(self, namespace: str) -> List[Document]:
        """Return every document in the namespace."""

    @abstractmethod
    async def put(self, namespace: str, document_id: str, document: Document) -> Any:
        """Create or replace a document."""

    @abstractmethod
    async def delete(self, namespace: str, document_id: str) -> Any:
        """Remove a document."""

    async def aclose(self) -> None:
        return None


class DataStoreBackend(DocumentStore):
    def __init__(self, client: Dhis2Client):
        self.client = client

    async def get(self, namespace: str, document_id: str) -> Optional[Document]:
        try:
            return await self.client.get(f"dataStore/{namespace}/{document_id}")
        except httpx.HTTPStatusError as e:
            if _is_not_found(e):
                return None
            raise

    async def list(self, namespace: str) -> List[Document]:
        try:
            keys = await self.client.get(f"dataStore/{namespace}")
        except httpx.HTTPStatusError as e:
            if _is_not_found(e):
                return []
            raise
        documents = await asyncio.gather(*(self.get(namespace, key) for key in keys))
        return [document for document in documents if document is not None]

    async def put(self, namespace: str, document_id: str, document: Document) -> Any:
        resource = f"dataStore/{namespace}/{document_id}"
        try:
            return await self.client.put(resource, document)
        except httpx.HTTPStatusError as e:
            if not _is_not_found(e):
                raise
        logger.info("Creating %s", resource)
        return await self.client.post(resource, document)

    async def delete(self, namespace: str, document_id: str) -> Any:
        return await self.client.delete(f"dataStore/{namespace}/{document_id}")


class SearchIndexBackend(DocumentStore):
    def __init__(
        self,
        base_url: str,
        system_id: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.system_id = system_id
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/", timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: Any = None, params: Optional[Dict[str, str]] = None) -> Any:
        response = await self._client.post(path, json=payload, params=params)
        response.raise_for_status()
        return response.json() if response.content else None

    async def get(self, namespace: str, document_id: str) -> Optional[Document]:
        data = await self._post("get", {"index": namespace, "id": document_id})
        return ((data or {}).get("body") or {}).get("_source")

    async def list(self, namespace: str) -> List[Document]:
        payload = {
            "index": namespace,
            "size": 1000,
            "query": {"bool": {"must": [{"term": {"systemId.keyword": self.system_id}}]}},
        }
        data = await self._post("search", payload)
        return [hit["_source"] for hit in data["hits"]["hits"]]

    async def put(self, namespace: str, document_id: str, document: Document) -> Any:
        payload = {**document, "id": document_id, "systemId": self.system_id}
        return await self._post("index", payload, params={"index": namespace})

    async def delete(self, namespace: str, document_id: str) -> Any:
        return await self._post("delete", params={"index": namespace, "id": document_id})


def get_document_store() -> DocumentStore:
    """
    FastAPI dependency returning the configured document store.
    The search index backend is used when STORAGE=es, the DHIS2 dataStore otherwise.
    """
    global _document_store
    if _document_store is not None:
        return _document_store
    if settings.search_index_enabled:
        _document_store = SearchIndexBackend(
            settings.SEARCH_API_URL, settings.SYSTEM_ID, timeout=settings.HTTP_TIMEOUT
        )
    else:
        _document_store = DataStoreBackend(require_dhis2())
    logger.info("Document storage: %s", settings.STORAGE)
    return _document_store


async def close_document_store() -> None:
    global _document_store
    if _document_store is not None:
        await _document_store.aclose()
        _document_store = None
