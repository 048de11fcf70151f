"""
Document store client for Replication Orchestrator

Defines the capability surface the orchestrator consumes from the document
store, and an HTTP binding of it for CouchDB-compatible clusters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from urllib.parse import quote

import httpx

from .logger import get_logger
from .urls import extend_url, redact_url, split_credentials
from ..core.exceptions import StoreError, DocumentNotFoundError


@dataclass
class DatabaseInfo:
    """Document counts reported for a database."""
    doc_count: int = 0
    doc_del_count: int = 0

    @property
    def total(self) -> int:
        """Live plus deleted documents, the unit replication progress is measured in."""
        return self.doc_count + self.doc_del_count

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseInfo":
        return cls(
            doc_count=int(data.get("doc_count") or 0),
            doc_del_count=int(data.get("doc_del_count") or 0)
        )


class StoreClient(ABC):
    """
    Abstract base class for document store clients.

    All locations are absolute URLs; database URLs already include the
    database name and may carry credentials.
    """

    @abstractmethod
    async def create_database(self, server_url: str, name: str) -> bool:
        """
        Create a database.

        Returns:
            True if created, False if it already existed

        Raises:
            StoreError: For any other failure
        """
        pass

    @abstractmethod
    async def get_database_info(self, db_url: str) -> DatabaseInfo:
        """Fetch document counts for a database."""
        pass

    @abstractmethod
    async def list_databases(self, server_url: str) -> List[str]:
        """List database names on a cluster."""
        pass

    @abstractmethod
    async def insert_document(self, db_url: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document."""
        pass

    @abstractmethod
    async def get_document(self, db_url: str, doc_id: str) -> Dict[str, Any]:
        """
        Fetch a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    async def update_document(self, db_url: str, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Write a document at a known id."""
        pass

    async def close(self):
        """Release any underlying connections."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HttpStoreClient(StoreClient):
    """
    StoreClient for CouchDB-compatible clusters (CouchDB, Cloudant) over HTTP.

    Credentials embedded in URLs are moved into HTTP basic auth so they never
    appear in request lines.
    """

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional transport, e.g. httpx.MockTransport in tests
        """
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"}
        )
        self.logger = get_logger(__name__)

    async def close(self):
        await self._client.aclose()

    async def create_database(self, server_url: str, name: str) -> bool:
        response = await self._request("create_database", "PUT", extend_url(server_url, name))
        if response.status_code == 412:
            return False
        self._raise_for_status("create_database", response)
        return True

    async def get_database_info(self, db_url: str) -> DatabaseInfo:
        response = await self._request("get_database_info", "GET", db_url)
        self._raise_for_status("get_database_info", response, doc_id=redact_url(db_url))
        body = self._decode("get_database_info", response, dict)
        try:
            return DatabaseInfo.from_dict(body)
        except (TypeError, ValueError) as e:
            raise StoreError("get_database_info", f"malformed database info: {e}",
                             status_code=response.status_code)

    async def list_databases(self, server_url: str) -> List[str]:
        response = await self._request("list_databases", "GET", extend_url(server_url, "_all_dbs"))
        self._raise_for_status("list_databases", response)
        return self._decode("list_databases", response, list)

    async def insert_document(self, db_url: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("insert_document", "POST", db_url, json=doc)
        self._raise_for_status("insert_document", response)
        return self._decode("insert_document", response, dict)

    async def get_document(self, db_url: str, doc_id: str) -> Dict[str, Any]:
        response = await self._request("get_document", "GET", self._document_url(db_url, doc_id))
        self._raise_for_status("get_document", response, doc_id=doc_id)
        return self._decode("get_document", response, dict)

    async def update_document(self, db_url: str, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("update_document", "PUT", self._document_url(db_url, doc_id), json=doc)
        self._raise_for_status("update_document", response)
        return self._decode("update_document", response, dict)

    def _document_url(self, db_url: str, doc_id: str) -> str:
        return db_url.rstrip("/") + "/" + quote(doc_id, safe="")

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        clean_url, credentials = split_credentials(url)
        if credentials:
            kwargs["auth"] = httpx.BasicAuth(*credentials)

        try:
            response = await self._client.request(method, clean_url, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(operation, f"{type(e).__name__}: {e}")

        self.logger.debug("Store request", extra={
            "operation": operation,
            "method": method,
            "url": clean_url,
            "status_code": response.status_code
        })
        return response

    def _decode(self, operation: str, response: httpx.Response, expected: type):
        """Parse a successful response body, e.g. not an HTML page from a proxy."""
        try:
            body = response.json()
        except ValueError:
            raise StoreError(operation, f"HTTP {response.status_code} response is not JSON",
                             status_code=response.status_code)
        if not isinstance(body, expected):
            raise StoreError(operation, f"expected a JSON {expected.__name__}, got {type(body).__name__}",
                             status_code=response.status_code)
        return body

    def _raise_for_status(self, operation: str, response: httpx.Response, doc_id: Optional[str] = None):
        if response.is_success:
            return

        error, reason = None, None
        try:
            body = response.json()
            if isinstance(body, dict):
                error, reason = body.get("error"), body.get("reason")
        except ValueError:
            pass

        if response.status_code == 404:
            raise DocumentNotFoundError(operation, doc_id or str(response.request.url), reason=reason)
        raise StoreError(
            operation,
            f"HTTP {response.status_code} {error or response.reason_phrase}",
            status_code=response.status_code,
            reason=reason
        )
